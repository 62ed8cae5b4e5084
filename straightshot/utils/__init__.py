"""
Utility modules for StraightShot Auto.
"""

from .fingerprint import compute_key, listing_identifier, cache_key, canonicalize_snapshot

__all__ = [
    'compute_key',
    'listing_identifier',
    'cache_key',
    'canonicalize_snapshot',
]
