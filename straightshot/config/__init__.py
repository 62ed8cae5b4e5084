"""
Configuration package for StraightShot Auto.

Usage:
    from straightshot.config import CACHE, RATE_LIMIT, MODEL
"""

from .settings import (
    # Paths
    BASE_DIR,
    CLIENT_STORAGE_PATH,

    # Server
    HOST,
    PORT,
    DEBUG,

    # API Keys
    OPENAI_API_KEY,
    ANTHROPIC_API_KEY,

    # Dataclass configs
    RateLimitConfig,
    RATE_LIMIT,
    CacheConfig,
    CACHE,
    ModelConfig,
    MODEL,
    AuthConfig,
    AUTH,
    ClientConfig,
    CLIENT,

    # Loading labels
    LOADING_TEXT,
    LOADING_TEXT_SLOW,
)
