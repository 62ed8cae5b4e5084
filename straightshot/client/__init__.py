"""
Page agent core: the analysis lifecycle that runs beside a listing page.

Snapshots come from an external extractor and AnalysisState goes to an
external overlay renderer; everything between lives here.
"""

from .api import EdgeClient, EdgeResponse
from .auth_session import AuthProvider, Session, SessionManager
from .orchestrator import AnalysisOrchestrator
from .snapshot_queue import SnapshotQueue
from .state import AnalysisState, AnalysisStatus, is_meaningful_text, missing_narrative_fields
from .storage import ClientStorage, FreeTierCounter

__all__ = [
    'EdgeClient',
    'EdgeResponse',
    'AuthProvider',
    'Session',
    'SessionManager',
    'AnalysisOrchestrator',
    'SnapshotQueue',
    'AnalysisState',
    'AnalysisStatus',
    'is_meaningful_text',
    'missing_narrative_fields',
    'ClientStorage',
    'FreeTierCounter',
]
