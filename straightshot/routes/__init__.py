# Routes package for the StraightShot edge service
from .analysis import router as analysis_router
from .auth import router as auth_router

__all__ = [
    'analysis_router',
    'auth_router',
]
