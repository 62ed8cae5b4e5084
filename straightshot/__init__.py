"""
StraightShot Auto

AI buying assessments for vehicle marketplace listings:
- straightshot.services / pipeline / routes: the FastAPI edge service
- straightshot.client: the page agent's analysis orchestrator
"""

__version__ = "1.2.0"
