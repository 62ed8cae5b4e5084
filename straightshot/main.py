"""
StraightShot edge server entrypoint.

Run with:
    python -m straightshot
    straightshot-server
"""

import logging

import uvicorn

from straightshot.config import HOST, PORT, DEBUG
from straightshot.services.app_factory import create_app
from straightshot.services.app_state import AppState

# ============================================================
# LOGGING SETUP
# ============================================================
logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)

# ============================================================
# FASTAPI APP
# ============================================================
app = create_app(AppState.from_settings(debug_mode=DEBUG))


# ============================================================
# RUN SERVER
# ============================================================
def run() -> None:
    print("\n" + "=" * 60)
    print("StraightShot Auto - Edge Service")
    print("=" * 60)
    print(f"Listening: http://{HOST}:{PORT}")
    print(f"Endpoints: POST /analyze, POST /auth/status, GET /health")
    print("=" * 60 + "\n")

    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        reload=False,
        workers=1  # Rate limiter and cache are per-process
    )


if __name__ == "__main__":
    run()
