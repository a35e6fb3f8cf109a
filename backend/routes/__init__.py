"""FastAPI API endpoints under /api.

Endpoint groups: session (the story being played: view, start, load, save,
choose, reset) and settings (health, config, check-connection). The UI
reads SessionView snapshots and sends the input events as POSTs.
"""

from fastapi import APIRouter

from .session import router as session_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(session_router)
