"""Health check, settings and connection check endpoints."""

import httpx
from fastapi import APIRouter, Request

from backend import config

from .models import CheckConnectionBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/check-connection")
async def check_connection(body: CheckConnectionBody):
    """Quick reachability check against an LLM provider URL."""
    headers: dict[str, str] = {}
    if body.api_key:
        headers["Authorization"] = f"Bearer {body.api_key}"
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.get(body.provider_url.rstrip("/"), headers=headers)
            resp.raise_for_status()
        return {"ok": True}
    except (httpx.HTTPError, httpx.InvalidURL):
        return {"ok": False}


@router.get("/settings")
async def get_settings(request: Request):
    """Get app settings (LLM connection, story request, autosave)."""
    return config.get_config(request.app.state.data_dir)


@router.patch("/settings")
async def update_settings(request: Request, body: dict):
    """Update app settings (partial merge)."""
    return config.update_config(request.app.state.data_dir, body)
