"""
Raw wg0.conf access for the admin, plus public branding settings.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .audit import log_config_replaced
from .auth import get_current_admin
from .config import LOGO_URL
from .store import ConfigStore, get_store
from .wgconf import mask_keys

router = APIRouter(prefix="/api/config", tags=["config"])


class ConfigUpdateRequest(BaseModel):
    config: str


@router.get("/branding")
async def branding():
    """Public: lets the login page show a logo before authentication."""
    return {"success": True, "logo_url": LOGO_URL}


@router.get("")
async def get_config(
    store: ConfigStore = Depends(get_store),
    admin: str = Depends(get_current_admin)
):
    """Current configuration with key material masked."""
    return {"success": True, "config": mask_keys(store.read_text())}


@router.post("")
async def update_config(
    body: ConfigUpdateRequest,
    store: ConfigStore = Depends(get_store),
    admin: str = Depends(get_current_admin)
):
    """Replace the whole configuration. The previous file is backed up first."""
    outcome = await store.replace_text(body.config)
    log_config_replaced(admin)
    return {
        "success": True,
        "message": "Configuration updated successfully",
        "peers": len(outcome.result.peers),
        "warning": outcome.warning,
    }
