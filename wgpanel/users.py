"""
Peer ("user") management API.
Lists peers with live status, adds peers, enables/disables them one at a time or in bulk.
"""
import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

from .auth import get_current_admin
from .audit import log_peer_toggled, log_bulk_toggle, log_peer_created
from .config import DEFAULT_LAST_IP, CLIENTS_DIR
from .errors import DuplicatePeer
from .mutations import (
    set_enabled,
    bulk_set_enabled,
    insert_peer,
    last_assigned_address,
    next_allowed_address,
)
from .peers import ConnectionStatus, ParsedConfig, PeerRecord
from .qr import generate_qr_data_uri
from .status import get_connection_status, merge_status, parse_data_size
from .store import ConfigStore, get_store
from .wg import (
    CLIENT_NAME_RE,
    WireGuardError,
    client_config_path,
    generate_client_config,
    generate_keypair,
    get_server_public_key,
    save_client_config,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

StatusSource = Callable[[], Awaitable[Dict[str, ConnectionStatus]]]
KeyGenerator = Callable[[], Awaitable[Tuple[str, str]]]


def get_status_source() -> StatusSource:
    return get_connection_status


def get_keygen() -> KeyGenerator:
    return generate_keypair


def get_clients_dir():
    return CLIENTS_DIR


class CreateUserRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip()
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        if not CLIENT_NAME_RE.match(v.split('@')[0]):
            raise ValueError("Email local part can only contain letters, numbers, dots, dashes, underscores and plus signs")
        return v


class ToggleRequest(BaseModel):
    enabled: StrictBool


class BulkToggleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    public_keys: List[str] = Field(alias="publicKeys", min_length=1)
    enabled: StrictBool


def peer_to_dict(peer: PeerRecord) -> dict:
    return {
        "name": peer.name,
        "email": peer.email,
        "public_key": peer.public_key,
        "allowed_ips": peer.allowed_ips,
        "enabled": peer.enabled,
    }


def status_to_dict(status: ConnectionStatus) -> dict:
    return {
        "is_connected": status.is_connected,
        "latest_handshake": status.latest_handshake,
        "endpoint": status.endpoint,
        "transfer_received": status.transfer_received,
        "transfer_sent": status.transfer_sent,
    }


def _usage(status: ConnectionStatus) -> int:
    return parse_data_size(status.transfer_received) + parse_data_size(status.transfer_sent)


SORT_KEYS = {
    "connection": lambda item: item[1].is_connected,
    "usage": lambda item: _usage(item[1]),
    "status": lambda item: item[0].enabled,
    "name": lambda item: item[0].name.lower(),
}


def _toggle_message(enabled: bool, subject: str, warning: Optional[str]) -> str:
    action = "enabled" if enabled else "disabled"
    if warning:
        return f"{subject} {action} successfully, but WireGuard reload failed. Please reload manually."
    return f"{subject} {action} and WireGuard configuration reloaded successfully"


@router.get("")
async def list_users(
    store: ConfigStore = Depends(get_store),
    admin: str = Depends(get_current_admin)
):
    """List peers parsed from wg0.conf, in file order."""
    users = []
    for peer in store.load().peers:
        if not (peer.name and peer.allowed_ips):
            logger.warning("Skipping incomplete peer entry: %s", peer.public_key or peer.allowed_ips)
            continue
        users.append(peer_to_dict(peer))
    return {"success": True, "users": users}


@router.get("/status")
async def list_users_with_status(
    sort: str = "connection",
    order: Optional[str] = None,
    store: ConfigStore = Depends(get_store),
    status_source: StatusSource = Depends(get_status_source),
    admin: str = Depends(get_current_admin)
):
    """List peers joined with live connection status."""
    if sort not in SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"Unknown sort key: {sort}")
    if order not in (None, "asc", "desc"):
        raise HTTPException(status_code=400, detail="order must be 'asc' or 'desc'")
    descending = order == "desc" if order else sort != "name"

    merged = merge_status(store.load().peers, await status_source())
    merged.sort(key=SORT_KEYS[sort], reverse=descending)

    users = []
    for peer, status in merged:
        user = peer_to_dict(peer)
        user["connection_status"] = status_to_dict(status)
        user["usage_bytes"] = _usage(status)
        users.append(user)

    return {
        "success": True,
        "users": users,
        "summary": {
            "total": len(merged),
            "enabled": sum(1 for peer, _ in merged if peer.enabled),
            "connected": sum(1 for _, status in merged if status.is_connected),
        },
    }


@router.post("")
async def create_user(
    body: CreateUserRequest,
    store: ConfigStore = Depends(get_store),
    keygen: KeyGenerator = Depends(get_keygen),
    clients_dir=Depends(get_clients_dir),
    admin: str = Depends(get_current_admin)
):
    """
    Add a peer for an email address.
    The name is the local part of the email; the address is the next one
    after the last assigned address.
    """
    email = body.email
    username = email.split('@')[0]

    # fail fast before spending a keypair; insert_peer checks again under the lock
    for peer in store.load().peers:
        if peer.name == username or peer.email == email:
            raise DuplicatePeer("email or username", email)

    private_key, public_key = await keygen()

    def add(parsed: ParsedConfig):
        address = next_allowed_address(
            parsed.peers, last_assigned_address(parsed.peers, DEFAULT_LAST_IP)
        )
        new_peer = PeerRecord(name=username, email=email, public_key=public_key, allowed_ips=f"{address}/32")
        return insert_peer(parsed.peers, new_peer), (address, parsed.interface)

    outcome = await store.mutate(add)
    address, interface = outcome.result
    log_peer_created(username, address, admin)
    logger.info("Added peer %s (%s)", username, address)

    warning = outcome.warning
    client_config = None
    qr_code = None
    config_path = None
    try:
        server_public_key = await get_server_public_key(interface)
        client_config = generate_client_config(private_key, address, server_public_key)
        config_path = str(save_client_config(username, client_config, clients_dir))
        qr_code = generate_qr_data_uri(client_config)
    except (WireGuardError, OSError) as e:
        logger.error("Peer %s added but client config could not be written: %s", username, e)
        warning = f"{warning + '; ' if warning else ''}Client configuration not generated: {e}"

    return {
        "success": True,
        "message": "User added successfully",
        "user": {
            "username": username,
            "email": email,
            "ip": address,
            "public_key": public_key,
            "config_path": config_path,
        },
        "client_config": client_config,
        "qr_code": qr_code,
        "warning": warning,
    }


@router.patch("/bulk")
async def bulk_toggle_users(
    body: BulkToggleRequest,
    store: ConfigStore = Depends(get_store),
    admin: str = Depends(get_current_admin)
):
    """Enable or disable several peers. Unknown keys are reported, not fatal."""
    outcome = await store.mutate(
        lambda parsed: bulk_set_enabled(parsed.peers, body.public_keys, body.enabled)
    )
    not_found = outcome.result
    updated = len(set(body.public_keys)) - len(not_found)
    log_bulk_toggle(body.public_keys, body.enabled, not_found, admin)

    return {
        "success": True,
        "message": _toggle_message(body.enabled, f"{updated} user(s)", outcome.warning),
        "updated": updated,
        "notFoundKeys": not_found,
        "warning": outcome.warning,
    }


@router.patch("/{public_key:path}")
async def toggle_user(
    public_key: str,
    body: ToggleRequest,
    store: ConfigStore = Depends(get_store),
    admin: str = Depends(get_current_admin)
):
    """Enable or disable one peer, identified by its public key."""
    outcome = await store.mutate(
        lambda parsed: (set_enabled(parsed.peers, public_key, body.enabled), None)
    )
    log_peer_toggled(public_key, body.enabled, admin)

    return {
        "success": True,
        "message": _toggle_message(body.enabled, "User", outcome.warning),
        "warning": outcome.warning,
    }


def _client_config_file(username: str, clients_dir) -> str:
    try:
        path = client_config_path(username, clients_dir)
    except WireGuardError:
        raise HTTPException(status_code=400, detail="Invalid username")
    if not path.exists():
        raise HTTPException(status_code=404, detail="Client configuration not found")
    return str(path)


@router.get("/{username}/config")
async def download_user_config(
    username: str,
    clients_dir=Depends(get_clients_dir),
    admin: str = Depends(get_current_admin)
):
    """Download a client's config file."""
    path = _client_config_file(username, clients_dir)
    return FileResponse(path, media_type="application/octet-stream", filename=f"{username}.conf")


@router.get("/{username}/config/content")
async def get_user_config_content(
    username: str,
    clients_dir=Depends(get_clients_dir),
    admin: str = Depends(get_current_admin)
):
    """Client config as text, with a QR code for mobile apps."""
    path = _client_config_file(username, clients_dir)
    with open(path) as f:
        content = f.read()
    return {
        "success": True,
        "config": content,
        "filename": f"{username}.conf",
        "qr_code": generate_qr_data_uri(content),
    }
