"""
Audit logging module.
All admin actions are logged to a JSON-lines file.
Key material is never logged, only the public key that identifies a peer.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Iterable

from .config import AUDIT_LOG_PATH

logger = logging.getLogger(__name__)


def log_action(action: str, target: str, details: dict = None, admin: str = None):
    """
    Log an admin action to the audit log.

    Args:
        action: Action type (e.g., 'peer_enabled', 'config_replaced')
        target: The peer or object affected
        details: Additional metadata
        admin: Admin who performed the action
    """
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "action": action,
        "target": target,
        "admin": admin,
        "details": details or {}
    }

    try:
        AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        with open(AUDIT_LOG_PATH, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as e:
        logger.warning("Could not write audit entry %s: %s", action, e)


def log_peer_toggled(public_key: str, enabled: bool, admin: str = None):
    """Log a peer being enabled or disabled."""
    log_action("peer_enabled" if enabled else "peer_disabled", public_key, admin=admin)


def log_bulk_toggle(public_keys: Iterable[str], enabled: bool, not_found: Iterable[str], admin: str = None):
    log_action(
        "peers_enabled" if enabled else "peers_disabled",
        "bulk",
        {"public_keys": list(public_keys), "not_found": list(not_found)},
        admin
    )


def log_peer_created(name: str, assigned_ip: str, admin: str = None):
    """Log peer creation."""
    log_action("peer_created", name, {"assigned_ip": assigned_ip}, admin)


def log_config_replaced(admin: str = None):
    log_action("config_replaced", "wg0.conf", admin=admin)


def log_admin_login(admin: str, success: bool, ip: str = None):
    """Log admin login attempt."""
    log_action(
        "admin_login_success" if success else "admin_login_failed",
        admin,
        {"ip": ip}
    )


def log_wg_reload(success: bool, error: str = None):
    """Log WireGuard reload attempt."""
    log_action(
        "wg_reload",
        "system",
        {"success": success, "error": error}
    )
