"""
WireGuard tooling.
Key generation, server key lookup, client config files and interface reload.

The panel never edits wg0.conf here; all writes go through ConfigStore.
"""
import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Tuple, Optional

from .config import (
    WG_CONFIG_PATH,
    WG_INTERFACE,
    WG_RELOAD_STRATEGY,
    CLIENTS_DIR,
    VPN_SERVER_ENDPOINT,
    CLIENT_DNS,
    CLIENT_MTU,
    PERSISTENT_KEEPALIVE,
)
from .audit import log_wg_reload

logger = logging.getLogger(__name__)

CLIENT_NAME_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._+-]{0,63}$')


class WireGuardError(Exception):
    """Custom exception for WireGuard operations."""
    pass


async def run_command(cmd: list, stdin: Optional[str] = None) -> Tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr)."""
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.PIPE if stdin is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await proc.communicate(input=stdin.encode() if stdin is not None else None)
    return proc.returncode, stdout.decode().strip(), stderr.decode().strip()


async def derive_public_key(private_key: str) -> str:
    code, public_key, err = await run_command(["wg", "pubkey"], stdin=private_key)
    if code != 0:
        raise WireGuardError(f"Failed to derive public key: {err}")
    return public_key


async def generate_keypair() -> Tuple[str, str]:
    """
    Generate a WireGuard keypair.
    Returns (private_key, public_key).
    The private key only ends up in the client config file.
    """
    code, private_key, err = await run_command(["wg", "genkey"])
    if code != 0:
        raise WireGuardError(f"Failed to generate private key: {err}")
    return private_key, await derive_public_key(private_key)


async def get_server_public_key(interface: str) -> str:
    """
    Derive the server's public key from the PrivateKey of the [Interface] section.
    """
    match = re.search(r'^\s*PrivateKey\s*=\s*(\S+)', interface, re.MULTILINE)
    if not match:
        raise WireGuardError("Could not find server PrivateKey in the [Interface] section")
    return await derive_public_key(match.group(1))


async def reload_wireguard(config_path: Path = WG_CONFIG_PATH) -> Tuple[bool, str]:
    """
    Apply the on-disk configuration to the running interface.
    Returns (success, error). Never raises: the config write has already
    happened and a failed reload is reported, not rolled back.
    """
    try:
        if WG_RELOAD_STRATEGY == "restart":
            success, error = await _restart_interface()
        else:
            success, error = await _sync_interface(config_path)
    except Exception as e:
        success, error = False, str(e)

    if success:
        logger.info("WireGuard %s reloaded", WG_INTERFACE)
    else:
        logger.warning("WireGuard reload failed: %s", error)
    log_wg_reload(success, error or None)
    return success, error


async def _restart_interface() -> Tuple[bool, str]:
    code, _, stderr = await run_command(["wg-quick", "down", WG_INTERFACE])
    if code != 0:
        return False, f"wg-quick down failed: {stderr}"
    code, _, stderr = await run_command(["wg-quick", "up", WG_INTERFACE])
    if code != 0:
        return False, f"wg-quick up failed: {stderr}"
    return True, ""


async def _sync_interface(config_path: Path) -> Tuple[bool, str]:
    """Zero-downtime reload via `wg-quick strip` + `wg syncconf`."""
    code, stripped_config, stderr = await run_command(["wg-quick", "strip", str(config_path)])
    if code != 0:
        return False, f"Failed to strip config: {stderr}"

    with tempfile.NamedTemporaryFile(mode='w', delete=False) as tmp:
        tmp.write(stripped_config)
        tmp_path = tmp.name

    try:
        code, _, stderr = await run_command(["wg", "syncconf", WG_INTERFACE, tmp_path])
        return code == 0, stderr if code != 0 else ""
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)


def generate_client_config(
    private_key: str,
    assigned_ip: str,
    server_public_key: str
) -> str:
    """
    Generate the client configuration file content.
    This is what gets downloaded and encoded in the QR code.
    """
    return f"""[Interface]
PrivateKey = {private_key}
Address = {assigned_ip}/32
DNS = {CLIENT_DNS}
MTU = {CLIENT_MTU}

[Peer]
PublicKey = {server_public_key}
Endpoint = {VPN_SERVER_ENDPOINT}
AllowedIPs = 0.0.0.0/0, ::/0
PersistentKeepalive = {PERSISTENT_KEEPALIVE}
"""


def client_config_path(username: str, clients_dir: Path = CLIENTS_DIR) -> Path:
    """Location of a client's config. Rejects names that could escape clients_dir."""
    if not CLIENT_NAME_RE.match(username) or ".." in username:
        raise WireGuardError(f"Invalid client name: {username!r}")
    return clients_dir / username / f"{username}.conf"


def save_client_config(username: str, content: str, clients_dir: Path = CLIENTS_DIR) -> Path:
    path = client_config_path(username, clients_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.chmod(path, 0o600)
    return path
