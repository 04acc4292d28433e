"""
Live peer status.
Reads `wg show <interface>` and joins the result with parsed peers by public key.
"""
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .config import WG_INTERFACE, HANDSHAKE_TIMEOUT
from .peers import ConnectionStatus, DISCONNECTED, PeerRecord
from .wg import run_command

logger = logging.getLogger(__name__)

SIZE_UNITS = {
    'B': 1,
    'KiB': 1024,
    'MiB': 1024 ** 2,
    'GiB': 1024 ** 3,
    'TiB': 1024 ** 4,
    'KB': 1000,
    'MB': 1000 ** 2,
    'GB': 1000 ** 3,
    'TB': 1000 ** 4,
}

_SIZE_RE = re.compile(r'^([\d.]+)\s*(\w+)$')
_AGE_RE = re.compile(r'(\d+)\s+(year|day|hour|minute|second)s?')
_AGE_SECONDS = {
    'year': 365 * 86400,
    'day': 86400,
    'hour': 3600,
    'minute': 60,
    'second': 1,
}


def parse_data_size(size: Optional[str]) -> int:
    """
    Convert a human readable size ("512 MiB", "1.5 GB") to bytes.
    Unparseable input counts as 0.
    """
    if not size:
        return 0
    match = _SIZE_RE.match(size.strip())
    if not match:
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    return int(value * SIZE_UNITS.get(match.group(2), 1))


def handshake_age(handshake: str) -> Optional[int]:
    """Seconds since a handshake like "1 minute, 5 seconds ago"; None if never."""
    text = handshake.strip().lower()
    if not text or text == "(none)" or "never" in text:
        return None
    if text == "now":
        return 0
    parts = _AGE_RE.findall(text)
    if not parts:
        return None
    return sum(int(count) * _AGE_SECONDS[unit] for count, unit in parts)


def parse_wg_show(output: str, timeout: int = HANDSHAKE_TIMEOUT) -> Dict[str, ConnectionStatus]:
    """
    Parse the human readable `wg show` output into statuses keyed by public key.
    The interface block at the top is skipped.
    """
    statuses: Dict[str, dict] = {}
    current: Optional[dict] = None

    for raw in output.splitlines():
        line = raw.strip()
        if ":" not in line:
            continue
        field, value = line.split(":", 1)
        value = value.strip()

        if field == "peer":
            current = {}
            statuses[value] = current
        elif current is None:
            continue
        elif field == "endpoint":
            current["endpoint"] = value if value != "(none)" else None
        elif field == "latest handshake":
            current["latest_handshake"] = value
            age = handshake_age(value)
            current["is_connected"] = age is not None and age < timeout
        elif field == "transfer":
            for part in value.split(","):
                part = part.strip()
                if part.endswith(" received"):
                    current["transfer_received"] = part[:-len(" received")].strip()
                elif part.endswith(" sent"):
                    current["transfer_sent"] = part[:-len(" sent")].strip()

    return {key: ConnectionStatus(**info) for key, info in statuses.items()}


async def get_connection_status() -> Dict[str, ConnectionStatus]:
    """Query the running interface. Failure means every peer shows as offline."""
    try:
        code, stdout, stderr = await run_command(["wg", "show", WG_INTERFACE])
    except OSError as e:
        logger.warning("Cannot run wg: %s", e)
        return {}
    if code != 0:
        logger.warning("wg show %s failed: %s", WG_INTERFACE, stderr)
        return {}
    return parse_wg_show(stdout)


def merge_status(
    peers: Iterable[PeerRecord],
    status_by_key: Mapping[str, ConnectionStatus],
) -> List[Tuple[PeerRecord, ConnectionStatus]]:
    """Pair every peer with its live status, defaulting to disconnected."""
    return [(peer, status_by_key.get(peer.public_key, DISCONNECTED)) for peer in peers]
