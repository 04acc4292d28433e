"""
Peer record model.
One [Peer] block of wg0.conf, as seen by the panel.
"""
from typing import List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class PeerRecord(BaseModel):
    """
    A single peer entry.

    Records are immutable; operations that change a peer return a copy.
    `extra_lines` holds the peer's other lines (PresharedKey, Endpoint,
    secondary comments) in file order. For disabled peers they are stored
    with one leading comment marker removed.
    """
    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""
    public_key: str = ""
    allowed_ips: str = ""
    enabled: bool = True
    extra_lines: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        """Text of the comment line naming this peer."""
        if self.email:
            return f"{self.name} ({self.email})" if self.name else self.email
        return self.name

    def with_enabled(self, enabled: bool) -> "PeerRecord":
        if self.enabled == enabled:
            return self
        return self.model_copy(update={"enabled": enabled})

    def addresses(self) -> List[str]:
        """Addresses in the allowance, without prefix lengths."""
        return [
            entry.strip().split("/")[0]
            for entry in self.allowed_ips.split(",")
            if entry.strip()
        ]


class ConnectionStatus(BaseModel):
    """Live connection telemetry for one peer. Never persisted."""
    model_config = ConfigDict(frozen=True)

    is_connected: bool = False
    latest_handshake: Optional[str] = None
    endpoint: Optional[str] = None
    transfer_received: str = "0 B"
    transfer_sent: str = "0 B"


DISCONNECTED = ConnectionStatus()


class ParsedConfig(NamedTuple):
    """wg0.conf split into its interface prefix and ordered peers."""
    interface: str
    peers: List[PeerRecord]
