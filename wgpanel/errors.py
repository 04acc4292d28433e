"""
Errors raised by the configuration engine.
"""


class PanelError(Exception):
    """Base class for configuration engine errors."""
    pass


class ParseMalformed(PanelError):
    """Uploaded configuration text is not a usable WireGuard config.

    The peer parser itself is tolerant and never raises this; it skips
    lines it does not understand.
    """
    pass


class PeerNotFound(PanelError):
    """No peer carries the requested public key."""

    def __init__(self, public_key: str):
        super().__init__(f"Peer not found: {public_key}")
        self.public_key = public_key


class DuplicatePeer(PanelError):
    """A new peer collides with an existing one on key, name or email."""

    def __init__(self, field: str, value: str):
        super().__init__(f"A peer with this {field} already exists: {value}")
        self.field = field
        self.value = value


class AddressInUse(PanelError):
    """The next sequential address is already allowed for some peer."""

    def __init__(self, address: str):
        super().__init__(f"Generated IP address is already in use: {address}")
        self.address = address


class InvalidAddress(PanelError):
    """An address cannot be used by the sequential allocator."""
    pass
