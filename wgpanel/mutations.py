"""
Peer mutations.

Pure functions over the ordered peer list: they never touch the file and
never modify their input. ConfigStore runs them inside a read-modify-write
cycle.
"""
import ipaddress
from typing import Iterable, List, Sequence, Tuple

from .errors import AddressInUse, DuplicatePeer, InvalidAddress, PeerNotFound
from .peers import PeerRecord


def set_enabled(peers: Sequence[PeerRecord], public_key: str, enabled: bool) -> List[PeerRecord]:
    """Return a copy of `peers` with one peer enabled or disabled."""
    if not any(peer.public_key == public_key for peer in peers):
        raise PeerNotFound(public_key)
    return [
        peer.with_enabled(enabled) if peer.public_key == public_key else peer
        for peer in peers
    ]


def bulk_set_enabled(
    peers: Sequence[PeerRecord],
    public_keys: Iterable[str],
    enabled: bool,
) -> Tuple[List[PeerRecord], List[str]]:
    """
    Enable or disable several peers at once.

    Unknown keys do not abort the operation: every known key is applied and
    the unknown ones are returned, in the order given, without duplicates.
    """
    known = {peer.public_key for peer in peers}
    wanted = set()
    not_found: List[str] = []
    for key in public_keys:
        if key in known:
            wanted.add(key)
        elif key not in not_found:
            not_found.append(key)

    updated = [
        peer.with_enabled(enabled) if peer.public_key in wanted else peer
        for peer in peers
    ]
    return updated, not_found


def insert_peer(peers: Sequence[PeerRecord], new_peer: PeerRecord) -> List[PeerRecord]:
    """Append a peer, refusing any collision on public key, name or email."""
    for peer in peers:
        if new_peer.public_key and peer.public_key == new_peer.public_key:
            raise DuplicatePeer("public key", new_peer.public_key)
        if new_peer.name and peer.name == new_peer.name:
            raise DuplicatePeer("name", new_peer.name)
        if new_peer.email and peer.email == new_peer.email:
            raise DuplicatePeer("email", new_peer.email)
    return list(peers) + [new_peer]


def last_assigned_address(peers: Sequence[PeerRecord], default: str) -> str:
    """Address of the last peer in file order that has an IPv4 allowance."""
    for peer in reversed(peers):
        for address in peer.addresses():
            try:
                ipaddress.IPv4Address(address)
            except ValueError:
                continue
            return address
    return default


def next_allowed_address(peers: Sequence[PeerRecord], last_address: str) -> str:
    """
    Next address after `last_address`, found by bumping the last octet once.

    This is a strictly sequential allocator: it does not skip ahead past a
    taken address, does not reuse freed ones and does not roll over into the
    third octet. A taken candidate raises AddressInUse.
    """
    try:
        octets = [int(part) for part in last_address.strip().split(".")]
    except ValueError:
        raise InvalidAddress(f"Not an IPv4 address: {last_address!r}")
    if len(octets) != 4 or not all(0 <= octet <= 255 for octet in octets):
        raise InvalidAddress(f"Not an IPv4 address: {last_address!r}")
    if octets[3] >= 255:
        raise InvalidAddress(f"No address left after {last_address}")

    octets[3] += 1
    candidate = ".".join(str(octet) for octet in octets)

    for peer in peers:
        if candidate in peer.addresses():
            raise AddressInUse(candidate)
    return candidate
