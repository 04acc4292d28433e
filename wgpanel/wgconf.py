"""
wg0.conf parser and generator.

The enabled/disabled state of a peer lives in the text itself: a disabled
peer is the same block with every line commented out. Parsing classifies
each line first, then feeds the classified lines through a two-state
machine (before the first peer / inside a peer).
"""
import logging
import re
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional, Tuple

from .errors import ParseMalformed
from .peers import ParsedConfig, PeerRecord

logger = logging.getLogger(__name__)

PEER_MARKER = "[Peer]"
COMMENT = "#"

_FIELD_RE = re.compile(r'^([A-Za-z][A-Za-z0-9]*)\s*=\s*(.*)$')
_LABEL_WITH_EMAIL_RE = re.compile(r'^(.+?)\s*\((.+@.+)\)$')
_SECRET_RE = re.compile(r'((?:Public|Private|Preshared)Key\s*=\s*)[A-Za-z0-9+/=]+')

MASK = "•" * 20


class LineKind(Enum):
    BLANK = "blank"
    SECTION = "section"
    LABEL = "label"
    COMMENT = "comment"
    FIELD = "field"
    OTHER = "other"


class Line(NamedTuple):
    kind: LineKind
    text: str               # stripped line
    commented: bool = False
    key: str = ""
    value: str = ""


class ParserState(Enum):
    BEFORE_FIRST_PEER = "before_first_peer"
    IN_PEER = "in_peer"


def classify_line(raw: str) -> Line:
    """Tag one line of wg0.conf with what it means to the parser."""
    text = raw.strip()
    if not text:
        return Line(LineKind.BLANK, text)

    commented = text.startswith(COMMENT)
    if text in (PEER_MARKER, COMMENT + PEER_MARKER):
        return Line(LineKind.SECTION, text, commented)

    body = text.lstrip(COMMENT).strip() if commented else text
    match = _FIELD_RE.match(body)
    if match:
        return Line(LineKind.FIELD, text, commented, match.group(1), match.group(2).strip())

    if commented and "=" not in text and body:
        return Line(LineKind.LABEL, text, True, value=text[1:].strip())
    if commented and body:
        return Line(LineKind.COMMENT, text, True)

    return Line(LineKind.OTHER, text, commented)


def parse_label(label: str) -> Tuple[str, str]:
    """Split a peer label into (name, email)."""
    match = _LABEL_WITH_EMAIL_RE.match(label)
    if match:
        return match.group(1).strip(), match.group(2).strip()
    if "@" in label:
        return label.split("@")[0].strip(), label
    return label, ""


class _PeerBuilder:
    """Accumulates the lines of the peer currently being parsed."""

    def __init__(self, enabled: bool):
        self.enabled = enabled
        self.name = ""
        self.email = ""
        self.public_key = ""
        self.allowed_ips = ""
        self.has_label = False
        self.extras: List[Line] = []

    def feed(self, line: Line) -> None:
        if line.kind is LineKind.LABEL:
            if self.has_label:
                # first label wins, later ones are kept as plain comments
                self.extras.append(line)
                return
            self.name, self.email = parse_label(line.value)
            self.has_label = True
        elif line.kind is LineKind.FIELD:
            if line.key == "PublicKey":
                self.public_key = line.value
                if line.commented:
                    self.enabled = False
            elif line.key == "AllowedIPs":
                self.allowed_ips = line.value
                if line.commented:
                    self.enabled = False
            else:
                self.extras.append(line)
        elif line.kind is LineKind.COMMENT:
            self.extras.append(line)
        elif line.kind is LineKind.OTHER:
            logger.debug("Ignoring unrecognized peer line: %r", line.text)

    def build(self) -> Optional[PeerRecord]:
        if not (self.public_key or self.allowed_ips):
            return None
        return PeerRecord(
            name=self.name,
            email=self.email,
            public_key=self.public_key,
            allowed_ips=self.allowed_ips,
            enabled=self.enabled,
            extra_lines=tuple(self._extra_text(line) for line in self.extras),
        )

    def _extra_text(self, line: Line) -> str:
        # disabled peers store their fields as they would read when enabled
        if not self.enabled and line.kind is LineKind.FIELD and line.commented:
            return line.text[1:].strip()
        return line.text


def parse_config(text: str) -> ParsedConfig:
    """
    Parse wg0.conf into its interface prefix and ordered peers.

    The parser is tolerant: lines it does not understand are skipped, never
    rejected. Peers with neither a public key nor an allowance are dropped.
    """
    state = ParserState.BEFORE_FIRST_PEER
    prefix_lines: List[str] = []
    peers: List[PeerRecord] = []
    current: Optional[_PeerBuilder] = None

    for raw in text.splitlines():
        line = classify_line(raw)

        if line.kind is LineKind.SECTION:
            if current is not None:
                _flush(current, peers)
            current = _PeerBuilder(enabled=not line.commented)
            state = ParserState.IN_PEER
        elif state is ParserState.BEFORE_FIRST_PEER:
            prefix_lines.append(raw)
        else:
            current.feed(line)

    if current is not None:
        _flush(current, peers)

    while prefix_lines and not prefix_lines[-1].strip():
        prefix_lines.pop()

    return ParsedConfig("\n".join(prefix_lines), peers)


def _flush(builder: _PeerBuilder, peers: List[PeerRecord]) -> None:
    peer = builder.build()
    if peer is not None:
        peers.append(peer)


def render_peer(peer: PeerRecord) -> str:
    """Render one peer block, commenting every line out when disabled."""
    if peer.enabled:
        lines = [
            PEER_MARKER,
            f"{COMMENT}{peer.label}",
            f"PublicKey = {peer.public_key}",
            f"AllowedIPs = {peer.allowed_ips}",
        ]
        lines.extend(peer.extra_lines)
    else:
        lines = [
            COMMENT + PEER_MARKER,
            f"{COMMENT} {peer.label}",
            f"{COMMENT}PublicKey = {peer.public_key}",
            f"{COMMENT}AllowedIPs = {peer.allowed_ips}",
        ]
        for extra in peer.extra_lines:
            if classify_line(extra).kind in (LineKind.LABEL, LineKind.COMMENT):
                lines.append(extra)
            else:
                lines.append(COMMENT + extra)
    return "\n".join(lines) + "\n\n"


def generate_config(interface: str, peers: Iterable[PeerRecord]) -> str:
    """
    Build wg0.conf text from an interface prefix and peers, in order.

    parse_config(generate_config(prefix, peers)) returns (prefix, peers).
    """
    parts = []
    if interface:
        parts.append(interface + "\n\n")
    for peer in peers:
        parts.append(render_peer(peer))
    return "".join(parts)


def validate_config(text: str) -> ParsedConfig:
    """Parse an uploaded configuration, rejecting text with no [Interface] section."""
    if not any(line.strip() == "[Interface]" for line in text.splitlines()):
        raise ParseMalformed("Configuration has no [Interface] section")
    if MASK in text:
        raise ParseMalformed("Configuration still contains masked keys")
    return parse_config(text)


def mask_keys(text: str) -> str:
    """Hide key material before showing the raw config to a browser."""
    return _SECRET_RE.sub(lambda m: m.group(1) + MASK, text)
