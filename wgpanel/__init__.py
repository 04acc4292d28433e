"""WireGuard Peer Panel."""
