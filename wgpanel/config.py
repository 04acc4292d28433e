"""
Configuration for the WireGuard Peer Panel.
Values come from the environment, optionally loaded from a .env file.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Paths
PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")

DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
TEMPLATES_DIR = PROJECT_ROOT / "templates"

# WireGuard configuration
WG_CONFIG_PATH = Path(os.getenv("WG_CONFIG_PATH", "/etc/wireguard/wg0.conf"))
WG_INTERFACE = os.getenv("WG_INTERFACE", "wg0")
# "syncconf" applies changes without dropping the interface, "restart" runs wg-quick down/up
WG_RELOAD_STRATEGY = os.getenv("WG_RELOAD_STRATEGY", "syncconf")

# Backups of wg0.conf taken before every write
BACKUP_DIR = Path(os.getenv("BACKUP_DIR", str(PROJECT_ROOT / "backup")))
BACKUP_RETENTION = int(os.getenv("BACKUP_RETENTION", "10"))

# Generated client configs: CLIENTS_DIR/<name>/<name>.conf
CLIENTS_DIR = Path(os.getenv("CLIENTS_DIR", "/etc/wireguard/clients"))

# Address allocation starts after this one when no peer has an address yet
DEFAULT_LAST_IP = os.getenv("DEFAULT_LAST_IP", "10.0.0.1")

# Server Endpoint
VPN_SERVER_ENDPOINT = os.getenv("VPN_SERVER_ENDPOINT", "vpn.example.com:51820")

# Client config defaults
CLIENT_DNS = os.getenv("CLIENT_DNS", "1.1.1.1")
CLIENT_MTU = int(os.getenv("CLIENT_MTU", "1420"))
PERSISTENT_KEEPALIVE = int(os.getenv("PERSISTENT_KEEPALIVE", "25"))

# A peer counts as connected while its last handshake is younger than this (seconds)
HANDSHAKE_TIMEOUT = int(os.getenv("HANDSHAKE_TIMEOUT", "180"))

# Admin credentials. ADMIN_PASSWORD_HASH (bcrypt) wins over the plain password.
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "wireguard123")
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH", "")

# Session
SESSION_SECRET_KEY = os.getenv("SESSION_SECRET", "change-this-in-production-use-openssl-rand-hex-32")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", "86400"))  # 24 hours

# Branding
LOGO_URL = os.getenv("LOGO_URL", "")

# Logs
AUDIT_LOG_PATH = Path(os.getenv("AUDIT_LOG_PATH", str(DATA_DIR / "audit.log")))
LOG_PATH = Path(os.getenv("LOG_PATH", str(DATA_DIR / "panel.log")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
