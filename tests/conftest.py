import os
import tempfile

# Settings are read at import time, so point them at a scratch directory first.
_SCRATCH = tempfile.mkdtemp(prefix="wgpanel-test-")
os.environ["DATA_DIR"] = _SCRATCH
os.environ["AUDIT_LOG_PATH"] = os.path.join(_SCRATCH, "audit.log")
os.environ["LOG_PATH"] = os.path.join(_SCRATCH, "panel.log")
os.environ["WG_CONFIG_PATH"] = os.path.join(_SCRATCH, "wg0.conf")
os.environ["BACKUP_DIR"] = os.path.join(_SCRATCH, "backup")
os.environ["CLIENTS_DIR"] = os.path.join(_SCRATCH, "clients")
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "wireguard123"
os.environ["ADMIN_PASSWORD_HASH"] = ""
os.environ["SESSION_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from wgpanel.auth import create_session_token
from wgpanel.limiter import limiter
from wgpanel.main import app
from wgpanel.peers import ConnectionStatus
from wgpanel.store import ConfigStore, get_store
from wgpanel.users import get_clients_dir, get_keygen, get_status_source

SAMPLE_CONFIG = """\
[Interface]
Address = 10.0.0.1/24
ListenPort = 51820
PrivateKey = SERVERPRIVATEKEY=

[Peer]
#alice (alice@example.com)
PublicKey = ALICEKEY=
AllowedIPs = 10.0.0.2/32

#[Peer]
# bob
#PublicKey = BOB+KEY/1=
#AllowedIPs = 10.0.0.3/32

[Peer]
#carol@example.com
PublicKey = CAROLKEY=
AllowedIPs = 10.0.0.4/32
PersistentKeepalive = 25
"""


class FakeReloader:
    """Stands in for reload_wireguard and records every call."""

    def __init__(self, success=True, error="wg-quick: interface busy"):
        self.success = success
        self.error = error
        self.calls = []

    async def __call__(self, config_path):
        self.calls.append(config_path)
        return (True, "") if self.success else (False, self.error)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "wg0.conf"
    path.write_text(SAMPLE_CONFIG)
    return path


@pytest.fixture
def reloader():
    return FakeReloader()


@pytest.fixture
def store(tmp_path, config_file, reloader):
    return ConfigStore(config_file, tmp_path / "backup", reloader)


@pytest.fixture
def live_status():
    return {
        "ALICEKEY=": ConnectionStatus(
            is_connected=True,
            latest_handshake="12 seconds ago",
            endpoint="203.0.113.7:51413",
            transfer_received="512 MiB",
            transfer_sent="20 MiB",
        ),
    }


@pytest.fixture
def client(tmp_path, store, live_status):
    async def status_source():
        return live_status

    async def keygen():
        return "NEWPRIVATEKEY=", "NEWPUBLICKEY="

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_status_source] = lambda: status_source
    app.dependency_overrides[get_keygen] = lambda: keygen
    app.dependency_overrides[get_clients_dir] = lambda: tmp_path / "clients"
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_session_token('admin')}"}
