from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from wgpanel import users as users_module
from wgpanel.main import app
from wgpanel.wgconf import parse_config

from conftest import SAMPLE_CONFIG, FakeReloader


@pytest.fixture
def server_key(monkeypatch):
    async def fake_server_key(interface):
        assert "PrivateKey = SERVERPRIVATEKEY=" in interface
        return "SERVERPUBLICKEY="

    monkeypatch.setattr(users_module, "get_server_public_key", fake_server_key)


def test_requires_token(client):
    assert client.get("/api/users").status_code == 401
    response = client.get("/api/users", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 403


def test_list_users(client, auth_headers):
    response = client.get("/api/users", headers=auth_headers)

    assert response.status_code == 200
    users = response.json()["users"]
    assert [u["name"] for u in users] == ["alice", "bob", "carol"]
    assert users[1] == {
        "name": "bob",
        "email": "",
        "public_key": "BOB+KEY/1=",
        "allowed_ips": "10.0.0.3/32",
        "enabled": False,
    }


def test_list_users_skips_incomplete_entries(client, auth_headers, config_file):
    config_file.write_text(SAMPLE_CONFIG + "\n[Peer]\nPublicKey = NONAME=\nAllowedIPs = 10.0.0.9/32\n")
    users = client.get("/api/users", headers=auth_headers).json()["users"]
    assert "NONAME=" not in [u["public_key"] for u in users]


def test_status_merges_live_data(client, auth_headers):
    data = client.get("/api/users/status", headers=auth_headers).json()

    assert data["summary"] == {"total": 3, "enabled": 2, "connected": 1}
    first = data["users"][0]
    assert first["name"] == "alice"
    assert first["connection_status"]["is_connected"] is True
    assert first["usage_bytes"] == 532 * 1024 ** 2
    offline = data["users"][1]["connection_status"]
    assert offline == {
        "is_connected": False,
        "latest_handshake": None,
        "endpoint": None,
        "transfer_received": "0 B",
        "transfer_sent": "0 B",
    }


def test_status_sorting(client, auth_headers):
    by_name = client.get("/api/users/status?sort=name", headers=auth_headers).json()["users"]
    assert [u["name"] for u in by_name] == ["alice", "bob", "carol"]

    by_name_desc = client.get("/api/users/status?sort=name&order=desc", headers=auth_headers).json()["users"]
    assert [u["name"] for u in by_name_desc] == ["carol", "bob", "alice"]

    by_status = client.get("/api/users/status?sort=status&order=asc", headers=auth_headers).json()["users"]
    assert by_status[0]["name"] == "bob"

    assert client.get("/api/users/status?sort=shoe", headers=auth_headers).status_code == 400


def test_toggle_user(client, auth_headers, config_file, reloader):
    response = client.patch(
        f"/api/users/{quote('BOB+KEY/1=', safe='')}",
        json={"enabled": True},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["warning"] is None
    assert len(reloader.calls) == 1
    bob = parse_config(config_file.read_text()).peers[1]
    assert bob.enabled is True


def test_toggle_requires_boolean(client, auth_headers):
    response = client.patch("/api/users/ALICEKEY=", json={"enabled": "no"}, headers=auth_headers)
    assert response.status_code == 422


def test_toggle_unknown_user(client, auth_headers, config_file):
    response = client.patch("/api/users/MISSING=", json={"enabled": False}, headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["success"] is False
    assert config_file.read_text() == SAMPLE_CONFIG


def test_toggle_reports_reload_failure(client, auth_headers, store, config_file):
    store.reloader = FakeReloader(success=False)

    response = client.patch("/api/users/ALICEKEY=", json={"enabled": False}, headers=auth_headers)

    assert response.status_code == 200
    assert "reload failed" in response.json()["message"]
    assert response.json()["warning"]
    assert parse_config(config_file.read_text()).peers[0].enabled is False


def test_bulk_toggle_partial_success(client, auth_headers, config_file):
    response = client.patch(
        "/api/users/bulk",
        json={"publicKeys": ["ALICEKEY=", "CAROLKEY=", "MISSING="], "enabled": False},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["updated"] == 2
    assert body["notFoundKeys"] == ["MISSING="]
    peers = parse_config(config_file.read_text()).peers
    assert [p.enabled for p in peers] == [False, False, False]


def test_bulk_toggle_requires_keys(client, auth_headers):
    response = client.patch("/api/users/bulk", json={"publicKeys": [], "enabled": True}, headers=auth_headers)
    assert response.status_code == 422


def test_create_user(client, auth_headers, config_file, tmp_path, server_key):
    response = client.post("/api/users", json={"email": "dave@example.com"}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["username"] == "dave"
    assert body["user"]["ip"] == "10.0.0.5"
    assert body["qr_code"].startswith("data:image/png;base64,")
    assert "PrivateKey = NEWPRIVATEKEY=" in body["client_config"]
    assert "PublicKey = SERVERPUBLICKEY=" in body["client_config"]

    peers = parse_config(config_file.read_text()).peers
    assert peers[-1].name == "dave"
    assert peers[-1].email == "dave@example.com"
    assert peers[-1].public_key == "NEWPUBLICKEY="
    assert peers[-1].allowed_ips == "10.0.0.5/32"
    assert (tmp_path / "clients" / "dave" / "dave.conf").read_text() == body["client_config"]


def test_create_user_rejects_duplicates(client, auth_headers, config_file):
    response = client.post("/api/users", json={"email": "alice@other.org"}, headers=auth_headers)

    assert response.status_code == 409
    assert config_file.read_text() == SAMPLE_CONFIG


def test_create_user_rejects_bad_email(client, auth_headers):
    response = client.post("/api/users", json={"email": "not-an-email"}, headers=auth_headers)
    assert response.status_code == 422


def test_create_user_address_in_use(client, auth_headers, config_file, server_key):
    # last peer holds .4 while another peer already owns .5
    config_file.write_text(
        "[Interface]\nPrivateKey = SERVERPRIVATEKEY=\n\n"
        "[Peer]\n#x\nPublicKey = X=\nAllowedIPs = 10.0.0.5/32\n\n"
        "[Peer]\n#y\nPublicKey = Y=\nAllowedIPs = 10.0.0.4/32\n"
    )

    response = client.post("/api/users", json={"email": "dave@example.com"}, headers=auth_headers)

    assert response.status_code == 409
    assert "10.0.0.5" in response.json()["error"]


def test_client_config_download(client, auth_headers, tmp_path):
    path = tmp_path / "clients" / "alice" / "alice.conf"
    path.parent.mkdir(parents=True)
    path.write_text("[Interface]\nPrivateKey = ALICEPRIVATE=\n")

    download = client.get("/api/users/alice/config", headers=auth_headers)
    assert download.status_code == 200
    assert "alice.conf" in download.headers["content-disposition"]
    assert download.text == path.read_text()

    content = client.get("/api/users/alice/config/content", headers=auth_headers).json()
    assert content["config"] == path.read_text()
    assert content["filename"] == "alice.conf"

    assert client.get("/api/users/nobody/config", headers=auth_headers).status_code == 404


def test_get_config_masks_keys(client, auth_headers):
    config = client.get("/api/config", headers=auth_headers).json()["config"]
    assert "SERVERPRIVATEKEY" not in config
    assert "ALICEKEY" not in config
    assert "AllowedIPs = 10.0.0.2/32" in config


def test_update_config(client, auth_headers, config_file, store):
    new_text = SAMPLE_CONFIG.replace("10.0.0.4/32", "10.0.0.40/32")

    response = client.post("/api/config", json={"config": new_text}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["peers"] == 3
    assert config_file.read_text() == new_text
    assert len(list(store.backup_dir.iterdir())) == 1


def test_update_config_rejects_masked_text(client, auth_headers, config_file):
    masked = client.get("/api/config", headers=auth_headers).json()["config"]
    response = client.post("/api/config", json={"config": masked}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Configuration still contains masked keys"}
    assert config_file.read_text() == SAMPLE_CONFIG


def test_missing_config_file_is_a_server_error(client, auth_headers, config_file):
    config_file.unlink()

    response = client.get("/api/config", headers=auth_headers)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "WireGuard operation failed"
    assert str(config_file) in body["details"]


def test_branding_is_public(client):
    response = client.get("/api/config/branding")
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_pages_render_with_lifespan(auth_headers):
    with TestClient(app) as client:
        assert "WireGuard Peer Panel" in client.get("/login").text
        assert client.get("/").status_code == 200

        client.cookies.set("admin_session", auth_headers["Authorization"].split(" ", 1)[1])
        response = client.get("/login", follow_redirects=False)
        assert response.status_code == 303
