import pytest

from wgpanel.peers import ConnectionStatus, PeerRecord
from wgpanel.status import handshake_age, merge_status, parse_data_size, parse_wg_show

WG_SHOW = """\
interface: wg0
  public key: SERVERPUB=
  private key: (hidden)
  listening port: 51820

peer: ALICEKEY=
  endpoint: 203.0.113.7:51413
  allowed ips: 10.0.0.2/32
  latest handshake: 1 minute, 5 seconds ago
  transfer: 512.40 MiB received, 20.11 MiB sent

peer: CAROLKEY=
  endpoint: 198.51.100.4:40000
  allowed ips: 10.0.0.4/32
  latest handshake: 2 hours, 3 minutes, 1 second ago
  transfer: 1.20 GiB received, 300 KiB sent
  persistent keepalive: every 25 seconds

peer: DAVEKEY=
  allowed ips: 10.0.0.5/32
"""


def test_parse_wg_show():
    statuses = parse_wg_show(WG_SHOW, timeout=180)

    assert set(statuses) == {"ALICEKEY=", "CAROLKEY=", "DAVEKEY="}
    assert statuses["ALICEKEY="] == ConnectionStatus(
        is_connected=True,
        latest_handshake="1 minute, 5 seconds ago",
        endpoint="203.0.113.7:51413",
        transfer_received="512.40 MiB",
        transfer_sent="20.11 MiB",
    )
    assert statuses["CAROLKEY="].is_connected is False
    assert statuses["CAROLKEY="].transfer_sent == "300 KiB"
    assert statuses["DAVEKEY="] == ConnectionStatus()


@pytest.mark.parametrize("text,seconds", [
    ("Now", 0),
    ("45 seconds ago", 45),
    ("1 minute, 5 seconds ago", 65),
    ("1 day, 2 hours ago", 93600),
    ("(never)", None),
])
def test_handshake_age(text, seconds):
    assert handshake_age(text) == seconds


@pytest.mark.parametrize("size,expected", [
    ("0 B", 0),
    ("512 MiB", 512 * 1024 ** 2),
    ("1.5 KiB", 1536),
    ("2 GB", 2 * 1000 ** 3),
    ("3 KB", 3000),
    ("garbage", 0),
    ("", 0),
    (None, 0),
])
def test_parse_data_size(size, expected):
    assert parse_data_size(size) == expected


def test_merge_defaults_to_disconnected():
    peers = [
        PeerRecord(name="alice", public_key="ALICEKEY="),
        PeerRecord(name="bob", public_key="BOBKEY=", enabled=False),
    ]
    live = ConnectionStatus(is_connected=True, transfer_received="1 MiB")
    statuses = {"ALICEKEY=": live, "STRANGER=": live}

    merged = merge_status(peers, statuses)

    assert merged == [(peers[0], live), (peers[1], ConnectionStatus())]
    assert merged[1][1].transfer_received == "0 B"
    assert len(statuses) == 2
