"""Tests for the ICMP echo probe."""

import time
from unittest.mock import MagicMock, patch

import pytest
from scapy.layers.inet import ICMP, IP
from scapy.layers.inet6 import ICMPv6EchoRequest

from reverseping.config import DiscoveryConfig
from reverseping.discovery.ping import PingProbe, _send_echo
from reverseping.exceptions import InvalidSubnetError


def raw_socket(answered=()):
    """Stand-in for scapy's raw L3 socket class; ``sock.sr`` returns ``answered``."""
    sock = MagicMock()
    sock.sr.return_value = (list(answered), [])
    socket_cls = MagicMock()
    socket_cls.return_value.__enter__.return_value = sock
    return socket_cls, sock


def test_send_echo_builds_single_request_and_measures_rtt():
    sent = MagicMock(sent_time=100.0)
    received = MagicMock(time=100.012)
    socket_cls, sock = raw_socket([(sent, received)])
    with patch("reverseping.discovery.ping.L3RawSocket", socket_cls):
        rtt = _send_echo("10.0.0.5", 2.0)

    assert rtt == pytest.approx(12.0, abs=1e-6)
    packet = sock.sr.call_args.args[0]
    assert packet[IP].dst == "10.0.0.5"
    assert packet[ICMP].id == 0
    assert packet[ICMP].seq == 0
    assert sock.sr.call_args.kwargs["timeout"] == 2.0
    socket_cls.return_value.__exit__.assert_called_once()


def test_send_echo_ipv6_uses_icmpv6():
    socket_cls, sock = raw_socket()
    with patch("reverseping.discovery.ping.L3RawSocket6", socket_cls):
        assert _send_echo("fe80::1", 2.0) is None

    packet = sock.sr.call_args.args[0]
    assert packet.haslayer(ICMPv6EchoRequest)
    assert packet[ICMPv6EchoRequest].seq == 0


def test_send_echo_no_reply():
    socket_cls, _ = raw_socket()
    with patch("reverseping.discovery.ping.L3RawSocket", socket_cls):
        assert _send_echo("10.0.0.9", 2.0) is None


def test_unanswered_echo_costs_only_its_timeout():
    """The kernel resolves the next hop; no scapy-side ARP wait precedes the echo."""
    timeout = 0.2

    def wait_for_reply(packet, timeout, verbose):
        time.sleep(timeout)
        return [], [packet]

    socket_cls, sock = raw_socket()
    sock.sr.side_effect = wait_for_reply
    with patch("reverseping.discovery.ping.L3RawSocket", socket_cls), \
         patch("scapy.layers.l2.getmacbyip") as getmacbyip:
        started = time.monotonic()
        assert _send_echo("192.0.2.253", timeout) is None
        elapsed = time.monotonic() - started

    assert elapsed < timeout + 0.3
    sock.sr.assert_called_once()
    getmacbyip.assert_not_called()


@pytest.fixture
def probe():
    return PingProbe(DiscoveryConfig(ping_batch_size=200, ping_timeout_seconds=2.0))


def fake_echo(address, timeout):
    if address == "10.0.0.5":
        return 12.0
    if address == "10.0.0.6":
        raise PermissionError("Operation not permitted")
    if address == "10.0.0.7":
        raise OSError("Network is unreachable")
    return None


async def test_ping_batch_drops_failures_silently(probe):
    with patch("reverseping.discovery.ping._send_echo", side_effect=fake_echo):
        results = await probe.ping_batch(["10.0.0.5", "10.0.0.6", "10.0.0.7", "10.0.0.9"])

    assert [(r.address, r.rtt_ms) for r in results] == [("10.0.0.5", 12.0)]


async def test_probe_passes_configured_timeout(probe):
    with patch("reverseping.discovery.ping._send_echo", return_value=1.5) as mock_echo:
        result = await probe.probe("10.0.0.5")

    assert result.rtt_ms == 1.5
    mock_echo.assert_called_once_with("10.0.0.5", 2.0)


async def test_ping_addresses_runs_sequential_batches(probe):
    addresses = [f"10.0.{i // 256}.{i % 256}" for i in range(450)]
    batch_sizes = []
    original = PingProbe.ping_batch

    async def record_batch(self, batch):
        batch_sizes.append(len(batch))
        return await original(self, batch)

    with patch.object(PingProbe, "ping_batch", record_batch), \
         patch("reverseping.discovery.ping._send_echo", return_value=None):
        results = await probe.ping_addresses(addresses)

    assert batch_sizes == [200, 200, 50]
    assert results == []


async def test_ping_subnet_enumerates_range(probe):
    probed = []

    def recording_echo(address, timeout):
        probed.append(address)
        return fake_echo(address, timeout)

    with patch("reverseping.discovery.ping._send_echo", side_effect=recording_echo):
        results = await probe.ping_subnet("10.0.0.1", "255.255.255.240")

    assert sorted(probed, key=lambda a: int(a.rsplit(".", 1)[1])) == [f"10.0.0.{i}" for i in range(16)]
    assert [r.address for r in results] == ["10.0.0.5"]


async def test_ping_subnet_invalid_mask(probe):
    with pytest.raises(InvalidSubnetError):
        await probe.ping_subnet("10.0.0.1", "255.0.255.0")
