"""Tests for the data models."""

import pytest
from pydantic import ValidationError

from reverseping.models import (
    ApiError,
    DevicePing,
    DiscoveredDevice,
    HostOutcome,
    NetworkInterface,
    OutcomeStatus,
    PingReport,
    ResolvedHost,
)


def make_device(**overrides):
    fields = dict(
        mac="aa:bb:cc:dd:ee:ff",
        local_address="10.0.0.5",
        ping_ms=12,
        hostname="host5.local.",
        vendor="Acme",
        meta="role=printer, X200",
    )
    fields.update(overrides)
    return DiscoveredDevice(**fields)


def test_device_str_full():
    assert str(make_device()) == "aa:bb:cc:dd:ee:ff - Acme - 10.0.0.5 - host5.local. - role=printer, X200 (12ms)"


def test_device_str_marks_absent_fields():
    device = make_device(hostname=None, vendor=None, meta=None, ping_ms=0)
    assert str(device) == "aa:bb:cc:dd:ee:ff - ? - 10.0.0.5 - ? - ? (0ms)"


def test_report_payload_shape():
    report = PingReport.from_devices({"aa:bb:cc:dd:ee:ff": make_device()})

    assert report.model_dump() == {
        "devices": {
            "aa:bb:cc:dd:ee:ff": {
                "ping_ms": 12,
                "local_address": "10.0.0.5",
                "mac": "aa:bb:cc:dd:ee:ff",
                "hostname": "host5.local.",
                "meta": "role=printer, X200",
                "friendly_name": None,
                "is_agent": False,
            }
        }
    }


def test_empty_report():
    assert PingReport.from_devices({}).model_dump() == {"devices": {}}


def test_device_ping_does_not_carry_vendor():
    with pytest.raises(ValidationError):
        DevicePing(vendor="Acme")


def test_api_error_ignores_unknown_fields():
    assert ApiError.model_validate_json('{"error": "bad agent", "code": 4}').error == "bad agent"


def test_network_interface_network():
    iface = NetworkInterface(name="eth0", address="192.168.1.77", netmask="255.255.255.0")
    assert str(iface.network) == "192.168.1.0/24"


def test_resolved_host_family():
    assert ResolvedHost(address="10.0.0.5", rtt_ms=1.0).is_ipv4
    assert not ResolvedHost(address="fe80::1", rtt_ms=1.0).is_ipv4


def test_host_outcome_status_serializes_as_value():
    outcome = HostOutcome(status=OutcomeStatus.ERROR, host=ResolvedHost(address="10.0.0.5", rtt_ms=1.0), error="boom")
    assert outcome.model_dump()["status"] == "error"
