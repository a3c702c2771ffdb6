"""Tests for SSDP/UPnP service collection."""

import asyncio
import xml.etree.ElementTree as ET
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from reverseping.config import DiscoveryConfig
from reverseping.discovery.ssdp import (
    SSDP_ADDR,
    SSDP_PORT,
    ServiceCollector,
    build_msearch,
    location_address,
    parse_description,
    parse_ssdp_response,
)

DESCRIPTION = """<?xml version="1.0"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <device>
    <deviceType>urn:schemas-upnp-org:device:Printer:1</deviceType>
    <friendlyName>Office Printer</friendlyName>
    <manufacturer>Acme</manufacturer>
    <modelName>X200</modelName>
    <deviceList>
      <device><friendlyName>Embedded</friendlyName></device>
    </deviceList>
  </device>
</root>
"""


def ssdp_reply(location, status="HTTP/1.1 200 OK"):
    return (
        f"{status}\r\n"
        "CACHE-CONTROL: max-age=1800\r\n"
        f"LOCATION: {location}\r\n"
        "ST: upnp:rootdevice\r\n"
        "USN: uuid:1234::upnp:rootdevice\r\n"
        "\r\n"
    ).encode()


def test_build_msearch():
    message = build_msearch("upnp:rootdevice", 3).decode()

    assert message.startswith("M-SEARCH * HTTP/1.1\r\n")
    assert f"HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n" in message
    assert 'MAN: "ssdp:discover"\r\n' in message
    assert "MX: 3\r\n" in message
    assert "ST: upnp:rootdevice\r\n" in message
    assert message.endswith("\r\n\r\n")


def test_parse_ssdp_response_lowercases_headers():
    headers = parse_ssdp_response(ssdp_reply("http://10.0.0.5:49152/desc.xml"))

    assert headers["location"] == "http://10.0.0.5:49152/desc.xml"
    assert headers["st"] == "upnp:rootdevice"


def test_parse_ssdp_response_ignores_notify():
    assert parse_ssdp_response(b"NOTIFY * HTTP/1.1\r\nHOST: 239.255.255.250:1900\r\n\r\n") is None
    assert parse_ssdp_response(ssdp_reply("http://10.0.0.5/", status="HTTP/1.1 404 Not Found")) is None


@pytest.mark.parametrize("location, expected", [
    ("http://10.0.0.5:49152/desc.xml", "10.0.0.5"),
    ("http://[fe80::1]:80/desc.xml", "fe80::1"),
    ("http://printer.local/desc.xml", None),
    ("not a url", None),
])
def test_location_address(location, expected):
    assert location_address(location) == expected


def test_parse_description_reads_first_device():
    assert parse_description(DESCRIPTION) == {
        "friendly_name": "Office Printer",
        "model_name": "X200",
        "manufacturer": "Acme",
    }


def test_parse_description_without_namespace_and_missing_fields():
    fields = parse_description("<root><device><friendlyName>TV</friendlyName></device></root>")
    assert fields == {"friendly_name": "TV", "model_name": None, "manufacturer": None}


def test_parse_description_errors():
    with pytest.raises(ValueError):
        parse_description("<root><specVersion/></root>")
    with pytest.raises(ET.ParseError):
        parse_description("<root><device>")


@pytest.fixture
def config():
    return DiscoveryConfig(ssdp_response_window_seconds=1, ssdp_search_rounds=2)


def fake_endpoint(datagrams, transport):
    async def create_datagram_endpoint(protocol_factory, **kwargs):
        protocol = protocol_factory()
        protocol.connection_made(transport)
        for source, data in datagrams:
            protocol.datagram_received(data, (source, SSDP_PORT))
        return transport, protocol

    return create_datagram_endpoint


async def test_search_keeps_first_advertisement_per_source(config):
    datagrams = [
        ("10.0.0.5", ssdp_reply("http://10.0.0.5:49152/first.xml")),
        ("10.0.0.5", ssdp_reply("http://10.0.0.5:49152/second.xml")),
        ("10.0.0.6", b"NOTIFY * HTTP/1.1\r\n\r\n"),
        ("10.0.0.7", ssdp_reply("http://10.0.0.7/desc.xml")),
    ]
    transport = MagicMock()
    transport.get_extra_info.return_value = None
    loop = asyncio.get_running_loop()

    with patch.object(loop, "create_datagram_endpoint", fake_endpoint(datagrams, transport)):
        advertisements = await ServiceCollector(config).search()

    assert [(source, headers["location"]) for source, headers in advertisements] == [
        ("10.0.0.5", "http://10.0.0.5:49152/first.xml"),
        ("10.0.0.7", "http://10.0.0.7/desc.xml"),
    ]
    assert transport.sendto.call_count == 2
    message, destination = transport.sendto.call_args.args
    assert destination == (SSDP_ADDR, SSDP_PORT)
    assert b"MX: 1\r\n" in message
    transport.close.assert_called_once()


async def test_discover_services_keys_by_location_ip(config):
    collector = ServiceCollector(config, session=MagicMock())
    advertisements = [
        ("10.0.0.5", {"location": "http://10.0.0.5:49152/desc.xml"}),
        ("10.0.0.6", {"location": "http://10.0.0.6/broken.xml"}),
        ("10.0.0.7", {"location": "http://tv.local/desc.xml"}),
        ("10.0.0.8", {"location": "http://10.0.0.8/slow.xml"}),
    ]

    async def fake_fetch(session, location):
        if "broken" in location:
            raise ET.ParseError("not well-formed")
        if "slow" in location:
            raise asyncio.TimeoutError()
        return parse_description(DESCRIPTION)

    with patch.object(collector, "search", AsyncMock(return_value=advertisements)), \
         patch.object(collector, "fetch_description", side_effect=fake_fetch):
        services = await collector.discover_services()

    assert list(services) == ["10.0.0.5"]
    info = services["10.0.0.5"]
    assert info.friendly_name == "Office Printer"
    assert info.model_name == "X200"
    assert info.location == "http://10.0.0.5:49152/desc.xml"
    assert collector.failures == 2


async def test_discover_services_http_error_counts_as_failure(config):
    collector = ServiceCollector(config, session=MagicMock())
    advertisements = [("10.0.0.5", {"location": "http://10.0.0.5/desc.xml"})]

    with patch.object(collector, "search", AsyncMock(return_value=advertisements)), \
         patch.object(collector, "fetch_description", AsyncMock(side_effect=aiohttp.ClientConnectionError())):
        assert await collector.discover_services() == {}

    assert collector.failures == 1


async def test_discover_services_socket_failure_yields_empty_map(config):
    collector = ServiceCollector(config)

    with patch.object(collector, "search", AsyncMock(side_effect=OSError("address in use"))):
        assert await collector.discover_services() == {}


async def test_fetch_description_reads_body(config):
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.text = AsyncMock(return_value=DESCRIPTION)
    session = MagicMock()
    session.get.return_value.__aenter__.return_value = response

    fields = await ServiceCollector(config).fetch_description(session, "http://10.0.0.5/desc.xml")

    assert fields["model_name"] == "X200"
    assert session.get.call_args.args == ("http://10.0.0.5/desc.xml",)
    assert session.get.call_args.kwargs["timeout"].total == 3.0
