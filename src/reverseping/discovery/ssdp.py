"""
SSDP/UPnP service collection.

Multicasts an M-SEARCH for root devices, keeps the first advertisement seen
from each source address and fetches the device description behind its
LOCATION URL.
"""
import asyncio
import ipaddress
import socket
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import aiohttp
import structlog

from ..config import DiscoveryConfig
from ..models.devices import ServiceInfo

logger = structlog.get_logger(__name__)

SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900
SSDP_MULTICAST_TTL = 2


def build_msearch(search_target: str, mx: int) -> bytes:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {mx}\r\n"
        f"ST: {search_target}\r\n"
        "\r\n"
    ).encode()


def parse_ssdp_response(data: bytes) -> Optional[Dict[str, str]]:
    """Parse an M-SEARCH response into lower-cased headers. Returns None for anything else."""
    text = data.decode("utf-8", errors="ignore")
    lines = text.split("\r\n")
    if not lines or not lines[0].upper().startswith("HTTP/1.1 200"):
        return None

    headers = {}
    for line in lines[1:]:
        if ":" in line:
            key, value = line.split(":", 1)
            headers[key.strip().lower()] = value.strip()
    return headers


def location_address(location: str) -> Optional[str]:
    """Return the literal IP address in a LOCATION URL, or None."""
    try:
        host = urlparse(location).hostname
        if not host:
            return None
        return str(ipaddress.ip_address(host))
    except ValueError:
        return None


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def parse_description(xml_text: str) -> Dict[str, Optional[str]]:
    """Read friendlyName, modelName and manufacturer from a UPnP device description.

    Only the first ``device`` element is considered; namespaces are ignored.

    Raises:
        xml.etree.ElementTree.ParseError: if the document is not XML.
        ValueError: if it has no device element.
    """
    root = ET.fromstring(xml_text)
    device = next((el for el in root.iter() if _local_name(el.tag) == "device"), None)
    if device is None:
        raise ValueError("device description has no device element")

    fields = {"friendlyName": None, "modelName": None, "manufacturer": None}
    for child in device:
        name = _local_name(child.tag)
        if name in fields and fields[name] is None and child.text and child.text.strip():
            fields[name] = child.text.strip()

    return {
        "friendly_name": fields["friendlyName"],
        "model_name": fields["modelName"],
        "manufacturer": fields["manufacturer"],
    }


class _SearchProtocol(asyncio.DatagramProtocol):
    """Collects (source address, datagram) pairs while the search window is open."""

    def __init__(self):
        self.responses: List[Tuple[str, bytes]] = []

    def datagram_received(self, data: bytes, addr) -> None:
        self.responses.append((addr[0], data))

    def error_received(self, exc: Exception) -> None:
        logger.debug("SSDP socket error", error=str(exc))


class ServiceCollector:
    """Discovers UPnP root devices and their descriptions, keyed by IP."""

    def __init__(self, discovery_config: DiscoveryConfig, session: aiohttp.ClientSession | None = None):
        self.config = discovery_config
        self._session = session
        self.logger = logger.bind(phase="ssdp")
        self.failures = 0

    async def search(self) -> List[Tuple[str, Dict[str, str]]]:
        """Run the M-SEARCH rounds and return the first advertisement per source address.

        Raises:
            OSError: if the search socket cannot be opened.
        """
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            _SearchProtocol, local_addr=("0.0.0.0", 0), family=socket.AF_INET
        )
        try:
            sock = transport.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, SSDP_MULTICAST_TTL)

            message = build_msearch(self.config.ssdp_search_target, self.config.ssdp_response_window_seconds)
            for _ in range(self.config.ssdp_search_rounds):
                transport.sendto(message, (SSDP_ADDR, SSDP_PORT))
            await asyncio.sleep(self.config.ssdp_response_window_seconds)
        finally:
            transport.close()

        seen = set()
        advertisements = []
        for source, data in protocol.responses:
            if source in seen:
                continue
            headers = parse_ssdp_response(data)
            if headers is None or not headers.get("location"):
                continue
            seen.add(source)
            advertisements.append((source, headers))
        self.logger.debug("SSDP search finished", datagrams=len(protocol.responses), advertisements=len(advertisements))
        return advertisements

    async def fetch_description(self, session: aiohttp.ClientSession, location: str) -> Dict[str, Optional[str]]:
        timeout = aiohttp.ClientTimeout(total=self.config.description_timeout_seconds)
        async with session.get(location, timeout=timeout) as response:
            response.raise_for_status()
            xml_text = await response.text()
        return parse_description(xml_text)

    async def _describe(self, session: aiohttp.ClientSession, location: str) -> Optional[ServiceInfo]:
        address = location_address(location)
        if address is None:
            self.logger.debug("Skipping advertisement without IP location", location=location)
            return None
        try:
            fields = await self.fetch_description(session, location)
        except (aiohttp.ClientError, asyncio.TimeoutError, ET.ParseError, ValueError) as e:
            self.logger.warning("Failed to fetch device description", location=location, error=str(e) or type(e).__name__)
            self.failures += 1
            return None
        return ServiceInfo(address=address, location=location, **fields)

    async def discover_services(self) -> Dict[str, ServiceInfo]:
        """Return a mapping of IP address to service info. Never raises for network failures."""
        self.failures = 0
        try:
            advertisements = await self.search()
        except OSError as e:
            self.logger.error("SSDP search could not be started", error=str(e))
            return {}

        session = self._session or aiohttp.ClientSession()
        try:
            described = await asyncio.gather(
                *(self._describe(session, headers["location"]) for _, headers in advertisements)
            )
        finally:
            if self._session is None:
                await session.close()

        services: Dict[str, ServiceInfo] = {}
        for info in described:
            if info is not None and info.address not in services:
                services[info.address] = info
        self.logger.info("Service collection finished", services=len(services), failures=self.failures)
        return services
