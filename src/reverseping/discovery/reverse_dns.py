"""
Reverse name resolution by asking each host's multicast-DNS responder directly.

Each reachable host gets its own UDP session to port 5353 and a single
ANY/ANY query for its reverse-zone name. The first PTR answer becomes the
hostname and every TXT record of the additional section becomes metadata.
"""
import asyncio
import ipaddress
import random
from typing import List, Optional, Tuple

import structlog
from scapy.layers.dns import DNS, DNSQR

from ..config import DiscoveryConfig
from ..exceptions import ResolverSessionError
from ..models.common import OutcomeStatus
from ..models.devices import HostOutcome, ProbeResult, ResolvedHost
from ..utils.concurrency import gather_bounded

logger = structlog.get_logger(__name__)

TYPE_PTR = 12
TYPE_TXT = 16
TYPE_ANY = 255
CLASS_ANY = 255

IPV4_REVERSE_SUFFIX = "in-addr.arpa"
IPV6_REVERSE_SUFFIX = "ip6.arpa"


def arpa_name(address: str) -> str:
    """Build the reverse-zone name of an IPv4 or IPv6 address.

    >>> arpa_name("192.168.0.14")
    '14.0.168.192.in-addr.arpa'
    """
    ip = ipaddress.ip_address(address)
    if ip.version == 4:
        return ".".join(reversed(str(ip).split("."))) + "." + IPV4_REVERSE_SUFFIX
    nibbles = ip.exploded.replace(":", "")
    return ".".join(reversed(nibbles)) + "." + IPV6_REVERSE_SUFFIX


def build_query(name: str, query_id: int = 0) -> bytes:
    """Encode a single ANY/ANY question for ``name``."""
    return bytes(DNS(id=query_id, qd=[DNSQR(qname=name, qtype=TYPE_ANY, qclass=CLASS_ANY)]))


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _txt_value(rdata) -> str:
    # A TXT record carries one or more character-strings; they are concatenated.
    if isinstance(rdata, (list, tuple)):
        return "".join(_decode(part) for part in rdata)
    return _decode(rdata)


def parse_response(data: bytes) -> Tuple[Optional[str], List[str]]:
    """Extract (hostname, metadata) from a raw DNS response.

    Raises whatever the decoder raises on garbage input.
    """
    message = DNS(data)

    hostname = None
    for record in message.an or []:
        if getattr(record, "type", None) == TYPE_PTR:
            hostname = _decode(record.rdata)
            break

    metadata = [
        _txt_value(record.rdata)
        for record in message.ar or []
        if getattr(record, "type", None) == TYPE_TXT
    ]
    return hostname, metadata


class _QueryProtocol(asyncio.DatagramProtocol):
    """Waits for the first datagram of a one-shot query session."""

    def __init__(self):
        self.response: asyncio.Future = asyncio.get_running_loop().create_future()

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.response.done():
            self.response.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.response.done():
            self.response.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.response.done():
            self.response.set_exception(exc or ConnectionError("session closed"))


async def query_mdns(address: str, query: bytes, port: int, timeout: float) -> Optional[bytes]:
    """Send ``query`` to ``address``:``port`` and return the first reply, or None.

    Raises:
        ResolverSessionError: if the UDP session cannot be opened.
    """
    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(_QueryProtocol, remote_addr=(address, port))
    except OSError as e:
        raise ResolverSessionError(address, str(e)) from e

    try:
        transport.sendto(query)
        return await asyncio.wait_for(protocol.response, timeout)
    except (asyncio.TimeoutError, OSError) as e:
        logger.debug("No reverse lookup reply", address=address, error=repr(e))
        return None
    finally:
        transport.close()


class ReverseResolver:
    """Resolves hostnames and TXT metadata for probed hosts."""

    def __init__(self, discovery_config: DiscoveryConfig):
        self.config = discovery_config
        self.logger = logger.bind(phase="reverse_dns")

    async def lookup(self, address: str) -> Tuple[Optional[str], List[str]]:
        """Run one reverse lookup. An absent or unreadable reply gives (None, [])."""
        query = build_query(arpa_name(address), query_id=random.randint(0, 0xFFFF))
        data = await query_mdns(address, query, self.config.mdns_port, self.config.dns_timeout_seconds)
        if data is None:
            return None, []
        try:
            return parse_response(data)
        except Exception as e:
            self.logger.debug("Undecodable reverse lookup reply", address=address, error=str(e))
            return None, []

    async def resolve_host(self, probe: ProbeResult) -> HostOutcome:
        try:
            hostname, metadata = await self.lookup(probe.address)
        except ResolverSessionError as e:
            self.logger.warning("Reverse lookup session failed", address=probe.address, error=str(e))
            return HostOutcome(
                status=OutcomeStatus.ERROR,
                host=ResolvedHost(address=probe.address, rtt_ms=probe.rtt_ms),
                error=str(e),
            )

        host = ResolvedHost(address=probe.address, rtt_ms=probe.rtt_ms, hostname=hostname, metadata=metadata)
        status = OutcomeStatus.RESOLVED if hostname is not None else OutcomeStatus.EMPTY
        return HostOutcome(status=status, host=host)

    async def resolve_all(self, probes: List[ProbeResult]) -> List[HostOutcome]:
        """Resolve every probed host; a failure on one host never affects another."""
        outcomes = await gather_bounded(self.resolve_host, probes, self.config.max_concurrent_lookups)
        errors = sum(1 for outcome in outcomes if outcome.status == OutcomeStatus.ERROR)
        resolved = sum(1 for outcome in outcomes if outcome.status == OutcomeStatus.RESOLVED)
        self.logger.info("Reverse lookups finished", hosts=len(outcomes), resolved=resolved, errors=errors)
        return outcomes
