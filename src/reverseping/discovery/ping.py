"""
ICMP echo probing of a whole subnet.
"""
import asyncio
import ipaddress
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import structlog
from scapy.layers.inet import ICMP, IP
from scapy.layers.inet6 import ICMPv6EchoRequest, IPv6
from scapy.supersocket import L3RawSocket, L3RawSocket6

from ..config import DiscoveryConfig
from ..models.devices import ProbeResult
from .subnet import batched, enumerate_hosts

logger = structlog.get_logger(__name__)


def _send_echo(address: str, timeout: float) -> Optional[float]:
    """Send one echo request (id 0, sequence 0) and return the RTT in ms, or None on no reply.

    Goes through a raw IP socket so the kernel resolves the next hop; an
    unanswered probe costs ``timeout`` and nothing more. Blocking; runs in a
    worker thread.
    """
    if ipaddress.ip_address(address).version == 4:
        packet = IP(dst=address) / ICMP(id=0, seq=0)
        socket_cls = L3RawSocket
    else:
        packet = IPv6(dst=address) / ICMPv6EchoRequest(id=0, seq=0)
        socket_cls = L3RawSocket6

    with socket_cls() as sock:
        answered, _ = sock.sr(packet, timeout=timeout, verbose=0)
    for sent, received in answered:
        return max(0.0, (received.time - sent.sent_time) * 1000.0)
    return None


class PingProbe:
    """Concurrent reachability probe, one task per address, batched to cap open sockets."""

    def __init__(self, discovery_config: DiscoveryConfig):
        self.config = discovery_config
        self.logger = logger.bind(phase="ping")
        self._executor: ThreadPoolExecutor | None = None

    async def probe(self, address: str) -> Optional[ProbeResult]:
        """Probe a single address. Every failure degrades to None."""
        loop = asyncio.get_running_loop()
        try:
            rtt_ms = await loop.run_in_executor(self._executor, _send_echo, address, self.config.ping_timeout_seconds)
        except Exception as e:
            self.logger.debug("Echo request failed", address=address, error=str(e))
            return None
        if rtt_ms is None:
            return None
        return ProbeResult(address=address, rtt_ms=rtt_ms)

    async def ping_batch(self, addresses: List[str]) -> List[ProbeResult]:
        results = await asyncio.gather(*(self.probe(address) for address in addresses))
        return [result for result in results if result is not None]

    async def ping_addresses(self, addresses: List[str]) -> List[ProbeResult]:
        """Probe addresses in sequential batches of ``ping_batch_size``."""
        batch_size = self.config.ping_batch_size
        results: List[ProbeResult] = []
        self._executor = ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="ping")
        try:
            for index, batch in enumerate(batched(addresses, batch_size)):
                found = await self.ping_batch(batch)
                self.logger.debug("Ping batch finished", batch=index, size=len(batch), replies=len(found))
                results.extend(found)
        finally:
            self._executor.shutdown(wait=False)
            self._executor = None
        return results

    async def ping_subnet(self, address: str, netmask: str) -> List[ProbeResult]:
        """Probe every address of the subnet described by ``address``/``netmask``.

        Raises:
            InvalidSubnetError: if the pair does not describe a network.
        """
        addresses = enumerate_hosts(address, netmask)
        self.logger.info("Pinging subnet", address=address, netmask=netmask, addresses=len(addresses))
        results = await self.ping_addresses(addresses)
        self.logger.info("Ping finished", reachable=len(results), dropped=len(addresses) - len(results))
        return results
