"""
Link-layer address resolution (ARP, IPv4 only).
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import structlog
from scapy.layers.l2 import ARP, Ether
from scapy.sendrecv import srp

from ..config import DiscoveryConfig
from ..models.devices import LinkRecord, ResolvedHost
from ..utils.concurrency import gather_bounded

logger = structlog.get_logger(__name__)

BROADCAST_MAC = "ff:ff:ff:ff:ff:ff"


def normalize_mac(mac: str) -> str:
    """Lower-case, colon separated, zero padded ("A:b:C:..." -> "0a:0b:0c:...")."""
    parts = mac.replace("-", ":").split(":")
    if len(parts) != 6:
        raise ValueError(f"Not a MAC address: {mac!r}")
    return ":".join(f"{int(part, 16):02x}" for part in parts)


def _send_arp(address: str, timeout: float) -> Optional[str]:
    """Broadcast one who-has for ``address`` and return the answering MAC, or None.

    Blocking; runs in a worker thread.
    """
    answered, _ = srp(Ether(dst=BROADCAST_MAC) / ARP(pdst=address), timeout=timeout, verbose=0)
    for _, received in answered:
        return received[ARP].hwsrc
    return None


class LinkResolver:
    """Resolves MAC addresses for hosts carried forward from the reverse lookup."""

    def __init__(self, discovery_config: DiscoveryConfig):
        self.config = discovery_config
        self.logger = logger.bind(phase="arp")
        self._executor: ThreadPoolExecutor | None = None

    async def resolve_host(self, host: ResolvedHost) -> Optional[LinkRecord]:
        if not host.is_ipv4:
            # no neighbor discovery fallback
            return None

        loop = asyncio.get_running_loop()
        try:
            mac = await loop.run_in_executor(self._executor, _send_arp, host.address, self.config.arp_timeout_seconds)
            if mac is None:
                self.logger.debug("No ARP reply", address=host.address)
                return None
            return LinkRecord(host=host, mac=normalize_mac(mac))
        except Exception as e:
            self.logger.debug("ARP resolution failed", address=host.address, error=str(e))
            return None

    async def resolve_all(self, hosts: List[ResolvedHost]) -> List[LinkRecord]:
        limit = self.config.max_concurrent_lookups
        self._executor = ThreadPoolExecutor(max_workers=limit, thread_name_prefix="arp")
        try:
            records = await gather_bounded(self.resolve_host, hosts, limit)
        finally:
            self._executor.shutdown(wait=False)
            self._executor = None
        found = [record for record in records if record is not None]
        self.logger.info("ARP resolution finished", hosts=len(hosts), resolved=len(found))
        return found
