"""
Discovery pipeline: interface -> ping -> reverse DNS -> ARP -> merge,
with SSDP service collection running alongside.
"""
import asyncio
import os
from typing import Dict, Optional

import structlog

from ..config import Config, DiscoveryConfig
from ..exceptions import PrivilegeError
from ..models.common import OutcomeStatus
from ..models.devices import ScanDiagnostics, ScanResult, ServiceInfo
from .arp import LinkResolver
from .interface import locate_interface
from .merge import merge
from .ping import PingProbe
from .reverse_dns import ReverseResolver
from .ssdp import ServiceCollector
from .vendor import VendorLookup

logger = structlog.get_logger(__name__)


def _require_root() -> None:
    if hasattr(os, "geteuid") and os.geteuid() != 0:
        logger.error("Root access needed to scan devices", euid=os.geteuid())
        raise PrivilegeError()


class DiscoveryService:
    """
    Runs one full scan of the local segment and returns a MAC-keyed inventory.
    Every scan builds its entities from scratch; only the vendor table is shared.
    """

    def __init__(self, app_config: Config, vendors: VendorLookup):
        self.app_config = app_config
        self.discovery_config: DiscoveryConfig = app_config.discovery
        self.vendors = vendors
        self.logger = logger.bind(service="DiscoveryService")

        self.ping_probe = PingProbe(self.discovery_config)
        self.reverse_resolver = ReverseResolver(self.discovery_config)
        self.link_resolver = LinkResolver(self.discovery_config)
        self.service_collector = ServiceCollector(self.discovery_config)

    async def _collect_services(self) -> Dict[str, ServiceInfo]:
        if not self.discovery_config.enable_ssdp:
            self.logger.info("SSDP service collection is disabled.")
            return {}
        return await self.service_collector.discover_services()

    async def discover(self, agent_only: bool = False) -> ScanResult:
        """
        Scan the network of the outbound interface.

        Raises:
            PrivilegeError: the process cannot open raw sockets.
            NoInterfaceFound: no interface carries the outbound address.
            InvalidSubnetError: the interface address/netmask is not a network.
        """
        if agent_only:
            self.logger.info("Running in agent-only mode (no local device scanning)")
            return ScanResult()

        _require_root()
        iface = locate_interface(self.discovery_config.route_probe_host, self.discovery_config.route_probe_port)

        services_task = asyncio.create_task(self._collect_services())
        try:
            probes = await self.ping_probe.ping_subnet(iface.address, iface.netmask)
            outcomes = await self.reverse_resolver.resolve_all(probes)
            hosts = [outcome.host for outcome in outcomes]
            links = await self.link_resolver.resolve_all(hosts)
        except BaseException:
            services_task.cancel()
            # collect the task so neither its cancellation nor its own failure is left pending
            await asyncio.gather(services_task, return_exceptions=True)
            raise
        services = await services_task

        devices = merge(links, services, self.vendors)

        addresses_probed = iface.network.num_addresses
        ipv6_hosts = sum(1 for host in hosts if not host.is_ipv4)
        diagnostics = ScanDiagnostics(
            addresses_probed=addresses_probed,
            ping_dropped=addresses_probed - len(probes),
            resolver_errors=sum(1 for o in outcomes if o.status == OutcomeStatus.ERROR),
            hostnames_missing=sum(1 for o in outcomes if o.host.hostname is None),
            ipv6_skipped=ipv6_hosts,
            arp_dropped=len(hosts) - ipv6_hosts - len(links),
            services_found=len(services),
            service_failures=self.service_collector.failures,
        )
        self.logger.info("Discovery completed", devices=len(devices), interface=iface.name, **diagnostics.model_dump())
        return ScanResult(devices=devices, diagnostics=diagnostics)


async def discover(config: Optional[Config] = None, agent_only: bool = False, vendors: Optional[VendorLookup] = None) -> ScanResult:
    """Convenience wrapper: one scan with a freshly loaded configuration."""
    service = DiscoveryService(config or Config(), vendors or VendorLookup())
    return await service.discover(agent_only=agent_only)
