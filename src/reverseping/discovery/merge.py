"""
Joins the probe, lookup, ARP and SSDP streams into the device inventory.
"""
from typing import Dict, Iterable, Mapping

from ..models.devices import DiscoveredDevice, LinkRecord, ServiceInfo
from .vendor import VendorLookup


def merge_device(record: LinkRecord, service: ServiceInfo | None, vendors: VendorLookup) -> DiscoveredDevice:
    """Build the inventory entry for one MAC-resolved host.

    DNS metadata is kept as is and the service model name is appended after it.
    The DNS hostname wins over the service friendly name.
    """
    metadata = list(record.host.metadata)
    if service is not None and service.model_name:
        metadata.append(service.model_name)

    hostname = record.host.hostname
    if hostname is None and service is not None:
        hostname = service.friendly_name

    return DiscoveredDevice(
        mac=record.mac,
        local_address=record.host.address,
        ping_ms=int(record.host.rtt_ms),
        hostname=hostname,
        vendor=vendors.vendor_for(record.mac),
        meta=", ".join(metadata) if metadata else None,
    )


def merge(
    records: Iterable[LinkRecord],
    services: Mapping[str, ServiceInfo],
    vendors: VendorLookup,
) -> Dict[str, DiscoveredDevice]:
    """Key every device by MAC; a later record with the same MAC replaces the earlier one."""
    devices: Dict[str, DiscoveredDevice] = {}
    for record in records:
        devices[record.mac] = merge_device(record, services.get(record.host.address), vendors)
    return devices
