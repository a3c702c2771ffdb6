"""
Local network device discovery.

Combines ICMP echo probing, reverse multicast-DNS lookups, ARP and SSDP/UPnP
into a MAC-keyed device inventory.
"""

from .discovery_service import DiscoveryService, discover
from .vendor import VendorLookup

__all__ = [
    "DiscoveryService",
    "VendorLookup",
    "discover",
]
