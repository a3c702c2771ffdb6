"""ReversePing agent - local network device discovery and reporting.

Discovers devices on the local segment by combining ICMP echo, reverse
multicast-DNS, ARP and SSDP/UPnP, and reports a MAC-keyed inventory to
the ReversePing collector.
"""

__version__ = "0.4.0"

from .config import Config
from .discovery import DiscoveryService, discover

__all__ = ["Config", "DiscoveryService", "discover"]
