"""Local interface discovery for the ReversePing agent."""

import socket
from typing import List, Optional

import netifaces
import structlog

from ..exceptions import NoInterfaceFound
from ..models.devices import NetworkInterface

logger = structlog.get_logger(__name__)

DEFAULT_IPV4_NETMASK = "255.255.255.0"
DEFAULT_IPV6_NETMASK = "ffff:ffff:ffff:ffff:ffff:ffff:ffff:0"


def get_outbound_address(probe_host: str = "8.8.8.8", probe_port: int = 80) -> str:
    """Return the local address the OS would use to reach ``probe_host``.

    A UDP socket is connected to the probe endpoint so the kernel resolves the
    route; no datagram is sent.

    Raises:
        NoInterfaceFound: if the route cannot be resolved.
    """
    family = socket.AF_INET6 if ":" in probe_host else socket.AF_INET
    try:
        with socket.socket(family, socket.SOCK_DGRAM) as sock:
            sock.connect((probe_host, probe_port))
            return sock.getsockname()[0]
    except OSError as e:
        logger.error("Failed to resolve outbound route", probe_host=probe_host, error=str(e))
        raise NoInterfaceFound(f"No network interface found: {e}") from e


def get_network_interfaces() -> List[str]:
    """Get list of network interface names, loopback included."""
    return netifaces.interfaces()


def get_interface_addresses(interface: str) -> List[dict]:
    """Get the IPv4 and IPv6 address entries of an interface.

    Each entry is a netifaces address dict (``addr`` and optionally
    ``netmask``); IPv6 scope identifiers are stripped.
    """
    entries = []
    try:
        addr_info = netifaces.ifaddresses(interface)
    except (ValueError, KeyError, OSError) as e:
        logger.error("Failed to get addresses for interface", interface=interface, error=str(e))
        return entries

    for family in (netifaces.AF_INET, netifaces.AF_INET6):
        for addr in addr_info.get(family, []):
            if 'addr' not in addr:
                continue
            entry = dict(addr)
            entry['addr'] = addr['addr'].split('%')[0]
            if family == netifaces.AF_INET6 and entry.get('netmask'):
                # netifaces reports IPv6 masks as "ffff:ffff::/64"
                entry['netmask'] = entry['netmask'].split('/')[0]
            entries.append(entry)
    return entries


def _default_netmask(address: str) -> str:
    return DEFAULT_IPV6_NETMASK if ":" in address else DEFAULT_IPV4_NETMASK


def find_interface_for_address(address: str) -> Optional[NetworkInterface]:
    """Return the first interface whose address list contains ``address``."""
    for iface in get_network_interfaces():
        for entry in get_interface_addresses(iface):
            if entry['addr'] != address:
                continue
            netmask = entry.get('netmask') or _default_netmask(address)
            return NetworkInterface(name=iface, address=address, netmask=netmask)
    return None


def locate_interface(probe_host: str = "8.8.8.8", probe_port: int = 80) -> NetworkInterface:
    """Determine the interface currently used for outbound traffic.

    Raises:
        NoInterfaceFound: if no interface carries the outbound address.
    """
    local_address = get_outbound_address(probe_host, probe_port)
    iface = find_interface_for_address(local_address)
    if iface is None:
        logger.error("No interface matches outbound address", address=local_address)
        raise NoInterfaceFound(address=local_address)

    logger.info("Using network interface", interface=iface.name, address=iface.address, netmask=iface.netmask)
    return iface
