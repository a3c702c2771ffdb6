"""MAC prefix to manufacturer lookup."""

from typing import Optional

import structlog
from manuf import manuf

logger = structlog.get_logger(__name__)


class VendorLookup:
    """Read-only OUI table, built once per process and shared by every scan."""

    def __init__(self, parser: Optional["manuf.MacParser"] = None):
        self._parser = parser if parser is not None else manuf.MacParser(update=False)

    def vendor_for(self, mac: str) -> Optional[str]:
        """Return the manufacturer for ``mac``, or None when it is unknown or malformed."""
        try:
            vendor = self._parser.get_all(mac)
        except (ValueError, KeyError, IndexError) as e:
            logger.debug("Vendor lookup failed", mac=mac, error=str(e))
            return None
        return getattr(vendor, "manuf_long", None) or getattr(vendor, "manuf", None)
