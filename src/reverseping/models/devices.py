import ipaddress

from pydantic import Field

from .common import BasePydanticModel, OutcomeStatus


class NetworkInterface(BasePydanticModel):
    name: str
    address: str
    netmask: str

    @property
    def network(self) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
        return ipaddress.ip_network(f"{self.address}/{self.netmask}", strict=False)

class ProbeResult(BasePydanticModel):
    address: str
    rtt_ms: float = Field(..., ge=0, description="Round-trip time of the echo request in milliseconds.")

class ResolvedHost(BasePydanticModel):
    address: str
    rtt_ms: float = Field(..., ge=0)
    hostname: str | None = None
    # TXT strings in the order the responder sent them
    metadata: list[str] = Field(default_factory=list)

    @property
    def is_ipv4(self) -> bool:
        return ipaddress.ip_address(self.address).version == 4

class HostOutcome(BasePydanticModel):
    """Result of the reverse lookup for one host, kept per host so one failure never hides the others."""
    status: OutcomeStatus
    host: ResolvedHost
    error: str | None = None

class LinkRecord(BasePydanticModel):
    host: ResolvedHost
    mac: str # lower-case, colon separated

class ServiceInfo(BasePydanticModel):
    address: str
    location: str
    friendly_name: str | None = None
    model_name: str | None = None
    manufacturer: str | None = None

class DiscoveredDevice(BasePydanticModel):
    mac: str
    local_address: str
    ping_ms: int
    hostname: str | None = None
    vendor: str | None = None
    meta: str | None = None

    def __str__(self) -> str:
        return "{} - {} - {} - {} - {} ({}ms)".format(
            self.mac,
            self.vendor or "?",
            self.local_address,
            self.hostname or "?",
            self.meta or "?",
            self.ping_ms,
        )

class ScanDiagnostics(BasePydanticModel):
    """Counters for every place the pipeline turns a failure into absence."""
    addresses_probed: int = 0
    ping_dropped: int = 0
    resolver_errors: int = 0
    hostnames_missing: int = 0
    ipv6_skipped: int = 0
    arp_dropped: int = 0
    services_found: int = 0
    service_failures: int = 0

class ScanResult(BasePydanticModel):
    devices: dict[str, DiscoveredDevice] = Field(default_factory=dict)
    diagnostics: ScanDiagnostics = Field(default_factory=ScanDiagnostics)
