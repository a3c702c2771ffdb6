from pydantic import Field

from .common import BasePydanticModel
from .devices import DiscoveredDevice


class DevicePing(BasePydanticModel):
    ping_ms: int | None = None
    local_address: str | None = None
    mac: str | None = None
    hostname: str | None = None
    meta: str | None = None
    friendly_name: str | None = None
    is_agent: bool = False

    @classmethod
    def from_device(cls, device: DiscoveredDevice) -> "DevicePing":
        # vendor is resolved by the collector itself and is not sent
        return cls(
            ping_ms=device.ping_ms,
            local_address=device.local_address,
            mac=device.mac,
            hostname=device.hostname,
            meta=device.meta,
        )

class PingReport(BasePydanticModel):
    devices: dict[str, DevicePing] = Field(default_factory=dict)

    @classmethod
    def from_devices(cls, devices: dict[str, DiscoveredDevice]) -> "PingReport":
        return cls(devices={name: DevicePing.from_device(device) for name, device in devices.items()})

class ApiError(BasePydanticModel):
    model_config = {"extra": "ignore"}

    error: str
