"""
Pydantic models for the ReversePing agent.
"""
from .common import BasePydanticModel, OutcomeStatus
from .devices import (
    DiscoveredDevice,
    HostOutcome,
    LinkRecord,
    NetworkInterface,
    ProbeResult,
    ResolvedHost,
    ScanDiagnostics,
    ScanResult,
    ServiceInfo,
)
from .report import ApiError, DevicePing, PingReport

__all__ = [
    "ApiError",
    "BasePydanticModel",
    "DevicePing",
    "DiscoveredDevice",
    "HostOutcome",
    "LinkRecord",
    "NetworkInterface",
    "OutcomeStatus",
    "PingReport",
    "ProbeResult",
    "ResolvedHost",
    "ScanDiagnostics",
    "ScanResult",
    "ServiceInfo",
]
