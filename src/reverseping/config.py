"""Configuration management for the ReversePing agent."""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoveryConfig(BaseModel):
    """Configuration for the local device discovery pipeline."""

    ping_batch_size: int = Field(default=200, ge=1, le=1024, description="Addresses probed concurrently per ping batch. Batches run one after another.")
    ping_timeout_seconds: float = Field(default=2.0, gt=0, le=30, description="Timeout for a single ICMP echo request.")
    arp_timeout_seconds: float = Field(default=2.0, gt=0, le=30, description="Timeout for a single ARP who-has request.")
    dns_timeout_seconds: float = Field(default=2.0, gt=0, le=30, description="Per-host timeout for the reverse multicast-DNS query.")
    mdns_port: int = Field(default=5353, ge=1, le=65535, description="UDP port the reverse lookup is sent to on each host.")
    max_concurrent_lookups: int = Field(default=200, ge=1, le=4096, description="Maximum concurrent reverse DNS and ARP lookups.")

    enable_ssdp: bool = Field(default=True, description="Enable SSDP/UPnP service collection.")
    ssdp_search_target: str = Field(default="upnp:rootdevice", description="SSDP search target (ST) sent in M-SEARCH.")
    ssdp_response_window_seconds: int = Field(default=3, ge=1, le=5, description="MX value and listening window for SSDP responses.")
    ssdp_search_rounds: int = Field(default=2, ge=1, le=10, description="Number of M-SEARCH rounds sent.")
    description_timeout_seconds: float = Field(default=3.0, gt=0, le=60, description="Timeout for fetching a UPnP device description.")

    route_probe_host: str = Field(default="8.8.8.8", description="Remote address used only to let the OS pick the outbound interface.")
    route_probe_port: int = Field(default=80, ge=1, le=65535)


class ReportConfig(BaseModel):
    """Configuration for transmitting reports to the collector."""

    api_origin: str = Field(default="https://api.reverseping.net", description="Origin of the report collector. Reports go to <origin>/<agent_id>.")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="Total timeout for one report upload.")
    retry_interval_seconds: float = Field(default=60.0, ge=0, description="Fixed delay between cycles in continuous mode.")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format ('console' or 'json')")
    file: Optional[Path] = Field(default=None, description="Log file path")


class Config(BaseSettings):
    """Main configuration for the agent. Loads from environment variables prefixed with REVERSEPING_."""

    model_config = SettingsConfigDict(
        env_prefix='REVERSEPING_',
        env_nested_delimiter='__', # e.g., REVERSEPING_DISCOVERY__PING_BATCH_SIZE
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    agent_dir: Optional[Path] = Field(default=None, description="Directory holding the saved agent configuration. Defaults to the per-user app dir.")

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Environment variables are not layered on top.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
