"""Main ReversePing agent: one scan/report cycle, or cycles forever."""

import asyncio
from typing import Dict, Optional

import structlog

from .agent_config import AgentConfig
from .config import Config
from .discovery import DiscoveryService, VendorLookup
from .models.devices import DiscoveredDevice
from .transmit import Transmitter

logger = structlog.get_logger(__name__)


class ReversePingAgent:
    """Scans the local network and reports the inventory for one agent id."""

    def __init__(
        self,
        app_config: Config,
        agent_config: AgentConfig,
        vendors: Optional[VendorLookup] = None,
        transmitter: Optional[Transmitter] = None,
    ) -> None:
        """Initialize the agent.

        Args:
            app_config: Runtime settings.
            agent_config: Saved agent identity.
            vendors: Shared OUI table; built here when not supplied.
            transmitter: Report uploader; built from ``app_config.report`` when not supplied.
        """
        self.app_config = app_config
        self.agent_config = agent_config
        self.logger = logger.bind(agent_id=agent_config.agent_id)

        self.vendors = vendors if vendors is not None else VendorLookup()
        self.discovery = DiscoveryService(app_config, self.vendors)
        self.transmitter = transmitter or Transmitter(agent_config.agent_id, app_config.report)
        self.cycles = 0

    async def scan(self) -> Dict[str, DiscoveredDevice]:
        """Discover devices, honouring the agent-only flag."""
        result = await self.discovery.discover(agent_only=self.agent_config.agent_only)
        if result.devices:
            self.logger.info(
                "Discovered devices:\n\n" + "-\t\n".join(str(device) for device in result.devices.values()),
                devices=len(result.devices),
            )
        return result.devices

    async def run_once(self) -> Dict[str, DiscoveredDevice]:
        """Run one cycle: scan, then transmit.

        Raises:
            SetupError: the scan could not be started.
            TransmitError: the report could not be delivered.
        """
        devices = await self.scan()
        await self.transmitter.send(devices)
        return devices

    async def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """Repeat ``run_once`` with a fixed pause; a failed cycle is logged and retried.

        ``max_cycles`` bounds the loop (used by tests); None runs indefinitely.
        """
        interval = self.app_config.report.retry_interval_seconds
        while max_cycles is None or self.cycles < max_cycles:
            self.cycles += 1
            try:
                await self.run_once()
            except Exception as e:
                self.logger.error("Agent cycle failed", cycle=self.cycles, error=str(e), exc_info=True)
            if max_cycles is not None and self.cycles >= max_cycles:
                break
            await asyncio.sleep(interval)
