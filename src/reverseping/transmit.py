"""
Uploads the device inventory to the report collector.
"""
import asyncio
import os
from typing import Dict

import aiohttp
import structlog
from pydantic import ValidationError

from .config import ReportConfig
from .exceptions import ServerError, TransmitError
from .models.devices import DiscoveredDevice
from .models.report import ApiError, PingReport

logger = structlog.get_logger(__name__)

API_ORIGIN_ENV = "API_ORIGIN"


class Transmitter:
    """Posts a PingReport to ``<api_origin>/<agent_id>``."""

    def __init__(self, agent_id: str, report_config: ReportConfig, session: aiohttp.ClientSession | None = None):
        self.agent_id = agent_id
        self.config = report_config
        self._session = session
        self.logger = logger.bind(agent_id=agent_id)

    @property
    def url(self) -> str:
        api_origin = os.environ.get(API_ORIGIN_ENV) or self.config.api_origin
        return f"{api_origin.rstrip('/')}/{self.agent_id}"

    async def send(self, devices: Dict[str, DiscoveredDevice]) -> None:
        """
        Raises:
            TransmitError: the collector could not be reached.
            ServerError: the collector answered with a non-success status.
        """
        report = PingReport.from_devices(devices)
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
        session = self._session or aiohttp.ClientSession()
        url = self.url
        try:
            async with session.post(url, json=report.model_dump(), timeout=timeout) as response:
                if 200 <= response.status < 300:
                    self.logger.info("Report transmitted", url=url, devices=len(devices))
                    return
                body = await response.text()
                try:
                    message = ApiError.model_validate_json(body).error
                except ValidationError:
                    message = body.strip() or f"HTTP {response.status}"
                self.logger.error("Collector rejected report", url=url, status=response.status, error=message)
                raise ServerError(message, status=response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error("Failed to transmit report", url=url, error=str(e) or type(e).__name__)
            raise TransmitError(f"failed to transmit ping report: {e}") from e
        finally:
            if self._session is None:
                await session.close()
