"""
Persisted agent identity (agent id and agent-only flag).
"""
import json
import shutil
from pathlib import Path
from typing import Optional

import click
import structlog
from pydantic import Field, ValidationError

from .exceptions import AgentNotConfigured, ReversePingError
from .models.common import BasePydanticModel

logger = structlog.get_logger(__name__)

APP_NAME = "reverseping"
CONFIG_FILE = "config.json"
LOG_FILE = "debug.log"


class AgentConfig(BasePydanticModel):
    agent_id: str = Field(..., min_length=1)
    agent_only: bool = False


class AgentConfigStore:
    """Stores the agent configuration as JSON in the per-user app directory."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else Path(click.get_app_dir(APP_NAME))
        self.logger = logger.bind(config_dir=str(self.config_dir))

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILE

    @property
    def log_file(self) -> Path:
        return self.config_dir / LOG_FILE

    def get_config(self) -> AgentConfig:
        """
        Raises:
            AgentNotConfigured: if no configuration has been saved.
            ReversePingError: if the saved file cannot be read.
        """
        if not self.config_file.exists():
            raise AgentNotConfigured()
        try:
            return AgentConfig.model_validate_json(self.config_file.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            self.logger.error("Failed to read agent configuration", error=str(e))
            raise ReversePingError(f"Failed to read agent configuration: {e}") from e

    def save_config(self, agent_id: str, agent_only: bool = False) -> AgentConfig:
        config = AgentConfig(agent_id=agent_id, agent_only=agent_only)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(config.model_dump(), indent=2), encoding="utf-8")
        self.logger.info("Agent configuration saved", agent_id=agent_id, agent_only=agent_only)
        return config

    def remove_config(self) -> None:
        if self.config_dir.exists():
            shutil.rmtree(self.config_dir)
            self.logger.info("Agent configuration removed")
