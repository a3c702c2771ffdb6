"""
Background service installation (systemd on Linux).
"""
import os
import platform
import shutil
import subprocess
import sys
from pathlib import Path

import structlog

from .exceptions import DaemonError

logger = structlog.get_logger(__name__)

SERVICE_NAME = "reverseping.service"
SYSTEMD_DIR = Path("/etc/systemd/system")

SERVICE_TEMPLATE = """\
[Unit]
Description={description}
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
Environment=REVERSEPING_AGENT_DIR={agent_dir}
ExecStart={exec_start} start
Restart=always
RestartSec=10

[Install]
WantedBy=multi-user.target
"""


def _executable() -> str:
    """Command line that starts this agent."""
    installed = shutil.which("reverseping")
    if installed:
        return installed
    return f"{sys.executable} -m reverseping"


def render_service_file(agent_dir: Path, exec_start: str) -> str:
    return SERVICE_TEMPLATE.format(
        description="ReversePing Agent",
        agent_dir=agent_dir,
        exec_start=exec_start,
    )


def _require_root() -> None:
    if hasattr(os, "geteuid") and os.geteuid() != 0:
        raise DaemonError("Root access needed to install or remove the agent service")


def _systemctl(*args: str) -> None:
    try:
        subprocess.run(["systemctl", *args], check=True, capture_output=True, text=True)
    except (OSError, subprocess.CalledProcessError) as e:
        stderr = getattr(e, "stderr", None) or str(e)
        raise DaemonError(f"systemctl {' '.join(args)} failed: {stderr.strip()}") from e


def install_daemon(agent_dir: Path) -> None:
    """Install and start the agent as a system service. A no-op outside Linux.

    The unit runs as root (raw sockets) and points at ``agent_dir`` for the saved configuration.
    """
    if platform.system() != "Linux":
        logger.warning("Background service installation is only supported on Linux", platform=platform.system())
        return
    _require_root()

    path = SYSTEMD_DIR / SERVICE_NAME
    contents = render_service_file(Path(agent_dir).resolve(), _executable())
    try:
        path.write_text(contents, encoding="utf-8")
    except OSError as e:
        raise DaemonError(f"Failed to write {path}: {e}") from e

    _systemctl("daemon-reload")
    _systemctl("enable", "--now", SERVICE_NAME)
    logger.info("Agent service installed", unit=str(path))


def uninstall_daemon() -> None:
    """Stop, disable and delete the system service. A no-op outside Linux."""
    if platform.system() != "Linux":
        logger.warning("Background service removal is only supported on Linux", platform=platform.system())
        return
    _require_root()

    _systemctl("stop", SERVICE_NAME)
    _systemctl("disable", SERVICE_NAME)
    path = SYSTEMD_DIR / SERVICE_NAME
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug("Service unit already removed", unit=str(path))
    except OSError as e:
        raise DaemonError(f"Failed to remove {path}: {e}") from e
    logger.info("Agent service removed", unit=str(path))
