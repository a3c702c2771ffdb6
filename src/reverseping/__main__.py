"""CLI entry point for the ReversePing agent."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click

from .agent import ReversePingAgent
from .agent_config import AgentConfig, AgentConfigStore
from .config import Config
from .daemon import install_daemon, uninstall_daemon
from .discovery import discover as run_discovery
from .exceptions import ReversePingError
from .logging_setup import configure_logging


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="REVERSEPING_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format.",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """ReversePing Agent - discovers devices on the local network and reports them."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()

    configure_logging(cfg.logging)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg
    ctx.obj["store"] = AgentConfigStore(cfg.agent_dir)


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


@cli.command()
@click.argument("agent_id")
@click.option("--agent-only", is_flag=True, help="Report only the agent itself, without scanning the network.")
@click.pass_context
def up(ctx: click.Context, agent_id: str, agent_only: bool) -> None:
    """Install and start the agent daemon in the background."""
    store: AgentConfigStore = ctx.obj["store"]
    try:
        store.save_config(agent_id, agent_only)
        install_daemon(store.config_dir)
    except (ReversePingError, OSError) as e:
        _fail(f"Failed to install the agent: {e}")
    click.echo(f"Agent {agent_id} installed.")


@cli.command()
@click.argument("agent_id", required=False)
@click.option("--agent-only", is_flag=True, help="Report only the agent itself, without scanning the network.")
@click.pass_context
def start(ctx: click.Context, agent_id: Optional[str], agent_only: bool) -> None:
    """Run the agent daemon in a loop."""
    config: Config = ctx.obj["config"]
    store: AgentConfigStore = ctx.obj["store"]
    try:
        if agent_id:
            agent_config = store.save_config(agent_id, agent_only)
            install_daemon(store.config_dir)
        else:
            agent_config = store.get_config()
    except (ReversePingError, OSError) as e:
        _fail(f"Failed to start the agent: {e}")

    configure_logging(config.logging, log_file=store.log_file)
    agent = ReversePingAgent(config, agent_config)
    try:
        asyncio.run(agent.run_forever())
    except KeyboardInterrupt:
        click.echo("\nAgent stopped by user.", err=True)
        sys.exit(130)


@cli.command()
@click.argument("agent_id")
@click.pass_context
def scan(ctx: click.Context, agent_id: str) -> None:
    """Run the agent once."""
    config: Config = ctx.obj["config"]
    agent = ReversePingAgent(config, AgentConfig(agent_id=agent_id, agent_only=False))
    try:
        devices = asyncio.run(agent.run_once())
    except KeyboardInterrupt:
        click.echo("\nScan interrupted by user.", err=True)
        sys.exit(130)
    except ReversePingError as e:
        _fail(f"Scan failed: {e}")
    click.echo(f"Reported {len(devices)} devices.")


@cli.command()
@click.pass_context
def uninstall(ctx: click.Context) -> None:
    """Uninstall the agent daemon."""
    store: AgentConfigStore = ctx.obj["store"]
    try:
        uninstall_daemon()
        store.remove_config()
    except (ReversePingError, OSError) as e:
        _fail(f"Failed to uninstall the agent: {e}")
    click.echo("Agent uninstalled.")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the inventory as JSON.")
@click.pass_context
def devices(ctx: click.Context, as_json: bool) -> None:
    """Scan once and print the inventory without reporting it."""
    config: Config = ctx.obj["config"]
    try:
        result = asyncio.run(run_discovery(config))
    except ReversePingError as e:
        _fail(f"Scan failed: {e}")

    if as_json:
        click.echo(json.dumps({
            "devices": {mac: device.model_dump() for mac, device in result.devices.items()},
            "diagnostics": result.diagnostics.model_dump(),
        }, indent=2))
        return
    for device in result.devices.values():
        click.echo(str(device))
    click.echo(f"\n{len(result.devices)} devices found.")


@cli.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    click.echo(f"ReversePing Agent v{__version__}")


@cli.command()
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: Config = ctx.obj["config"]
    click.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    cli()
