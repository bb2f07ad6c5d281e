"""CLI entry point for CosmoTrigger."""

import sys
import json
import signal
import asyncio
import logging
from pathlib import Path
from typing import Optional
import click

from . import __version__
from .config import Config, ConfigurationError
from .cosmos import CosmosClient
from .gitlab import GitlabClient
from .monitor import CosmosMonitor
from .notifications import NotificationManager
from .api import HealthAPI

logger = logging.getLogger("cosmotrigger")


# Setup logging
def setup_logging(log_level: str, log_file: Optional[Path] = None):
    """Setup logging configuration."""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
        force=True
    )


async def run_daemon(config: Config, monitor: Optional[CosmosMonitor] = None,
                     stop_event: Optional[asyncio.Event] = None):
    """Run the health server and the chain monitor until a shutdown signal arrives."""
    stop_event = stop_event or asyncio.Event()
    monitor = monitor or CosmosMonitor(config)
    api = HealthAPI(config, monitor)

    loop = asyncio.get_running_loop()
    signals = [signal.SIGINT, signal.SIGTERM]

    def request_shutdown(sig: signal.Signals):
        if not stop_event.is_set():
            logger.info(f"Received {sig.name}, initiating graceful shutdown...")
            api.set_not_ready()
            stop_event.set()

    for sig in signals:
        try:
            loop.add_signal_handler(sig, request_shutdown, sig)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread
            pass

    await api.start()
    try:
        await monitor.start_monitoring(stop_event)
    finally:
        monitor.reset()
        await api.stop()
        for sig in signals:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass
        logger.info("Application shutdown complete")


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', type=click.Path(exists=False), help='YAML config file path')
@click.option('--env-file', '-e', type=click.Path(exists=False), help='.env file path')
@click.option('--log-level', '-l', default=None, help='Log level (overrides LOG_LEVEL)')
@click.pass_context
def cli(ctx, config, env_file, log_level):
    """CosmoTrigger - Trigger CI/CD upgrade pipelines when a Cosmos chain reaches its upgrade height."""
    ctx.obj = Config(
        config_path=Path(config) if config else None,
        env_path=Path(env_file) if env_file else None
    )

    setup_logging(log_level or ctx.obj.log_level, ctx.obj.log_file)

    # Only validate config for commands that need it
    if ctx.invoked_subcommand not in ['check-config', 'test-notifications']:
        try:
            ctx.obj.validate_or_raise()
        except ConfigurationError as e:
            logger.error("Configuration error: Exiting CosmoTrigger!")
            logger.error(str(e))
            sys.exit(1)
        logger.info("Configuration loaded successfully")


@cli.command()
@click.pass_obj
def run(config: Config):
    """Run continuous monitoring with the health server."""
    click.echo(f"Starting CosmoTrigger (poll interval: {config.poll_interval}s)")
    asyncio.run(run_daemon(config))


@cli.command()
@click.pass_obj
def status(config: Config):
    """Show the node identity, height and pending upgrade plan."""
    cosmos = CosmosClient(config.cosmos_node_rest_url, timeout=config.request_timeout)

    click.echo("CosmoTrigger Status")
    click.echo("=" * 80)

    identity = cosmos.get_chain_identity()
    if identity is None:
        click.echo(f"❌ Node {config.cosmos_node_rest_url} is not reachable", err=True)
        sys.exit(1)

    click.echo(f"Moniker: {identity.moniker}")
    click.echo(f"Network: {identity.network}")
    click.echo(f"Version: {identity.version}")
    click.echo(f"Node ID: {identity.node_id}")
    click.echo()

    height = cosmos.get_block_height()
    click.echo(f"Block Height: {height if height is not None else 'N/A'}")

    plan_height = cosmos.get_upgrade_plan_height()
    if plan_height is None:
        click.echo("✅ No upgrade plan scheduled")
    else:
        click.echo(f"📦 Upgrade plan at height {plan_height}")
        if height is not None:
            remaining = plan_height - height
            if remaining > 0:
                click.echo(f"   Blocks remaining: {remaining}")
            else:
                click.echo("   Upgrade height reached")


@cli.command()
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_obj
def trigger(config: Config, yes: bool):
    """Trigger the update pipeline now and wait for it to finish."""
    click.echo(f"Triggering update pipeline on branch {config.cicd.update_branch}")

    if not yes:
        click.confirm("Do you want to proceed?", abort=True)

    if GitlabClient(config).trigger_update_pipeline():
        click.echo("✅ Pipeline finished successfully")
    else:
        click.echo("❌ Pipeline did not finish successfully", err=True)
        sys.exit(1)


@cli.command('check-config')
@click.pass_obj
def check_config(config: Config):
    """Validate the configuration and print it with secrets masked."""
    click.echo(json.dumps(config.to_dict(), indent=2))

    if config.validate():
        click.echo("✅ Configuration is valid")
    else:
        click.echo("❌ Configuration validation failed", err=True)
        sys.exit(1)


@cli.command('test-notifications')
@click.pass_obj
def test_notifications(config: Config):
    """Send a test message to the configured notification channels."""
    notifier = NotificationManager(
        discord_webhook=config.notifications.discord_webhook,
        telegram_bot_token=config.notifications.telegram_bot_token,
        telegram_chat_id=config.notifications.telegram_chat_id
    )

    if not notifier.enabled:
        click.echo("No notification channels configured", err=True)
        sys.exit(1)

    notifier.test_notifications()
    click.echo("✅ Test notifications sent")


if __name__ == '__main__':
    cli()
