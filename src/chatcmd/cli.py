from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import anyio
import typer

from . import __version__
from .commands import CALCULATOR
from .config import HOME_CONFIG_PATH, ConfigError
from .cooldowns import CooldownGate
from .discord import DiscordBotClient, DiscordTransport, run_bot
from .handler import CommandHandler
from .logging import get_logger, setup_logging
from .registry import CommandRegistry
from .settings import (
    HandlerSettings,
    load_settings,
    load_settings_if_exists,
    require_discord,
)
from .stores import JsonCooldownStore, resolve_cooldowns_path

logger = get_logger(__name__)

app = typer.Typer(help="Chat command handler for Discord bots.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    _ = version


def _load(config: Path | None) -> tuple[HandlerSettings, Path | None]:
    if config is not None:
        return load_settings(config)
    loaded = load_settings_if_exists()
    if loaded is None:
        return HandlerSettings(), None
    return loaded


def _state_path(settings: HandlerSettings, config_path: Path | None) -> Path:
    if settings.state_path is not None:
        return settings.state_path.expanduser()
    return resolve_cooldowns_path(config_path or HOME_CONFIG_PATH)


def build_registry() -> CommandRegistry:
    registry = CommandRegistry()
    registry.register(*CALCULATOR)
    return registry


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=1) from exc


@app.command()
def run(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to the TOML config file."
    ),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Log debug events."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Log as JSON lines."),
) -> None:
    """Connect to Discord and dispatch commands."""
    setup_logging(debug=debug, json=json_logs)
    try:
        settings, config_path = _load(config)
        token = require_discord(settings, config_path)
    except ConfigError as exc:
        _fail(exc)
    store = JsonCooldownStore(_state_path(settings, config_path))
    client = DiscordBotClient(token)
    handler = CommandHandler(
        build_registry(),
        store=store,
        transport=DiscordTransport(client),
        settings=settings,
    )
    try:
        anyio.run(run_bot, client, handler)
    except ConfigError as exc:
        _fail(exc)
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
        raise typer.Exit(code=130) from None


@app.command()
def prune(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to the TOML config file."
    ),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Log debug events."),
) -> None:
    """Delete outdated cooldown records without starting the bot."""
    setup_logging(debug=debug)
    try:
        settings, config_path = _load(config)
    except ConfigError as exc:
        _fail(exc)
    gate = CooldownGate(JsonCooldownStore(_state_path(settings, config_path)))
    removed = anyio.run(gate.prune_outdated, build_registry().specs())
    typer.echo(f"removed {removed} outdated cooldown record(s)")


def main() -> None:
    app()
