"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import typer

from kommanderctl.api import Client, encode_action
from kommanderctl.core.config import load_config, merge_overrides
from kommanderctl.core.encoder import CommandEncoder, serialize
from kommanderctl.core.errors import InvalidAddressError, KommanderError
from kommanderctl.core.model import ConnectionStatus, DriverConfig
from kommanderctl.core.profile_loader import load_profiles

app = typer.Typer(help="Control surface for Kommander media servers over websocket")

PRIMARY_OPTION = {
    "callPlan": "callPlan",
    "ChangePlanGroup": "changePlanGroup",
    "ChangePlayStatus": "changePlayStatus",
    "SoundControl": "soundControl",
    "SetVolume": "volume",
    "PageTurn": "pageTurn",
    "ScreenOnOff": "state",
    "BrightContrast": "brightContrast",
    "SetBrightness": "light",
    "SetContrast": "contrast",
    "OutputOnOff": "outputOnOff",
    "MasterSwitch": "state",
    "Lock": "state",
    "CallPlanByName": "name",
    "CallTimeline": "index",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _action_options(action: str, value: str | None, options: list[str]) -> dict[str, Any]:
    parsed: dict[str, Any] = {}
    for item in options:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Option '{item}' must look like key=value", param_hint="--option")
        parsed[key] = raw
    if value is not None:
        parsed[PRIMARY_OPTION.get(action, "value")] = value
    return parsed


def _build_config(
    config_path: Path | None,
    *,
    url: str | None,
    profile: str | None,
    reconnect: bool | None = None,
    debug_messages: bool | None = None,
) -> DriverConfig:
    base = load_config(config_path) if config_path else None
    return merge_overrides(
        base,
        url=url,
        profile=profile,
        reconnect=reconnect,
        debug_messages=debug_messages,
    )


def _print_warnings(warnings: tuple[str, ...]) -> None:
    for warning in warnings:
        typer.echo(f"Warning: {warning}", err=True)


@app.command("profiles")
def list_profiles() -> None:
    """List deployment profiles and the command kinds they expose."""
    try:
        loaded = load_profiles()
        _print_warnings(loaded.warnings)
        if not loaded.profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for profile in sorted(loaded.profiles.values(), key=lambda p: p.id):
            typer.echo(f"{profile.id}: {profile.name}")
            typer.echo(f"  commands: {', '.join(sorted(profile.commands))}")
            typer.echo(f"  facets: {', '.join(sorted(profile.facets))}")
    except KommanderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("actions")
def list_actions(
    profile: str = typer.Option("kommander", "--profile", help="Profile ID"),
) -> None:
    """List the actions a profile can encode."""
    try:
        loaded = load_profiles()
        _print_warnings(loaded.warnings)
        selected = loaded.profiles.get(profile)
        if selected is None:
            available = ", ".join(sorted(loaded.profiles))
            typer.echo(f"Error: Unknown profile '{profile}'. Available: {available}", err=True)
            raise typer.Exit(code=1)
        for action_id in CommandEncoder(selected).action_ids():
            typer.echo(action_id)
    except KommanderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("encode")
def encode(
    action: str,
    value: str | None = typer.Argument(None),
    option: list[str] = typer.Option([], "--option", "-o", help="Extra action option as key=value"),
    profile: str = typer.Option("kommander", "--profile", help="Profile ID"),
) -> None:
    """Print the wire message for ACTION without connecting."""
    try:
        typer.echo(encode_action(action, _action_options(action, value, option), profile_id=profile))
    except KommanderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


async def _send(config: DriverConfig, action: str, options: dict[str, Any], timeout_s: float, settle_s: float) -> str:
    async with Client(config) as client:
        await client.wait_connected(timeout_s)
        command = client.run_action(action, options)
        await asyncio.sleep(settle_s)
        return serialize(command, client.profile.discriminator)


@app.command("send")
def send(
    action: str,
    value: str | None = typer.Argument(None),
    option: list[str] = typer.Option([], "--option", "-o", help="Extra action option as key=value"),
    url: str | None = typer.Option(None, "--url", help="ws:// or wss:// address of the device"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    config: Path | None = typer.Option(None, "--config", help="YAML config file"),
    timeout: float = typer.Option(10.0, "--timeout", help="Seconds to wait for the connection"),
    settle: float = typer.Option(0.5, "--settle", help="Seconds to keep the session open after sending"),
) -> None:
    """Connect, authenticate, send ACTION and disconnect."""
    try:
        driver_config = _build_config(config, url=url, profile=profile, reconnect=False)
        options = _action_options(action, value, option)
        text = asyncio.run(_send(driver_config, action, options, timeout, settle))
        typer.echo(f"Sent {text}")
    except KommanderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _parse_watch(item: str) -> tuple[str, str]:
    path, sep, variable = item.rpartition("=")
    if not sep or not variable:
        raise typer.BadParameter(f"Watch '{item}' must look like PATH=VARIABLE", param_hint="--watch")
    return path, variable


async def _monitor(config: DriverConfig, watches: list[tuple[str, str]], duration: float | None) -> None:
    def _print_values(values: dict[str, Any]) -> None:
        for name, val in sorted(values.items()):
            typer.echo(f"{name}={val}")

    def _print_status(status: ConnectionStatus, message: str | None) -> None:
        suffix = f": {message}" if message else ""
        typer.echo(f"[{status.value}]{suffix}", err=True)

    async with Client(config, on_variables=_print_values, on_status=_print_status) as client:
        if client.status is ConnectionStatus.BAD_CONFIG:
            raise InvalidAddressError(f"'{config.url}' is not a ws:// or wss:// URL")
        for path, variable in watches:
            client.watch(path, variable)
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)


@app.command("monitor")
def monitor(
    watch: list[str] = typer.Option([], "--watch", "-w", help="Export PATH of each message to VARIABLE (PATH=VARIABLE)"),
    url: str | None = typer.Option(None, "--url", help="ws:// or wss:// address of the device"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    config: Path | None = typer.Option(None, "--config", help="YAML config file"),
    duration: float | None = typer.Option(None, "--duration", help="Stop after this many seconds"),
    debug_messages: bool = typer.Option(False, "--debug-messages", help="Log every message sent and received"),
) -> None:
    """Stay connected and print variable updates as notifications arrive."""
    try:
        driver_config = _build_config(
            config,
            url=url,
            profile=profile,
            debug_messages=debug_messages or None,
        )
        watches = [_parse_watch(item) for item in watch]
        asyncio.run(_monitor(driver_config, watches, duration))
    except KeyboardInterrupt:
        raise typer.Exit(code=0) from None
    except KommanderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
