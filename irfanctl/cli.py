"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from irfanctl.core.errors import CommunicationFailure, IrfanctlError
from irfanctl.core.model import IntentState, TransmitOutcome
from irfanctl.core.service import FanService
from irfanctl.core.settings import Settings, load_settings
from irfanctl.core.transmit import fragment_count
from irfanctl.transports.serial_port import available_ports

app = typer.Typer(help="Infrared ceiling-fan remote over a serial IR blaster")


def _load_settings(ctx: typer.Context, **overrides: object) -> Settings:
    obj = ctx.obj or {}
    settings = load_settings(obj.get("config"))
    return settings.with_overrides(**overrides)


def _build_service(settings: Settings) -> FanService:
    return FanService(settings)


async def _open(service: FanService) -> None:
    if not await service.start():
        await service.stop()
        raise CommunicationFailure(f"Could not open serial port {service.settings.port}")


async def _send(service: FanService, name: str) -> TransmitOutcome:
    await _open(service)
    try:
        return await service.send_signal(name)
    finally:
        await service.stop()


async def _apply(
    service: FanService,
    on: bool | None,
    speed: int | None,
) -> tuple[IntentState, TransmitOutcome | None]:
    await _open(service)
    try:
        if speed is not None:
            service.set_speed(speed)
        if on is not None:
            service.set_on(on)
        await service.settle()
        return service.intent, service.last_outcome
    finally:
        await service.stop()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="-v for info, -vv for debug"),
) -> None:
    """Control an infrared fan through a serial IR blaster."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.obj = {"config": config}


@app.command("ports")
def list_ports() -> None:
    """List serial ports visible to the system."""
    ports = available_ports()
    if not ports:
        typer.echo("No serial ports found")
        return
    for port in ports:
        typer.echo(f"{port.device} {port.description}".rstrip())


@app.command("signals")
def list_signals(
    ctx: typer.Context,
    signals_file: Path | None = typer.Option(None, "--signals-file", help="IR signal file"),
) -> None:
    """List the signals in the IR signal file."""
    try:
        settings = _load_settings(ctx, signals_file=signals_file)
        service = _build_service(settings)
        for waveform in service.list_signals():
            fragments = fragment_count(waveform, settings.max_fragment_samples)
            typer.echo(
                f"{waveform.name}: F={waveform.frequency_hz}Hz DC={waveform.duty_cycle_percent:g}% "
                f"samples={len(waveform.samples)} fragments={fragments}"
            )
    except IrfanctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("send")
def send_signal(
    ctx: typer.Context,
    name: str,
    port: str | None = typer.Option(None, "--port", help="Serial port of the IR blaster"),
    signals_file: Path | None = typer.Option(None, "--signals-file", help="IR signal file"),
) -> None:
    """Send one named signal once."""
    try:
        service = _build_service(_load_settings(ctx, port=port, signals_file=signals_file))
        outcome = asyncio.run(_send(service, name))
        if not outcome.ok:
            typer.echo(f"Error: {name} failed at fragment {outcome.progress}: {outcome.error}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Sent {name} ({outcome.progress} fragments)")
    except IrfanctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("set")
def set_intent(
    ctx: typer.Context,
    on: bool | None = typer.Option(None, "--on/--off", help="Turn the fan on or off"),
    speed: int | None = typer.Option(None, "--speed", min=0, max=100, help="Speed in percent"),
    port: str | None = typer.Option(None, "--port", help="Serial port of the IR blaster"),
    signals_file: Path | None = typer.Option(None, "--signals-file", help="IR signal file"),
) -> None:
    """Update the fan intent and wait for the resulting command to be sent."""
    if on is None and speed is None:
        typer.echo("Error: nothing to set; pass --on/--off and/or --speed", err=True)
        raise typer.Exit(code=2)
    try:
        settings = _load_settings(ctx, port=port, signals_file=signals_file)
        service = _build_service(settings)
        intent, outcome = asyncio.run(_apply(service, on, speed))
        typer.echo(f"on={'yes' if intent.on else 'no'} speed={intent.speed}")
        if outcome is None:
            typer.echo("No command needed")
            if settings.state_file is None:
                # Without a state file the previous intent is always the default (off).
                typer.echo(
                    "Note: no state_file is configured, so the fan's last state is unknown. "
                    "Use 'irfanctl send Fan_off' to force a signal."
                )
        elif outcome.ok:
            typer.echo(f"Sent {outcome.waveform} ({outcome.progress} fragments)")
        else:
            typer.echo(f"Error: {outcome.waveform} failed at fragment {outcome.progress}: {outcome.error}", err=True)
            raise typer.Exit(code=1)
    except IrfanctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
