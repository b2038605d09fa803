"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from pushbot.core.errors import PushbotError
from pushbot.core.service import BridgeService
from pushbot.hosts.console import ConsoleSwitchHost

app = typer.Typer(help="Bridge BLE push-button devices to an on/off switch")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_service(config: Path | None) -> BridgeService:
    service = BridgeService(config, host=ConsoleSwitchHost())
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.command("run")
def run_bridge(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to the YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run the bridge until interrupted."""
    _configure_logging(verbose)
    try:
        service = _build_service(config)
        if not service.list_devices():
            typer.echo("No devices configured", err=True)
            raise typer.Exit(code=1)
        asyncio.run(service.serve())
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except PushbotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("validate")
def validate_config(config: Path | None = typer.Option(None, "--config", "-c", help="Path to the YAML config file")) -> None:
    """Load the config and list the devices it defines."""
    try:
        service = _build_service(config)
        devices = service.list_devices()
        if not devices:
            typer.echo("No valid devices configured")
            raise typer.Exit(code=1)

        for device in devices:
            heartbeat = "heartbeat" if device.notify_uuid else "no heartbeat"
            typer.echo(f"{device.name}: {device.address} payload={device.push_packet.hex()} ({heartbeat})")
    except PushbotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan_devices(
    duration: float | None = typer.Option(None, "--duration", help="Scan window in seconds"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to the YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List BLE addresses seen during one scan window."""
    _configure_logging(verbose)
    try:
        service = _build_service(config)
        found = asyncio.run(service.scan(duration))
        if not found:
            typer.echo("No Bluetooth devices found")
            return

        for entry in found:
            matched = entry.configured_name or "<not-configured>"
            typer.echo(f"{entry.address} -> {matched}")
    except PushbotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("push")
def push_device(
    device: str = typer.Argument(..., help="Configured device name or hardware address"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to the YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Connect to one device and trigger a single push."""
    _configure_logging(verbose)
    try:
        service = _build_service(config)
        result = asyncio.run(service.push(device))
        if not result.succeeded:
            typer.echo(f"Push to {result.device.name} ({result.device.address}) failed", err=True)
            raise typer.Exit(code=1)
        typer.echo(
            f"Pushed {result.device.name} ({result.device.address}) payload={result.payload_hex}"
        )
    except PushbotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
