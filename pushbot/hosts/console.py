"""Switch host that echoes state changes to the terminal."""

from __future__ import annotations

import typer

from pushbot.core.model import DeviceConfig


class ConsoleSwitchHost:
    def update_on(self, config: DeviceConfig, on: bool) -> None:
        typer.echo(f"{config.name} ({config.address}): {'on' if on else 'off'}")
