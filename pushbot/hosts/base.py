"""Host exposure interfaces."""

from __future__ import annotations

from typing import Protocol

from pushbot.core.model import DeviceConfig


class SwitchHost(Protocol):
    def update_on(self, config: DeviceConfig, on: bool) -> None:
        """Push an asynchronous switch state change out to the host."""


class NullSwitchHost:
    def update_on(self, config: DeviceConfig, on: bool) -> None:
        return None
