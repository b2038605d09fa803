"""Stable public API for embedding the pushbot bridge.

This module is the supported integration surface for third-party callers, such
as home-automation hosts that want to drive the controllers directly.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from pushbot.core.controller import DeviceController
from pushbot.core.errors import (
    AdapterUnavailableError,
    ConfigLoadError,
    ConfigValidationError,
    ConnectError,
    DeviceNotFoundError,
    DeviceSelectionError,
    GattResolutionError,
    NotConnectedError,
    PushbotError,
    RetryExhaustedError,
    TransportError,
    WriteError,
)
from pushbot.core.model import (
    AccessoryInfo,
    BridgeConfig,
    ConnectionPhase,
    ConnectionState,
    DeviceConfig,
    DiscoveredAddress,
    PushResult,
    Timings,
)
from pushbot.core.registry import DeviceRegistry
from pushbot.core.service import BridgeService
from pushbot.hosts.base import SwitchHost
from pushbot.transports.base import BLEAdapter, WriteMode
from pushbot.transports.bleak_adapter import BleakAdapter

__all__ = [
    "PushbotError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceSelectionError",
    "RetryExhaustedError",
    "TransportError",
    "AdapterUnavailableError",
    "DeviceNotFoundError",
    "ConnectError",
    "GattResolutionError",
    "WriteError",
    "NotConnectedError",
    "AccessoryInfo",
    "BridgeConfig",
    "ConnectionPhase",
    "ConnectionState",
    "DeviceConfig",
    "DiscoveredAddress",
    "PushResult",
    "Timings",
    "BLEAdapter",
    "BleakAdapter",
    "WriteMode",
    "SwitchHost",
    "DeviceController",
    "DeviceRegistry",
    "Bridge",
]


class Bridge:
    """Public handle on a configured set of push-button devices.

    A `Bridge` loads the configuration, shares one adapter between all devices
    and gives hosts access to each device's controller for get/set calls.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        config: BridgeConfig | None = None,
        adapter: BLEAdapter | None = None,
        host: SwitchHost | None = None,
    ) -> None:
        self._service = BridgeService(config_path, config=config, adapter=adapter, host=host)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def controllers(self) -> tuple[DeviceController, ...]:
        return self._service.registry.controllers

    def controller(self, device_hint: str) -> DeviceController:
        return self._service.registry.get(device_hint)

    def list_devices(self) -> list[DeviceConfig]:
        return self._service.list_devices()

    async def serve(self, stop_event: asyncio.Event | None = None) -> None:
        await self._service.serve(stop_event)

    async def push(self, device_hint: str) -> PushResult:
        return await self._service.push(device_hint)

    async def scan(self, duration_s: float | None = None) -> list[DiscoveredAddress]:
        return await self._service.scan(duration_s)
