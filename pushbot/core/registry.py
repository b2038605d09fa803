"""Registry that owns one controller per configured device."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pushbot.core.address import addresses_match
from pushbot.core.config_loader import build_device_config
from pushbot.core.controller import DeviceController
from pushbot.core.errors import DeviceSelectionError
from pushbot.core.model import DeviceConfig, Timings
from pushbot.core.retry import Sleep
from pushbot.hosts.base import SwitchHost
from pushbot.transports.base import BLEAdapter

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationFailure:
    index: int
    error: str


class DeviceRegistry:
    def __init__(
        self,
        adapter: BLEAdapter,
        host: SwitchHost | None = None,
        *,
        timings: Timings | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._adapter = adapter
        self._host = host
        self._timings = timings or Timings()
        self._sleep = sleep
        self._controllers: list[DeviceController] = []
        self._failures: list[RegistrationFailure] = []

    @property
    def controllers(self) -> tuple[DeviceController, ...]:
        return tuple(self._controllers)

    @property
    def failures(self) -> tuple[RegistrationFailure, ...]:
        return tuple(self._failures)

    def register(self, entries: Iterable[DeviceConfig | Mapping[str, Any]]) -> list[DeviceController]:
        """Create a controller per entry, in order.

        A failing entry is logged and recorded in ``failures``; it never stops
        the remaining entries from registering.
        """
        created: list[DeviceController] = []
        for index, entry in enumerate(entries):
            try:
                config = entry if isinstance(entry, DeviceConfig) else build_device_config(
                    entry, context=f"devices[{index}]"
                )
                LOGGER.info("Registering device: %s (%s)", config.name, config.address)
                controller = DeviceController(
                    config,
                    self._adapter,
                    self._host,
                    timings=self._timings,
                    sleep=self._sleep,
                )
            except Exception as exc:
                LOGGER.error("Could not register device entry %d: %s", index, exc)
                self._failures.append(RegistrationFailure(index=index, error=str(exc)))
                continue
            self._controllers.append(controller)
            created.append(controller)
        return created

    def get(self, hint: str) -> DeviceController:
        """Find a controller by exact name (case-insensitive) or hardware address."""
        lowered = hint.strip().lower()
        for controller in self._controllers:
            if controller.name.lower() == lowered or addresses_match(controller.config.address, hint):
                return controller
        known = ", ".join(c.name for c in self._controllers) or "<none>"
        raise DeviceSelectionError(f"No configured device matches '{hint}'. Known devices: {known}")

    def start(self) -> list[asyncio.Task[None]]:
        return [controller.start() for controller in self._controllers]

    async def stop(self) -> None:
        await asyncio.gather(*(controller.stop() for controller in self._controllers))
