"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pushbot.core.address import addresses_match
from pushbot.core.config_loader import load_config
from pushbot.core.model import BridgeConfig, DeviceConfig, DiscoveredAddress, PushResult
from pushbot.core.registry import DeviceRegistry
from pushbot.hosts.base import SwitchHost
from pushbot.transports.base import BLEAdapter
from pushbot.transports.bleak_adapter import BleakAdapter

LOGGER = logging.getLogger(__name__)


class BridgeService:
    def __init__(
        self,
        config_path: Path | None = None,
        *,
        config: BridgeConfig | None = None,
        adapter: BLEAdapter | None = None,
        host: SwitchHost | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self.load_warnings = self.config.warnings
        self.adapter = adapter or BleakAdapter()
        self.registry = DeviceRegistry(self.adapter, host, timings=self.config.timings)
        self.registry.register(self.config.devices)

    def list_devices(self) -> list[DeviceConfig]:
        return [controller.config for controller in self.registry.controllers]

    async def serve(self, stop_event: asyncio.Event | None = None) -> None:
        """Run every device loop until ``stop_event`` is set or the task is cancelled."""
        stop_event = stop_event or asyncio.Event()
        self.registry.start()
        LOGGER.info("Bridge running with %d device(s)", len(self.registry.controllers))
        try:
            await stop_event.wait()
        finally:
            await self.registry.stop()
            await self.adapter.close()
            LOGGER.info("Bridge stopped")

    async def push(self, device_hint: str) -> PushResult:
        """Connect to one device, push once and wait for the switch to revert."""
        controller = self.registry.get(device_hint)
        await self.adapter.open()
        try:
            succeeded = await controller.set_on(True)
            await controller.wait_for_auto_off()
        finally:
            await controller.stop()
            await self.adapter.close()
        return PushResult(
            device=controller.config,
            succeeded=succeeded,
            payload_hex=controller.config.push_packet.hex(),
        )

    async def scan(self, duration_s: float | None = None) -> list[DiscoveredAddress]:
        duration_s = self.config.timings.scan_duration_s if duration_s is None else duration_s
        await self.adapter.open()
        try:
            await self.adapter.start_discovery()
            try:
                await asyncio.sleep(duration_s)
            finally:
                await self.adapter.stop_discovery()
            addresses = await self.adapter.list_discovered_addresses()
        finally:
            await self.adapter.close()

        results: list[DiscoveredAddress] = []
        for address in sorted(addresses):
            name = next(
                (d.name for d in self.list_devices() if addresses_match(d.address, address)),
                None,
            )
            results.append(DiscoveredAddress(address=address, configured_name=name))
        return results
