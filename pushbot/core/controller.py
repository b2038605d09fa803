"""Per-device connection lifecycle, keep-alive and push execution."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pushbot.core.address import addresses_match
from pushbot.core.errors import (
    AdapterUnavailableError,
    ConnectError,
    NotConnectedError,
    RetryExhaustedError,
)
from pushbot.core.model import AccessoryInfo, ConnectionPhase, ConnectionState, DeviceConfig, Timings
from pushbot.core.retry import Sleep, retry_async
from pushbot.hosts.base import NullSwitchHost, SwitchHost
from pushbot.transports.base import BLEAdapter, WriteMode

LOGGER = logging.getLogger(__name__)


class DeviceController:
    """Owns one peripheral: discovery loop, connection, heartbeat and pushes.

    Every piece of work runs as a task on the caller's event loop. All waits go
    through ``sleep`` so tests can observe and shorten them.
    """

    def __init__(
        self,
        config: DeviceConfig,
        adapter: BLEAdapter,
        host: SwitchHost | None = None,
        *,
        timings: Timings | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.config = config
        self.timings = timings or Timings()
        self.state = ConnectionState()
        self.accessory_info = AccessoryInfo.for_device(config)
        self._adapter = adapter
        self._host = host or NullSwitchHost()
        self._sleep = sleep or asyncio.sleep
        self._write_mode = WriteMode.REQUEST if config.write_with_response else WriteMode.COMMAND
        self._connect_lock = asyncio.Lock()
        self._device: Any = None
        self._push_in_flight = False
        self._stopping = False
        self._loop_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._auto_off_tasks: set[asyncio.Task[None]] = set()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def phase(self) -> ConnectionPhase:
        return self.state.phase

    def get_on(self) -> bool:
        return self.state.switch_on

    # --- Discovery loop ---

    def start(self) -> asyncio.Task[None]:
        if self._loop_task is None or self._loop_task.done():
            self._stopping = False
            self._loop_task = asyncio.create_task(
                self.run(), name=f"pushbot-discovery-{self.config.address}"
            )
        return self._loop_task

    async def run(self) -> None:
        """Scan and reconnect until stopped."""
        try:
            await self._adapter.open()
        except AdapterUnavailableError as exc:
            LOGGER.error("[%s] BLE initialization failed: %s", self.name, exc)
            return

        while not self._stopping:
            if not self.state.connected and not self._connect_lock.locked():
                try:
                    await self.scan_once()
                except Exception as exc:
                    LOGGER.error("[%s] Scan error: %s", self.name, exc)
            await self._sleep(self.timings.reconnect_delay_s)

    async def scan_once(self) -> bool:
        """Run one discovery window and connect on a match.

        Returns True when the configured address was seen and connected.
        """
        self.state.phase = ConnectionPhase.SCANNING
        LOGGER.info("[%s] Scanning for nearby devices...", self.name)
        try:
            try:
                await self._adapter.stop_discovery()
            except Exception as exc:
                LOGGER.debug("[%s] Ignoring stop-discovery error: %s", self.name, exc)
            await self._adapter.start_discovery()
            await self._sleep(self.timings.scan_duration_s)
            await self._adapter.stop_discovery()
            addresses = await self._adapter.list_discovered_addresses()
        finally:
            if self.state.phase is ConnectionPhase.SCANNING:
                self.state.phase = ConnectionPhase.IDLE

        for address in addresses:
            if addresses_match(address, self.config.address):
                LOGGER.info("[%s] Found device %s", self.name, address)
                device = await self._adapter.resolve_device(address)
                await self.connect(device)
                return True

        LOGGER.debug("[%s] Device not seen in this scan window", self.name)
        return False

    # --- Connection ---

    async def connect(self, device: Any = None) -> None:
        """Connect and resolve characteristics, raising ConnectError on failure.

        Attempts are serialized; a caller that waited on an attempt which left
        the link ready returns without connecting again.
        """
        async with self._connect_lock:
            if self.state.ready:
                return
            try:
                if device is None:
                    device = await self._adapter.resolve_device(self.config.address)
                await self._connect_sequence(device)
            except Exception as exc:
                await self._rollback(device)
                if isinstance(exc, ConnectError):
                    raise
                raise ConnectError(f"Connection to {self.config.address} failed: {exc}") from exc

    async def _connect_sequence(self, device: Any) -> None:
        self.state.phase = ConnectionPhase.CONNECTING
        LOGGER.info("[%s] Connecting...", self.name)
        await asyncio.wait_for(
            self._adapter.connect(device),
            timeout=self.timings.connect_timeout_s,
        )
        self._device = device
        self.state.connected = True
        self.state.phase = ConnectionPhase.CONNECTED_PENDING_GATT

        await self._sleep(self.timings.gatt_settle_s)

        service = await self._adapter.get_service(device, self.config.service_uuid)
        self.state.write_handle = await self._adapter.get_characteristic(service, self.config.write_uuid)
        self._adapter.on_disconnect(device, self._handle_disconnect)

        if self.config.notify_uuid:
            await self._setup_notify(service)

        self.state.phase = ConnectionPhase.CONNECTED_READY
        LOGGER.info("[%s] Connected and ready for control", self.name)

    async def _setup_notify(self, service: Any) -> None:
        try:
            handle = await self._adapter.get_characteristic(service, self.config.notify_uuid)
            await self._adapter.subscribe_notifications(handle)
        except Exception as exc:
            LOGGER.warning("[%s] Notify setup failed, continuing without heartbeat: %s", self.name, exc)
            return
        self.state.notify_handle = handle
        self._start_heartbeat()

    async def _rollback(self, device: Any) -> None:
        self._cancel_heartbeat()
        self.state.mark_disconnected()
        if device is None:
            return
        try:
            await self._adapter.disconnect(device)
        except Exception as exc:
            LOGGER.debug("[%s] Ignoring disconnect error during rollback: %s", self.name, exc)

    def _handle_disconnect(self) -> None:
        LOGGER.warning("[%s] Connection lost", self.name)
        self.state.mark_disconnected()
        self._cancel_heartbeat()

    # --- Heartbeat ---

    def _start_heartbeat(self) -> None:
        self._cancel_heartbeat()
        if not self.state.connected or self.state.notify_handle is None:
            return
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(), name=f"pushbot-heartbeat-{self.config.address}"
        )
        self.state.heartbeat_active = True

    def _cancel_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()
        self.state.heartbeat_active = False

    async def _heartbeat_loop(self) -> None:
        try:
            while True:
                await self._sleep(self.timings.heartbeat_interval_s)
                handle = self.state.notify_handle
                if not self.state.connected or handle is None:
                    return
                try:
                    await self._adapter.read_characteristic(handle)
                except Exception as exc:
                    LOGGER.debug("[%s] Heartbeat read failed: %s", self.name, exc)
        finally:
            if self._heartbeat_task is asyncio.current_task():
                self._heartbeat_task = None
                self.state.heartbeat_active = False

    # --- Activation ---

    async def set_on(self, value: bool) -> bool:
        """Handle a host request to turn the switch on.

        Never raises; returns True when the push packet was written. The switch
        always reverts to off after ``auto_off_s``.
        """
        if not value:
            return False
        if self._push_in_flight:
            LOGGER.warning("[%s] Push already in progress, ignoring request", self.name)
            self._schedule_auto_off()
            return False

        self._push_in_flight = True
        succeeded = False
        try:
            succeeded = await self._push()
        except Exception as exc:
            LOGGER.error("[%s] Push failed: %s", self.name, exc)
        finally:
            self._push_in_flight = False
            self._schedule_auto_off()
        return succeeded

    async def _push(self) -> bool:
        if not self.state.ready:
            LOGGER.warning("[%s] Not connected, connecting before push", self.name)
            try:
                await self.connect()
            except ConnectError as exc:
                LOGGER.error("[%s] Push aborted: %s", self.name, exc)
                return False

        self._cancel_heartbeat()
        try:
            await self._sleep(self.timings.write_settle_s)
            LOGGER.info("[%s] Sending push command...", self.name)
            await retry_async(
                self._write_push_packet,
                attempts=self.timings.write_attempts,
                delay_s=self.timings.write_retry_delay_s,
                sleep=self._sleep,
                on_failure=self._log_write_failure,
            )
        except RetryExhaustedError as exc:
            LOGGER.error("[%s] Push command failed after %d attempts: %s", self.name, exc.attempts, exc.__cause__)
            return False

        LOGGER.info("[%s] Switch actuated", self.name)
        if self.state.connected:
            self._start_heartbeat()
        self.state.switch_on = True
        self._publish(True)
        return True

    async def _write_push_packet(self) -> None:
        handle = self.state.write_handle
        if not self.state.connected or handle is None:
            raise NotConnectedError(f"{self.config.address} is not connected")
        await self._adapter.write_characteristic(handle, self.config.push_packet, self._write_mode)

    def _log_write_failure(self, attempt: int, exc: Exception) -> None:
        LOGGER.warning(
            "[%s] Write failed (attempt %d/%d): %s",
            self.name,
            attempt,
            self.timings.write_attempts,
            exc,
        )

    def _schedule_auto_off(self) -> None:
        task = asyncio.create_task(self._auto_off(), name=f"pushbot-auto-off-{self.config.address}")
        self._auto_off_tasks.add(task)
        task.add_done_callback(self._auto_off_tasks.discard)

    async def _auto_off(self) -> None:
        await self._sleep(self.timings.auto_off_s)
        self.state.switch_on = False
        self._publish(False)

    def _publish(self, on: bool) -> None:
        try:
            self._host.update_on(self.config, on)
        except Exception as exc:
            LOGGER.error("[%s] Host update failed: %s", self.name, exc)

    async def wait_for_auto_off(self) -> None:
        """Wait until every pending auto-off timer has fired."""
        while self._auto_off_tasks:
            await asyncio.gather(*list(self._auto_off_tasks), return_exceptions=True)

    # --- Shutdown ---

    async def stop(self) -> None:
        self._stopping = True
        tasks = [
            task
            for task in (self._loop_task, self._heartbeat_task, *self._auto_off_tasks)
            if task is not None and not task.done()
        ]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = None
        self._heartbeat_task = None
        self.state.heartbeat_active = False

        if self._device is not None and self.state.connected:
            try:
                await self._adapter.disconnect(self._device)
            except Exception as exc:
                LOGGER.debug("[%s] Ignoring disconnect error on stop: %s", self.name, exc)
        self.state.mark_disconnected()
