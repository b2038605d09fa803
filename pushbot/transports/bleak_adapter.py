"""BLE adapter implementation on top of bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pushbot.core.address import addresses_match, format_address, normalize_address
from pushbot.core.errors import (
    AdapterUnavailableError,
    ConnectError,
    DeviceNotFoundError,
    GattResolutionError,
    NotConnectedError,
    TransportError,
    WriteError,
)
from pushbot.transports.base import WriteMode

LOGGER = logging.getLogger(__name__)


@dataclass(eq=False)
class BleakDeviceHandle:
    ble_device: Any
    client: Any = None
    disconnect_callbacks: list[Callable[[], None]] = field(default_factory=list)

    @property
    def address(self) -> str:
        return self.ble_device.address

    def client_disconnected(self, client: Any) -> None:
        # Callbacks from a superseded client must not reset the current link.
        if self.client is None or self.client is client:
            self.fire_disconnected(client)

    def fire_disconnected(self, _client: Any = None) -> None:
        callbacks, self.disconnect_callbacks = self.disconnect_callbacks, []
        for callback in callbacks:
            callback()


@dataclass(frozen=True, eq=False)
class BleakServiceHandle:
    device: BleakDeviceHandle
    service: Any


@dataclass(frozen=True, eq=False)
class BleakCharacteristicHandle:
    device: BleakDeviceHandle
    characteristic: Any


class BleakAdapter:
    """One shared scanner plus a client per connected peripheral."""

    def __init__(self, *, adapter: str | None = None, find_timeout_s: float = 5.0) -> None:
        self._adapter_name = adapter
        self._find_timeout_s = find_timeout_s
        self._scanner: Any = None
        self._scanner_cls: Any = None
        self._client_cls: Any = None
        self._bleak_error: type[Exception] = Exception
        self._scanning = False
        self._seen: dict[str, Any] = {}
        self._handles: dict[str, BleakDeviceHandle] = {}

    async def open(self) -> None:
        if self._scanner is not None:
            return
        try:
            from bleak import BleakClient, BleakScanner  # type: ignore
            from bleak.exc import BleakError  # type: ignore
        except Exception as exc:  # pragma: no cover - import failure path
            raise AdapterUnavailableError(
                "BLE adapter requires 'bleak'. Install dependency and retry."
            ) from exc

        kwargs: dict[str, Any] = {"detection_callback": self._on_detection}
        if self._adapter_name:
            kwargs["adapter"] = self._adapter_name
        try:
            self._scanner = BleakScanner(**kwargs)
        except Exception as exc:
            raise AdapterUnavailableError(f"Bluetooth adapter unavailable: {exc}") from exc
        self._scanner_cls = BleakScanner
        self._client_cls = BleakClient
        self._bleak_error = BleakError

    async def close(self) -> None:
        if self._scanning:
            try:
                await self.stop_discovery()
            except TransportError as exc:
                LOGGER.debug("Error stopping discovery on close: %s", exc)
        for handle in list(self._handles.values()):
            try:
                await self.disconnect(handle)
            except TransportError as exc:
                LOGGER.debug("Error disconnecting %s on close: %s", handle.address, exc)
        self._handles.clear()

    def _require_open(self) -> Any:
        if self._scanner is None:
            raise AdapterUnavailableError("BLE adapter has not been opened")
        return self._scanner

    def _on_detection(self, device: Any, _advertisement: Any) -> None:
        self._seen[device.address] = device

    async def start_discovery(self) -> None:
        scanner = self._require_open()
        if self._scanning:
            return
        self._seen.clear()
        try:
            await scanner.start()
        except (self._bleak_error, OSError) as exc:
            raise TransportError(f"BLE discovery start failed: {exc}") from exc
        self._scanning = True

    async def stop_discovery(self) -> None:
        scanner = self._require_open()
        if not self._scanning:
            return
        try:
            await scanner.stop()
        except (self._bleak_error, OSError) as exc:
            raise TransportError(f"BLE discovery stop failed: {exc}") from exc
        finally:
            self._scanning = False

    async def list_discovered_addresses(self) -> list[str]:
        scanner = self._require_open()
        for device in scanner.discovered_devices:
            self._seen[device.address] = device
        return list(self._seen)

    async def resolve_device(self, address: str) -> BleakDeviceHandle:
        self._require_open()
        key = normalize_address(address)
        existing = self._handles.get(key)
        if existing is not None:
            return existing

        ble_device = next(
            (device for seen_address, device in self._seen.items() if addresses_match(seen_address, key)),
            None,
        )
        if ble_device is None:
            try:
                ble_device = await self._scanner_cls.find_device_by_address(
                    format_address(key),
                    timeout=self._find_timeout_s,
                )
            except (self._bleak_error, OSError) as exc:
                raise DeviceNotFoundError(f"BLE lookup failed for {format_address(key)}: {exc}") from exc
        if ble_device is None:
            raise DeviceNotFoundError(f"BLE device {format_address(key)} not found")

        handle = BleakDeviceHandle(ble_device=ble_device)
        self._handles[key] = handle
        return handle

    async def connect(self, device: BleakDeviceHandle) -> None:
        self._require_open()
        client = self._client_cls(device.ble_device, disconnected_callback=device.client_disconnected)
        try:
            await client.connect()
        except (self._bleak_error, OSError) as exc:
            await self._discard_client(client)
            raise ConnectError(f"BLE connect failed for {device.address}: {exc}") from exc
        except asyncio.CancelledError:
            await self._discard_client(client)
            raise
        if not client.is_connected:
            await self._discard_client(client)
            raise ConnectError(f"BLE connect failed for {device.address}")
        device.client = client

    async def _discard_client(self, client: Any) -> None:
        try:
            await client.disconnect()
        except (self._bleak_error, OSError) as exc:
            LOGGER.debug("Ignoring disconnect error on abandoned client: %s", exc)

    async def disconnect(self, device: BleakDeviceHandle) -> None:
        client, device.client = device.client, None
        if client is None:
            return
        try:
            await client.disconnect()
        except (self._bleak_error, OSError) as exc:
            raise TransportError(f"BLE disconnect failed for {device.address}: {exc}") from exc

    def on_disconnect(self, device: BleakDeviceHandle, callback: Callable[[], None]) -> None:
        device.disconnect_callbacks.append(callback)

    def _client_for(self, device: BleakDeviceHandle) -> Any:
        if device.client is None or not device.client.is_connected:
            raise NotConnectedError(f"BLE device {device.address} is not connected")
        return device.client

    async def get_service(self, device: BleakDeviceHandle, uuid: str) -> BleakServiceHandle:
        client = self._client_for(device)
        service = client.services.get_service(uuid)
        if service is None:
            raise GattResolutionError(f"Service {uuid} not found on {device.address}")
        return BleakServiceHandle(device=device, service=service)

    async def get_characteristic(self, service: BleakServiceHandle, uuid: str) -> BleakCharacteristicHandle:
        characteristic = service.service.get_characteristic(uuid)
        if characteristic is None:
            raise GattResolutionError(
                f"Characteristic {uuid} not found in service {service.service.uuid}"
            )
        return BleakCharacteristicHandle(device=service.device, characteristic=characteristic)

    async def write_characteristic(
        self,
        handle: BleakCharacteristicHandle,
        data: bytes,
        mode: WriteMode,
    ) -> None:
        client = self._client_for(handle.device)
        try:
            await client.write_gatt_char(
                handle.characteristic,
                data,
                response=mode is WriteMode.REQUEST,
            )
        except (self._bleak_error, OSError) as exc:
            raise WriteError(f"BLE write failed: {exc}") from exc

    async def read_characteristic(self, handle: BleakCharacteristicHandle) -> bytes:
        client = self._client_for(handle.device)
        try:
            data = await client.read_gatt_char(handle.characteristic)
        except (self._bleak_error, OSError) as exc:
            raise TransportError(f"BLE read failed: {exc}") from exc
        return bytes(data)

    async def subscribe_notifications(self, handle: BleakCharacteristicHandle) -> None:
        client = self._client_for(handle.device)

        def _notify_handler(_: Any, data: bytearray) -> None:
            LOGGER.debug("Notification from %s: %s", handle.device.address, bytes(data).hex())

        try:
            await client.start_notify(handle.characteristic, _notify_handler)
        except (self._bleak_error, OSError) as exc:
            raise TransportError(f"BLE notify subscription failed: {exc}") from exc
