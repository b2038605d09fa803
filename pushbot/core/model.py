"""Core data models shared by the loader, controllers and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_DEVICE_NAME = "PushBot"
MANUFACTURER = "BLE Bot"
MODEL = "PushBot"


@dataclass(frozen=True)
class Timings:
    """Tunable delays and bounds of the connection lifecycle, in seconds."""

    scan_duration_s: float = 4.0
    reconnect_delay_s: float = 15.0
    connect_timeout_s: float = 10.0
    gatt_settle_s: float = 2.0
    write_settle_s: float = 0.3
    write_attempts: int = 3
    write_retry_delay_s: float = 0.5
    auto_off_s: float = 1.5
    heartbeat_interval_s: float = 15.0


@dataclass(frozen=True)
class DeviceConfig:
    name: str
    address: str
    service_uuid: str
    write_uuid: str
    push_packet: bytes
    notify_uuid: str | None = None
    write_with_response: bool = True


@dataclass(frozen=True)
class BridgeConfig:
    devices: tuple[DeviceConfig, ...]
    timings: Timings
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class AccessoryInfo:
    """Static identity fields exposed to the host."""

    name: str
    manufacturer: str
    model: str
    serial_number: str

    @classmethod
    def for_device(cls, config: DeviceConfig) -> AccessoryInfo:
        return cls(
            name=config.name,
            manufacturer=MANUFACTURER,
            model=MODEL,
            serial_number=config.address,
        )


class ConnectionPhase(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    CONNECTED_PENDING_GATT = "connected_pending_gatt"
    CONNECTED_READY = "connected_ready"


@dataclass
class ConnectionState:
    """Mutable per-controller link state.

    ``write_handle`` and ``notify_handle`` are only set while ``connected`` is
    true; :meth:`mark_disconnected` clears all three together.
    """

    phase: ConnectionPhase = ConnectionPhase.IDLE
    connected: bool = False
    write_handle: Any = None
    notify_handle: Any = None
    switch_on: bool = False
    heartbeat_active: bool = False

    @property
    def ready(self) -> bool:
        return self.connected and self.write_handle is not None

    def mark_disconnected(self) -> None:
        self.connected = False
        self.write_handle = None
        self.notify_handle = None
        self.phase = ConnectionPhase.IDLE


@dataclass(frozen=True)
class DiscoveredAddress:
    address: str
    configured_name: str | None = None


@dataclass(frozen=True)
class PushResult:
    device: DeviceConfig
    succeeded: bool
    payload_hex: str
