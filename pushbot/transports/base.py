"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, Protocol


class WriteMode(Enum):
    REQUEST = "request"
    COMMAND = "command"


class BLEAdapter(Protocol):
    """Capabilities the device controllers need from a BLE stack.

    Device, service and characteristic handles are opaque to callers; they are
    owned by the adapter and only passed back into it.
    """

    async def open(self) -> None:
        """Initialize the adapter; raise AdapterUnavailableError on failure."""

    async def close(self) -> None: ...

    async def start_discovery(self) -> None: ...

    async def stop_discovery(self) -> None: ...

    async def list_discovered_addresses(self) -> Sequence[str]: ...

    async def resolve_device(self, address: str) -> Any: ...

    async def connect(self, device: Any) -> None: ...

    async def disconnect(self, device: Any) -> None: ...

    def on_disconnect(self, device: Any, callback: Callable[[], None]) -> None:
        """Register a callback fired once when the device link drops."""

    async def get_service(self, device: Any, uuid: str) -> Any: ...

    async def get_characteristic(self, service: Any, uuid: str) -> Any: ...

    async def write_characteristic(self, handle: Any, data: bytes, mode: WriteMode) -> None: ...

    async def read_characteristic(self, handle: Any) -> bytes: ...

    async def subscribe_notifications(self, handle: Any) -> None: ...
