from __future__ import annotations

import asyncio

import pytest

from fakes import FAST_TIMINGS, FakeAdapter, FakeHost, make_config
from pushbot.core.errors import ConnectError, DeviceSelectionError
from pushbot.core.model import BridgeConfig
from pushbot.core.service import BridgeService


def _service(adapter: FakeAdapter, host: FakeHost | None = None) -> BridgeService:
    config = BridgeConfig(
        devices=(make_config(name="Boiler", address="aabbccddeeff"),),
        timings=FAST_TIMINGS,
        warnings=("Skipping device entry 1: bad hex",),
    )
    return BridgeService(config=config, adapter=adapter, host=host)


def test_service_registers_configured_devices() -> None:
    service = _service(FakeAdapter())
    assert [d.name for d in service.list_devices()] == ["Boiler"]
    assert service.load_warnings == ("Skipping device entry 1: bad hex",)


@pytest.mark.asyncio
async def test_push_happy_path() -> None:
    adapter = FakeAdapter()
    host = FakeHost()
    service = _service(adapter, host)

    result = await service.push("boiler")

    assert result.succeeded is True
    assert result.payload_hex == "0102030f"
    assert result.device.name == "Boiler"
    assert host.updates == [("Boiler", True), ("Boiler", False)]
    assert adapter.closed is True


@pytest.mark.asyncio
async def test_push_failure_is_reported_not_raised() -> None:
    adapter = FakeAdapter(connect_error=ConnectError("out of range"))
    service = _service(adapter)

    result = await service.push("Boiler")

    assert result.succeeded is False
    assert adapter.writes == []


@pytest.mark.asyncio
async def test_push_unknown_device() -> None:
    service = _service(FakeAdapter())

    with pytest.raises(DeviceSelectionError):
        await service.push("garage")


@pytest.mark.asyncio
async def test_scan_marks_configured_devices() -> None:
    adapter = FakeAdapter(addresses=("11:22:33:44:55:66", "AA:BB:CC:DD:EE:FF"))
    service = _service(adapter)

    found = await service.scan(0.001)

    assert [(f.address, f.configured_name) for f in found] == [
        ("11:22:33:44:55:66", None),
        ("AA:BB:CC:DD:EE:FF", "Boiler"),
    ]
    assert adapter.closed is True


@pytest.mark.asyncio
async def test_serve_until_stop_event() -> None:
    adapter = FakeAdapter()
    service = _service(adapter)
    stop_event = asyncio.Event()

    serving = asyncio.create_task(service.serve(stop_event))
    controller = service.registry.get("Boiler")
    while not controller.state.ready:
        await asyncio.sleep(0.001)
    stop_event.set()
    await asyncio.wait_for(serving, timeout=1.0)

    assert controller.state.connected is False
    assert adapter.closed is True
