"""Tests for the measurement history store."""

from __future__ import annotations

from homeassistant.core import HomeAssistant

from custom_components.scale_sync.const import STORAGE_KEY, STORAGE_VERSION
from custom_components.scale_sync.history import HistoryStore

ENTRY_ID = "test_entry"
STORE_KEY = f"{STORAGE_KEY}.{ENTRY_ID}"


async def test_load_sorts_and_skips_bad_entries(
    hass: HomeAssistant, hass_storage
) -> None:
    hass_storage[STORE_KEY] = {
        "version": STORAGE_VERSION,
        "minor_version": 1,
        "key": STORE_KEY,
        "data": {
            "measurements": [
                {
                    "timestamp": "2024-05-01T07:30:00+00:00",
                    "weight_kg": 80.5,
                    "synced": True,
                },
                {"timestamp": "not a date", "weight_kg": 1.0},
                {"weight_kg": 2.0},
                {"timestamp": "2024-05-01T07:10:00+00:00", "weight_kg": 81.0},
            ]
        },
    }

    history = HistoryStore(hass, ENTRY_ID)
    await history.async_load()

    assert len(history) == 2
    newest, oldest = history.measurements()
    assert newest.weight_kg == 80.5
    assert newest.synced is True
    assert oldest.weight_kg == 81.0
    assert oldest.synced is False
    assert history.latest is newest


async def test_load_without_stored_data(hass: HomeAssistant) -> None:
    history = HistoryStore(hass, ENTRY_ID)
    await history.async_load()

    assert len(history) == 0
    assert history.latest is None
    assert history.measurements() == []


async def test_insert_keeps_time_order(hass: HomeAssistant, make_measurement) -> None:
    history = HistoryStore(hass, ENTRY_ID)

    assert history.insert(make_measurement(10, 80.0))
    assert history.insert(make_measurement(30, 79.0))
    # Arrives late but belongs in the middle
    assert history.insert(make_measurement(20, 79.5))

    assert [m.timestamp.minute for m in history.measurements()] == [30, 20, 10]
    assert history.latest.weight_kg == 79.0


async def test_insert_rejects_duplicate_timestamp(
    hass: HomeAssistant, make_measurement
) -> None:
    history = HistoryStore(hass, ENTRY_ID)
    history.insert(make_measurement(10, 80.0))
    history.insert(make_measurement(20, 80.0))

    assert not history.insert(make_measurement(10, 70.0))
    assert not history.insert(make_measurement(20, 70.0))
    assert len(history) == 2
    assert all(m.weight_kg == 80.0 for m in history.measurements())


async def test_measurements_is_a_snapshot(
    hass: HomeAssistant, make_measurement
) -> None:
    history = HistoryStore(hass, ENTRY_ID)
    history.insert(make_measurement(10))

    snapshot = history.measurements()
    snapshot.clear()

    assert len(history) == 1


async def test_mark_synced(hass: HomeAssistant, make_measurement) -> None:
    history = HistoryStore(hass, ENTRY_ID)
    first = make_measurement(10)
    second = make_measurement(20)
    history.insert(first)
    history.insert(second)

    assert history.mark_synced(second.timestamp)
    assert second.synced is True
    assert first.synced is False
    assert not history.mark_synced(make_measurement(59).timestamp)


async def test_save_and_reload(
    hass: HomeAssistant, hass_storage, make_measurement
) -> None:
    history = HistoryStore(hass, ENTRY_ID)
    history.insert(make_measurement(10, 80.25))
    history.insert(make_measurement(20, 80.0))
    history.mark_synced(make_measurement(10).timestamp)
    await history.async_save()

    stored = hass_storage[STORE_KEY]["data"]["measurements"]
    assert stored == [
        {"timestamp": "2024-05-01T07:10:00+00:00", "weight_kg": 80.25, "synced": True},
        {"timestamp": "2024-05-01T07:20:00+00:00", "weight_kg": 80.0, "synced": False},
    ]

    reloaded = HistoryStore(hass, ENTRY_ID)
    await reloaded.async_load()
    assert reloaded.measurements() == history.measurements()
