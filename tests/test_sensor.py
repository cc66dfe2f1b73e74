"""Tests for the weight sensor."""

from __future__ import annotations

from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.scale_sync.const import DOMAIN
from custom_components.scale_sync.history import HistoryStore
from custom_components.scale_sync.models import Measured, SyncResult
from custom_components.scale_sync.sensor import HISTORY_ATTRIBUTE_SIZE, ScaleWeightSensor


class FakeCoordinator:
    def __init__(self, history: HistoryStore) -> None:
        self.history = history
        self.last_result: SyncResult | None = None

    def add_listener(self, update_callback):
        return lambda: None


async def test_empty_history(hass: HomeAssistant) -> None:
    entry = MockConfigEntry(domain=DOMAIN, title="Scale sync (alice)", data={})
    sensor = ScaleWeightSensor(FakeCoordinator(HistoryStore(hass, "x")), entry)

    assert sensor.native_value is None
    assert sensor.unique_id == f"{entry.entry_id}_weight"
    assert sensor.extra_state_attributes == {"history": []}


async def test_latest_measurement_and_history(
    hass: HomeAssistant, make_measurement
) -> None:
    history = HistoryStore(hass, "x")
    for minute in range(15):
        history.insert(make_measurement(minute, 80.0 + minute / 10))
    history.mark_synced(make_measurement(14).timestamp)
    coordinator = FakeCoordinator(history)
    coordinator.last_result = SyncResult(
        Measured(history.latest), True, "Read 81.40 kg."
    )

    sensor = ScaleWeightSensor(coordinator, MockConfigEntry(domain=DOMAIN, data={}))
    attributes = sensor.extra_state_attributes

    assert sensor.native_value == history.latest.weight_kg
    assert len(attributes["history"]) == HISTORY_ATTRIBUTE_SIZE
    assert attributes["history"][0]["timestamp"] == "2024-05-01T07:14:00+00:00"
    assert attributes["measured_at"] == "2024-05-01T07:14:00+00:00"
    assert attributes["synced"] is True
    assert attributes["last_sync_message"] == "Read 81.40 kg."
