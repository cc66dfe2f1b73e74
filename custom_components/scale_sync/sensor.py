from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfMass
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN
from .coordinator import SyncCoordinator

_LOGGER = logging.getLogger(__name__)

# Number of most recent measurements exposed as an attribute
HISTORY_ATTRIBUTE_SIZE = 10


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the weight sensor for a scale sync entry."""
    coordinator: SyncCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([ScaleWeightSensor(coordinator, entry)])


class ScaleWeightSensor(SensorEntity):
    """Latest weight read from the scale, with recent history as attributes."""

    _attr_has_entity_name = True
    _attr_name = "Weight"
    _attr_icon = "mdi:scale-bathroom"
    _attr_device_class = SensorDeviceClass.WEIGHT
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfMass.KILOGRAMS
    _attr_suggested_display_precision = 2

    def __init__(self, coordinator: SyncCoordinator, entry: ConfigEntry) -> None:
        self._coordinator = coordinator
        self._attr_unique_id = f"{entry.entry_id}_weight"
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry.entry_id)},
            manufacturer="Bluetooth SIG",
            model="Weight Scale",
            name=entry.title,
        )
        self._update_from_history()

    async def async_added_to_hass(self) -> None:
        @callback
        def handle_update() -> None:
            self._update_from_history()
            self.async_write_ha_state()

        self.async_on_remove(self._coordinator.add_listener(handle_update))

    @callback
    def _update_from_history(self) -> None:
        history = self._coordinator.history
        latest = history.latest
        self._attr_native_value = latest.weight_kg if latest else None

        attributes: dict[str, Any] = {
            "history": [
                {
                    "timestamp": m.timestamp.isoformat(),
                    "weight_kg": round(m.weight_kg, 3),
                    "synced": m.synced,
                }
                for m in history.measurements()[:HISTORY_ATTRIBUTE_SIZE]
            ],
        }
        if latest is not None:
            attributes["measured_at"] = latest.timestamp.isoformat()
            attributes["synced"] = latest.synced
        if (result := self._coordinator.last_result) is not None:
            attributes["last_sync_message"] = result.message
        self._attr_extra_state_attributes = attributes
