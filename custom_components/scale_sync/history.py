"""Local, time-ordered record of weight measurements."""

from __future__ import annotations

from bisect import bisect_left
from datetime import datetime
import logging
from typing import Any

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.storage import Store

from .const import STORAGE_KEY, STORAGE_SAVE_DELAY, STORAGE_VERSION
from .models import Measurement

_LOGGER = logging.getLogger(__name__)


class HistoryStore:
    """Append-only measurement history persisted with Home Assistant storage.

    Entries are kept oldest-first by timestamp; readers get newest-first
    snapshots. Nothing is ever removed here.
    """

    def __init__(self, hass: HomeAssistant, entry_id: str) -> None:
        self._store: Store[dict[str, Any]] = Store(
            hass, STORAGE_VERSION, f"{STORAGE_KEY}.{entry_id}"
        )
        self._history: list[Measurement] = []

    async def async_load(self) -> None:
        """Load persisted history."""
        data = await self._store.async_load()
        if not data:
            return
        loaded: list[Measurement] = []
        for item in data.get("measurements", []):
            try:
                loaded.append(Measurement.from_dict(item))
            except (KeyError, TypeError, ValueError) as err:
                _LOGGER.warning("Skipping unreadable history entry %s: %s", item, err)
        loaded.sort(key=lambda m: m.timestamp)
        self._history = loaded
        _LOGGER.debug("Loaded %d measurements from history", len(self._history))

    @callback
    def insert(self, measurement: Measurement) -> bool:
        """Add a measurement; returns False if its timestamp is already recorded."""
        history = self._history
        if not history or measurement.timestamp > history[-1].timestamp:
            history.append(measurement)
        else:
            timestamps = [m.timestamp for m in history]
            pos = bisect_left(timestamps, measurement.timestamp)
            if pos < len(history) and history[pos].timestamp == measurement.timestamp:
                _LOGGER.debug(
                    "Measurement at %s already recorded", measurement.timestamp
                )
                return False
            history.insert(pos, measurement)

        self._schedule_save()
        _LOGGER.debug(
            "Recorded %.2f kg at %s (history_size=%d)",
            measurement.weight_kg,
            measurement.timestamp,
            len(history),
        )
        return True

    @callback
    def mark_synced(self, timestamp: datetime) -> bool:
        """Flag the measurement taken at ``timestamp`` as uploaded."""
        for measurement in reversed(self._history):
            if measurement.timestamp == timestamp:
                measurement.synced = True
                self._schedule_save()
                return True
        return False

    @callback
    def measurements(self) -> list[Measurement]:
        """Return a newest-first snapshot of the history."""
        return list(reversed(self._history))

    @property
    def latest(self) -> Measurement | None:
        return self._history[-1] if self._history else None

    def __len__(self) -> int:
        return len(self._history)

    async def async_save(self) -> None:
        """Write history to disk immediately."""
        await self._store.async_save(self._data_to_save())

    @callback
    def _schedule_save(self) -> None:
        self._store.async_delay_save(self._data_to_save, STORAGE_SAVE_DELAY)

    @callback
    def _data_to_save(self) -> dict[str, Any]:
        return {"measurements": [m.as_dict() for m in self._history]}
