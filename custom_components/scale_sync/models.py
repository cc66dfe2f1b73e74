"""Data types shared by the scale session, history and coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from bleak.backends.device import BLEDevice
from homeassistant.util import dt as dt_util


class AdapterState(Enum):
    """Power state of the host Bluetooth radio."""

    UNKNOWN = "unknown"
    POWERED_OFF = "powered_off"
    POWERED_ON = "powered_on"
    UNAUTHORIZED = "unauthorized"


class SessionState(Enum):
    """States of a scale session, in negotiation order."""

    IDLE = "idle"
    AWAITING_ADAPTER = "awaiting_adapter"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    DISCOVERING_SERVICE = "discovering_service"
    DISCOVERING_CHARACTERISTIC = "discovering_characteristic"
    SUBSCRIBING = "subscribing"
    AWAITING_NOTIFICATION = "awaiting_notification"
    TERMINAL = "terminal"


class FailureReason(Enum):
    """Why a session ended without a measurement."""

    ADAPTER_UNAVAILABLE = "adapter_unavailable"
    CONNECT_ERROR = "connect_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class Measurement:
    """A single weight reading taken from the scale."""

    timestamp: datetime
    weight_kg: float
    synced: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "weight_kg": self.weight_kg,
            "synced": self.synced,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Measurement:
        timestamp = dt_util.parse_datetime(data["timestamp"])
        if timestamp is None:
            raise ValueError(f"Invalid measurement timestamp: {data['timestamp']}")
        return cls(
            timestamp=timestamp,
            weight_kg=float(data["weight_kg"]),
            synced=bool(data.get("synced", False)),
        )


@dataclass
class DiscoveredDevice:
    """Peripheral picked by the scan; lives only as long as its session."""

    identity: str
    service_ids: list[str]
    ble_device: BLEDevice = field(repr=False)


@dataclass(frozen=True)
class Measured:
    measurement: Measurement


@dataclass(frozen=True)
class Failed:
    reason: FailureReason


SessionOutcome = Union[Measured, Failed]


@dataclass(frozen=True)
class SyncResult:
    """Completion payload of one sync cycle.

    ``uploaded`` is None when the session produced no measurement.
    """

    outcome: SessionOutcome
    uploaded: bool | None
    message: str

    @property
    def success(self) -> bool:
        return isinstance(self.outcome, Measured)
