"""Decoding of Weight Measurement characteristic payloads."""

from __future__ import annotations

from datetime import datetime

FLAG_IMPERIAL = 0x01
FLAG_TIMESTAMP = 0x02
FLAG_USER_ID = 0x04
FLAG_BMI_HEIGHT = 0x08

LB_TO_KG = 0.45359237
SI_RESOLUTION = 0.005

MEASUREMENT_UNSUCCESSFUL = 0xFFFF

# Length of each optional field announced by the flags byte
_OPTIONAL_FIELDS = (
    (FLAG_TIMESTAMP, 7),
    (FLAG_USER_ID, 1),
    (FLAG_BMI_HEIGHT, 4),
)


def _expected_length(flags: int) -> int:
    length = 3
    for flag, size in _OPTIONAL_FIELDS:
        if flags & flag:
            length += size
    return length


def decode_weight(payload: bytes | bytearray) -> float | None:
    """Return the weight in kilograms, or None if the payload is not a reading.

    Byte 0 holds the flags, bytes 1-2 the little-endian weight. With the
    imperial flag the weight is in 0.01 lb steps, otherwise in 0.005 kg steps.
    The optional fields that follow are not interpreted, but the payload must
    be long enough to hold every field its flags announce.

    A raw weight of 0 is the idle scale. 0xFFFF is the value the Bluetooth
    SIG Weight Measurement characteristic (0x2A9D) defines as "Measurement
    Unsuccessful". Neither is a reading.
    """
    if len(payload) < 3:
        return None

    flags = payload[0]
    if len(payload) < _expected_length(flags):
        return None

    raw_weight = int.from_bytes(payload[1:3], byteorder="little", signed=False)
    if raw_weight in (0, MEASUREMENT_UNSUCCESSFUL):
        return None

    if flags & FLAG_IMPERIAL:
        pounds = raw_weight / 100
        return pounds * LB_TO_KG
    return raw_weight * SI_RESOLUTION


def format_payload(payload: bytes | bytearray) -> str:
    """Return a human-readable string for debug logging."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    parts = [f"[{timestamp}] HEX: {payload.hex()}", f"RAW: {list(payload)}"]
    weight = decode_weight(payload)
    if weight is not None:
        parts.append(f"WEIGHT: {weight:.3f} kg")
    return " | ".join(parts)
