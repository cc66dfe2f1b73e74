"""Fixtures for scale_sync tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from custom_components.scale_sync.models import Measurement


@pytest.fixture
def make_measurement():
    """Build measurements at fixed, increasing times."""

    def _make(minute: int, weight_kg: float = 80.0) -> Measurement:
        return Measurement(
            timestamp=datetime(2024, 5, 1, 7, minute, tzinfo=timezone.utc),
            weight_kg=weight_kg,
        )

    return _make
