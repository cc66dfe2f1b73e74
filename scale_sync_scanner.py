#!/usr/bin/env python3
"""
Scale Sync BLE Scanner

This script runs one scale session outside Home Assistant: it scans for a
scale advertising the Bluetooth weight service, connects, waits for a weight
measurement, prints the result and appends it to output.txt.
"""

import asyncio
import logging
import sys
from datetime import datetime

from custom_components.scale_sync.models import Failed, Measured
from custom_components.scale_sync.session import ScaleSession

# Seconds to wait for a measurement
SESSION_TIMEOUT = 20.0

# Output file path
OUTPUT_FILE = "output.txt"


def format_outcome(outcome: Measured | Failed) -> str:
    """
    Format a session outcome for display.

    Args:
        outcome: Terminal outcome of a scale session

    Returns:
        Formatted string representation of the outcome
    """
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    if isinstance(outcome, Measured):
        measurement = outcome.measurement
        return f"[{timestamp}] WEIGHT: {measurement.weight_kg:.2f} kg"
    return f"[{timestamp}] FAILED: {outcome.reason.value}"


async def run_session(timeout: float = SESSION_TIMEOUT, output_file: str = OUTPUT_FILE) -> bool:
    """
    Run one scale session and record its outcome.

    Args:
        timeout: Seconds to wait for a measurement
        output_file: Path to file where output will be stored

    Returns:
        True if a weight was read
    """
    print(f"Waiting up to {timeout:.0f}s for a scale. Step on it now...")

    session = ScaleSession(timeout=timeout)
    outcome = await session.run()
    formatted = format_outcome(outcome)
    print(formatted)

    with open(output_file, "a", encoding="utf-8") as f:
        f.write(formatted + "\n")

    return isinstance(outcome, Measured)


async def main() -> None:
    """Main entry point for the scale scanner."""
    print("=" * 60)
    print("Scale Sync BLE Scanner")
    print("=" * 60)

    if "-v" in sys.argv:
        logging.basicConfig(level=logging.DEBUG)

    if not await run_session():
        print("\nNo weight read. Make sure Bluetooth is on and the scale is awake.")
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nScanner stopped by user.")
