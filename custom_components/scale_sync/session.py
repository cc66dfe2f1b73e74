"""BLE central state machine that reads one weight measurement from a scale."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.backends.service import BleakGATTServiceCollection
from bleak.exc import BleakError
from bleak_retry_connector import establish_connection
from homeassistant.util import dt as dt_util

from .const import DEFAULT_SESSION_TIMEOUT, WEIGHT_MEASUREMENT_UUID, WEIGHT_SERVICE_UUID
from .decoder import decode_weight, format_payload
from .models import (
    AdapterState,
    DiscoveredDevice,
    Failed,
    FailureReason,
    Measured,
    Measurement,
    SessionOutcome,
    SessionState,
)

_LOGGER = logging.getLogger(__name__)

AdapterProbe = Callable[[], Awaitable[AdapterState]]
DisconnectedCallback = Callable[[BleakClient], None]
Connector = Callable[[BLEDevice, DisconnectedCallback], Awaitable[BleakClient]]

CONNECTED_STATES = (
    SessionState.CONNECTING,
    SessionState.DISCOVERING_SERVICE,
    SessionState.DISCOVERING_CHARACTERISTIC,
    SessionState.SUBSCRIBING,
    SessionState.AWAITING_NOTIFICATION,
)


async def async_assume_powered_on() -> AdapterState:
    """Adapter probe for hosts that cannot report radio power.

    A powered-off radio then shows up as a failure to start scanning.
    """
    return AdapterState.POWERED_ON


async def async_connect_scale(
    device: BLEDevice, disconnected_callback: DisconnectedCallback
) -> BleakClient:
    """Connect to the scale through bleak-retry-connector."""
    return await establish_connection(
        BleakClient,
        device,
        device.name or device.address,
        disconnected_callback=disconnected_callback,
    )


class ScaleSession:
    """Single-use negotiation with one scale, ending in exactly one outcome.

    Every external event (adapter state, advertisement, connection, discovery,
    subscription, notification, disconnect, deadline) has one dispatch method.
    A dispatch method acts only if the session is in the state that event
    belongs to; anything else is logged and dropped.
    """

    def __init__(
        self,
        adapter_probe: AdapterProbe = async_assume_powered_on,
        *,
        timeout: float = DEFAULT_SESSION_TIMEOUT,
        scanner_factory: Callable[..., Any] = BleakScanner,
        connector: Connector = async_connect_scale,
    ) -> None:
        self.state = SessionState.IDLE
        self.device: DiscoveredDevice | None = None
        self._adapter_probe = adapter_probe
        self._timeout = timeout
        self._scanner_factory = scanner_factory
        self._connector = connector
        self._outcome: asyncio.Future[SessionOutcome] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._scanner: Any = None
        self._scanning = False
        self._client: BleakClient | None = None
        self._torn_down = False

    async def run(self) -> SessionOutcome:
        """Negotiate with the scale and return the terminal outcome."""
        if self.state is not SessionState.IDLE:
            raise RuntimeError("A ScaleSession can only be run once")

        loop = asyncio.get_running_loop()
        self._outcome = loop.create_future()
        self._timer = loop.call_later(self._timeout, self._on_timeout)
        self._transition(SessionState.AWAITING_ADAPTER)
        self._spawn(self._async_probe_adapter())

        try:
            outcome = await asyncio.shield(self._outcome)
        except asyncio.CancelledError:
            self.cancel()
            await self._async_teardown()
            raise

        await self._async_teardown()
        return outcome

    def cancel(self) -> None:
        """End a running session with Failed(CANCELLED)."""
        self._finish(Failed(FailureReason.CANCELLED))

    # Event dispatch

    def _on_adapter_state(self, adapter_state: AdapterState) -> None:
        if not self._accepts("adapter state", SessionState.AWAITING_ADAPTER):
            return
        if adapter_state is not AdapterState.POWERED_ON:
            _LOGGER.debug("Bluetooth adapter not usable: %s", adapter_state.value)
            self._finish(Failed(FailureReason.ADAPTER_UNAVAILABLE))
            return
        self._transition(SessionState.SCANNING)
        self._spawn(self._async_start_scanning())

    def _on_advertisement(self, device: BLEDevice, adv: AdvertisementData) -> None:
        if not self._accepts("advertisement", SessionState.SCANNING):
            return
        service_ids = [uuid.lower() for uuid in adv.service_uuids]
        if WEIGHT_SERVICE_UUID not in service_ids:
            return

        _LOGGER.debug(
            "Found scale %s (%s), rssi=%s", device.name, device.address, adv.rssi
        )
        self.device = DiscoveredDevice(device.address, service_ids, device)
        self._transition(SessionState.CONNECTING)
        self._spawn(self._async_connect(self.device))

    def _on_connect_failed(self, err: Exception) -> None:
        if not self._accepts("connection failure", SessionState.CONNECTING):
            return
        _LOGGER.debug("Failed to connect to scale: %s", err)
        self._finish(Failed(FailureReason.CONNECT_ERROR))

    def _on_connected(self, client: BleakClient) -> None:
        # Keep the client even when late so teardown disconnects it.
        self._client = client
        if not self._accepts("connection", SessionState.CONNECTING):
            return
        self._transition(SessionState.DISCOVERING_SERVICE)
        self._on_services_discovered(client, client.services)

    def _on_services_discovered(
        self, client: BleakClient, services: BleakGATTServiceCollection
    ) -> None:
        if not self._accepts("services", SessionState.DISCOVERING_SERVICE):
            return
        service = services.get_service(WEIGHT_SERVICE_UUID)
        if service is None:
            _LOGGER.debug("Weight service not found, waiting for deadline")
            return
        self._transition(SessionState.DISCOVERING_CHARACTERISTIC)
        self._on_characteristic_discovered(
            client, service.get_characteristic(WEIGHT_MEASUREMENT_UUID)
        )

    def _on_characteristic_discovered(
        self, client: BleakClient, characteristic: BleakGATTCharacteristic | None
    ) -> None:
        if not self._accepts(
            "characteristic", SessionState.DISCOVERING_CHARACTERISTIC
        ):
            return
        if characteristic is None:
            _LOGGER.debug("Weight measurement characteristic not found")
            return
        self._transition(SessionState.SUBSCRIBING)
        self._spawn(self._async_subscribe(client, characteristic))

    def _on_subscribed(self) -> None:
        if not self._accepts("subscription", SessionState.SUBSCRIBING):
            return
        self._transition(SessionState.AWAITING_NOTIFICATION)

    def _on_notification(
        self, sender: BleakGATTCharacteristic, data: bytearray
    ) -> None:
        if not self._accepts("notification", SessionState.AWAITING_NOTIFICATION):
            return
        _LOGGER.debug("Payload from scale: %s", format_payload(data))
        weight = decode_weight(data)
        if weight is None:
            _LOGGER.debug("Dropping undecodable payload %s", data.hex())
            return
        self._finish(Measured(Measurement(timestamp=dt_util.utcnow(), weight_kg=weight)))

    def _on_disconnected(self, client: BleakClient) -> None:
        if not self._accepts("disconnect", *CONNECTED_STATES):
            return
        _LOGGER.debug("Scale disconnected during %s", self.state.value)
        self._finish(Failed(FailureReason.CONNECT_ERROR))

    def _on_timeout(self) -> None:
        self._timer = None
        if self.state is SessionState.TERMINAL:
            return
        _LOGGER.debug(
            "No measurement within %ss, gave up in %s", self._timeout, self.state.value
        )
        self._finish(Failed(FailureReason.TIMEOUT))

    # Work started by transitions

    async def _async_probe_adapter(self) -> None:
        self._on_adapter_state(await self._adapter_probe())

    async def _async_start_scanning(self) -> None:
        self._scanner = self._scanner_factory(
            detection_callback=self._on_advertisement,
            service_uuids=[WEIGHT_SERVICE_UUID],
        )
        self._scanning = True
        try:
            await self._scanner.start()
        except BleakError as err:
            _LOGGER.debug("Failed to start scanning: %s", err)
            self._scanning = False
            self._finish(Failed(FailureReason.ADAPTER_UNAVAILABLE))

    async def _async_connect(self, device: DiscoveredDevice) -> None:
        await self._async_stop_scanning()
        try:
            client = await self._connector(device.ble_device, self._on_disconnected)
        except (BleakError, asyncio.TimeoutError) as err:
            self._on_connect_failed(err)
            return
        self._on_connected(client)

    async def _async_subscribe(
        self, client: BleakClient, characteristic: BleakGATTCharacteristic
    ) -> None:
        try:
            await client.start_notify(characteristic, self._on_notification)
        except BleakError as err:
            _LOGGER.debug("Failed to subscribe to %s: %s", characteristic.uuid, err)
            self._finish(Failed(FailureReason.CONNECT_ERROR))
            return
        self._on_subscribed()

    # Terminal handling

    def _finish(self, outcome: SessionOutcome) -> None:
        if self._outcome is None or self.state is SessionState.TERMINAL:
            return
        self._transition(SessionState.TERMINAL)
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self._outcome.set_result(outcome)

    async def _async_teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True

        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self._async_stop_scanning()

        if self._client is not None:
            client, self._client = self._client, None
            try:
                await client.disconnect()
            except Exception as err:  # pylint: disable=broad-except
                _LOGGER.debug("Error disconnecting from scale: %s", err)

        self.device = None

    async def _async_stop_scanning(self) -> None:
        if not self._scanning:
            return
        self._scanning = False
        try:
            await self._scanner.stop()
        except Exception as err:  # pylint: disable=broad-except
            _LOGGER.debug("Error stopping scanner: %s", err)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(self._async_guard(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _async_guard(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            await coro
        except Exception:  # pylint: disable=broad-except
            _LOGGER.exception("Unexpected error while %s", self.state.value)
            self._finish(Failed(FailureReason.CONNECT_ERROR))

    def _accepts(self, event: str, *states: SessionState) -> bool:
        if self.state in states:
            return True
        _LOGGER.debug("Ignoring %s in state %s", event, self.state.value)
        return False

    def _transition(self, new_state: SessionState) -> None:
        _LOGGER.debug("Scale session %s -> %s", self.state.value, new_state.value)
        self.state = new_state
