"""Coordinator running one scale sync cycle at a time."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging

from homeassistant.components import persistent_notification
from homeassistant.core import HomeAssistant, callback

from .api import ScaleSyncApiClient, ScaleSyncApiError, ScaleSyncAuthError
from .const import NOTIFICATION_ID
from .history import HistoryStore
from .models import (
    AdapterState,
    Failed,
    FailureReason,
    Measured,
    Measurement,
    SessionOutcome,
    SyncResult,
)
from .session import ScaleSession

_LOGGER = logging.getLogger(__name__)

SyncCompletion = Callable[[SyncResult], None]
Notifier = Callable[[bool, str], None]

FAILURE_MESSAGES = {
    FailureReason.ADAPTER_UNAVAILABLE: "Bluetooth is unavailable.",
    FailureReason.CONNECT_ERROR: "Could not connect to the scale.",
    FailureReason.TIMEOUT: "No data received from the scale.",
    FailureReason.CANCELLED: "Sync was cancelled.",
}


async def async_get_adapter_state(hass: HomeAssistant) -> AdapterState:
    """Report whether Home Assistant has a connectable Bluetooth scanner."""
    if "bluetooth" not in hass.config.components:
        return AdapterState.UNKNOWN

    from homeassistant.components import bluetooth

    if bluetooth.async_scanner_count(hass, connectable=True):
        return AdapterState.POWERED_ON
    return AdapterState.POWERED_OFF


@callback
def async_notify_result(hass: HomeAssistant, success: bool, message: str) -> None:
    """Show the result of a sync cycle as a persistent notification."""
    persistent_notification.async_create(
        hass,
        message,
        title="Scale sync complete" if success else "Scale sync failed",
        notification_id=NOTIFICATION_ID,
    )


def describe_result(outcome: SessionOutcome, upload_error: str | None) -> str:
    """Build the user-facing message for a finished cycle."""
    if isinstance(outcome, Failed):
        return FAILURE_MESSAGES[outcome.reason]
    message = f"Read {outcome.measurement.weight_kg:.2f} kg."
    if upload_error:
        message += f" Upload failed: {upload_error}."
    return message


class SyncCoordinator:
    """Owns the single in-flight scale session and what happens after it.

    A measurement is written to history before the upload is attempted, so
    it is kept even if the upload fails. Failed uploads are not retried.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        history: HistoryStore,
        api: ScaleSyncApiClient,
        token: str | None,
        session_factory: Callable[[], ScaleSession],
        notify: Notifier,
    ) -> None:
        self._hass = hass
        self._history = history
        self._api = api
        self._token = token
        self._session_factory = session_factory
        self._notify = notify
        self._session: ScaleSession | None = None
        self._task: asyncio.Task | None = None
        self._listeners: list[Callable[[], None]] = []
        self.last_result: SyncResult | None = None

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def is_syncing(self) -> bool:
        return self._session is not None

    @callback
    def start(self, completion: SyncCompletion | None = None) -> bool:
        """Start a sync cycle unless one is already running.

        Returns False, without calling ``completion``, when a cycle is in
        progress. Otherwise ``completion`` is called exactly once with the
        result of the cycle.
        """
        if self._session is not None:
            _LOGGER.debug("Sync already in progress, ignoring start request")
            return False

        self._session = self._session_factory()
        _LOGGER.debug("Starting scale sync")
        self._task = self._hass.async_create_task(
            self._async_run_cycle(self._session, completion)
        )
        return True

    async def async_sync(self) -> SyncResult | None:
        """Run a sync cycle and wait for it; None if one was already running."""
        future: asyncio.Future[SyncResult] = self._hass.loop.create_future()

        @callback
        def _set_result(result: SyncResult) -> None:
            # The caller may have been cancelled while the cycle ran
            if not future.done():
                future.set_result(result)

        if not self.start(_set_result):
            return None
        return await future

    async def async_shutdown(self) -> None:
        """Cancel a running session and wait for its cycle to finish."""
        if self._session is not None:
            self._session.cancel()
        if self._task is not None:
            await self._task
            self._task = None

    @callback
    def add_listener(self, update_callback: Callable[[], None]) -> Callable[[], None]:
        """Listen for finished sync cycles."""
        self._listeners.append(update_callback)

        @callback
        def remove_listener() -> None:
            if update_callback in self._listeners:
                self._listeners.remove(update_callback)

        return remove_listener

    async def _async_run_cycle(
        self, session: ScaleSession, completion: SyncCompletion | None
    ) -> None:
        try:
            outcome = await session.run()
            uploaded: bool | None = None
            upload_error: str | None = None
            if isinstance(outcome, Measured):
                self._history.insert(outcome.measurement)
                upload_error = await self._async_upload(outcome.measurement)
                uploaded = upload_error is None

            result = SyncResult(outcome, uploaded, describe_result(outcome, upload_error))
            if result.success:
                _LOGGER.info("Scale sync finished: %s", result.message)
            else:
                _LOGGER.info(
                    "Scale sync failed (%s): %s", outcome.reason.value, result.message
                )
            self.last_result = result
            self._notify(result.success, result.message)
            self._async_update_listeners()
        finally:
            self._session = None

        if completion is not None:
            completion(result)

    async def _async_upload(self, measurement: Measurement) -> str | None:
        """Upload a measurement; return an error description on failure."""
        if not self._token:
            _LOGGER.warning("No backend token configured, measurement not uploaded")
            return "not logged in"
        try:
            await self._api.async_upload(measurement, self._token)
        except ScaleSyncAuthError as err:
            _LOGGER.warning("Backend rejected credentials: %s", err)
            return "unauthorized"
        except ScaleSyncApiError as err:
            _LOGGER.warning("Failed to upload measurement: %s", err)
            return str(err)

        self._history.mark_synced(measurement.timestamp)
        return None

    @callback
    def _async_update_listeners(self) -> None:
        for update_callback in list(self._listeners):
            update_callback()
