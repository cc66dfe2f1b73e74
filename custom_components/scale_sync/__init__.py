"""The scale_sync integration."""

from __future__ import annotations

from datetime import datetime, timedelta
from functools import partial
import logging

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_URL, Platform
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
    callback,
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.event import async_track_time_interval

from .api import ScaleSyncApiClient
from .const import (
    CONF_SESSION_TIMEOUT,
    CONF_SYNC_INTERVAL,
    CONF_TOKEN,
    DEFAULT_SESSION_TIMEOUT,
    DEFAULT_SYNC_INTERVAL,
    DOMAIN,
    SERVICE_SYNC_NOW,
)
from .coordinator import SyncCoordinator, async_get_adapter_state, async_notify_result
from .history import HistoryStore
from .session import ScaleSession

PLATFORMS: list[Platform] = [Platform.SENSOR]

_LOGGER = logging.getLogger(__name__)

SERVICE_SYNC_NOW_SCHEMA = vol.Schema({}, extra=vol.ALLOW_EXTRA)

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)


def _get_option(entry: ConfigEntry, key: str, default: int) -> int:
    return entry.options.get(key, entry.data.get(key, default))


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up scale sync from a config entry."""
    history = HistoryStore(hass, entry.entry_id)
    await history.async_load()

    api = ScaleSyncApiClient(async_get_clientsession(hass), entry.data[CONF_URL])
    session_timeout = _get_option(entry, CONF_SESSION_TIMEOUT, DEFAULT_SESSION_TIMEOUT)

    def session_factory() -> ScaleSession:
        return ScaleSession(
            partial(async_get_adapter_state, hass), timeout=session_timeout
        )

    coordinator = SyncCoordinator(
        hass,
        history,
        api,
        entry.data.get(CONF_TOKEN),
        session_factory,
        partial(async_notify_result, hass),
    )
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coordinator

    sync_interval = _get_option(entry, CONF_SYNC_INTERVAL, DEFAULT_SYNC_INTERVAL)
    if sync_interval > 0:

        @callback
        def _scheduled_sync(now: datetime) -> None:
            if not coordinator.start():
                _LOGGER.debug("Skipping scheduled sync, previous one still running")

        entry.async_on_unload(
            async_track_time_interval(
                hass, _scheduled_sync, timedelta(minutes=sync_interval)
            )
        )

    if not hass.services.has_service(DOMAIN, SERVICE_SYNC_NOW):
        hass.services.async_register(
            DOMAIN,
            SERVICE_SYNC_NOW,
            partial(_async_handle_sync_now, hass),
            schema=SERVICE_SYNC_NOW_SCHEMA,
            supports_response=SupportsResponse.OPTIONAL,
        )

    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    return True


async def _async_handle_sync_now(
    hass: HomeAssistant, call: ServiceCall
) -> ServiceResponse:
    """Run a sync on every configured scale and report the results."""
    coordinators: dict[str, SyncCoordinator] = hass.data.get(DOMAIN, {})
    if not coordinators:
        raise HomeAssistantError("No scale sync entry is set up")

    results = {}
    # Reloading an entry while its sync runs removes it from hass.data
    for entry_id, coordinator in list(coordinators.items()):
        result = await coordinator.async_sync()
        if result is None:
            raise HomeAssistantError("A scale sync is already in progress")
        results[entry_id] = {
            "success": result.success,
            "uploaded": result.uploaded,
            "message": result.message,
        }
    return results if call.return_response else None


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry when its options change."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        coordinator: SyncCoordinator = hass.data[DOMAIN].pop(entry.entry_id)
        await coordinator.async_shutdown()
        await coordinator.history.async_save()

        if not hass.data[DOMAIN]:
            hass.services.async_remove(DOMAIN, SERVICE_SYNC_NOW)

    return unload_ok
