from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.const import CONF_PASSWORD, CONF_URL, CONF_USERNAME
from homeassistant.core import callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .api import (
    ScaleSyncApiClient,
    ScaleSyncApiError,
    ScaleSyncAuthError,
    ScaleSyncConnectionError,
)
from .const import (
    CONF_SESSION_TIMEOUT,
    CONF_SYNC_INTERVAL,
    CONF_TOKEN,
    DEFAULT_SESSION_TIMEOUT,
    DEFAULT_SYNC_INTERVAL,
    DOMAIN,
)

_LOGGER = logging.getLogger(__name__)

USER_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_URL): str,
        vol.Required(CONF_USERNAME): str,
        vol.Required(CONF_PASSWORD): str,
    }
)


class ScaleSyncConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for the scale sync integration."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        errors: dict[str, str] = {}

        if user_input is not None:
            url = user_input[CONF_URL].strip().rstrip("/")
            username = user_input[CONF_USERNAME].strip()
            api = ScaleSyncApiClient(async_get_clientsession(self.hass), url)
            try:
                token = await api.async_login(username, user_input[CONF_PASSWORD])
            except ScaleSyncAuthError:
                errors["base"] = "invalid_auth"
            except ScaleSyncConnectionError:
                errors["base"] = "cannot_connect"
            except ScaleSyncApiError as err:
                _LOGGER.debug("Login to %s failed: %s", url, err)
                errors["base"] = "unknown"
            else:
                await self.async_set_unique_id(DOMAIN)
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=f"Scale sync ({username})",
                    data={
                        CONF_URL: url,
                        CONF_USERNAME: username,
                        CONF_TOKEN: token,
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=USER_SCHEMA,
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> config_entries.OptionsFlow:
        return ScaleSyncOptionsFlowHandler()


class ScaleSyncOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle options for the scale sync integration."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        errors: dict[str, str] = {}

        if user_input is not None:
            if user_input[CONF_SYNC_INTERVAL] < 0:
                errors["base"] = "invalid_sync_interval"
            elif user_input[CONF_SESSION_TIMEOUT] < 1:
                errors["base"] = "invalid_session_timeout"
            else:
                return self.async_create_entry(title="", data=user_input)

        options = self.config_entry.options
        data_schema = vol.Schema(
            {
                vol.Required(
                    CONF_SYNC_INTERVAL,
                    default=options.get(CONF_SYNC_INTERVAL, DEFAULT_SYNC_INTERVAL),
                ): vol.Coerce(int),
                vol.Required(
                    CONF_SESSION_TIMEOUT,
                    default=options.get(CONF_SESSION_TIMEOUT, DEFAULT_SESSION_TIMEOUT),
                ): vol.Coerce(int),
            }
        )
        return self.async_show_form(step_id="init", data_schema=data_schema, errors=errors)
