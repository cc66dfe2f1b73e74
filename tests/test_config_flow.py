"""Tests for the scale sync config and options flows."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from homeassistant import config_entries
from homeassistant.const import CONF_PASSWORD, CONF_URL, CONF_USERNAME
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResultType
import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.scale_sync.api import (
    ScaleSyncApiError,
    ScaleSyncAuthError,
    ScaleSyncConnectionError,
)
from custom_components.scale_sync.const import (
    CONF_SESSION_TIMEOUT,
    CONF_SYNC_INTERVAL,
    CONF_TOKEN,
    DOMAIN,
)

pytestmark = pytest.mark.usefixtures("enable_custom_integrations")

USER_INPUT = {
    CONF_URL: " http://backend.local:8080/ ",
    CONF_USERNAME: "alice",
    CONF_PASSWORD: "secret",
}

LOGIN = "custom_components.scale_sync.config_flow.ScaleSyncApiClient.async_login"


@pytest.fixture
def mock_setup_entry():
    with patch(
        "custom_components.scale_sync.async_setup_entry", return_value=True
    ) as mock_setup:
        yield mock_setup


async def test_user_flow(hass: HomeAssistant, mock_setup_entry) -> None:
    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )
    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "user"
    assert result["errors"] == {}

    with patch(LOGIN, AsyncMock(return_value="abc123")) as mock_login:
        result = await hass.config_entries.flow.async_configure(
            result["flow_id"], USER_INPUT
        )
        await hass.async_block_till_done()

    mock_login.assert_awaited_once_with("alice", "secret")
    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert result["title"] == "Scale sync (alice)"
    assert result["data"] == {
        CONF_URL: "http://backend.local:8080",
        CONF_USERNAME: "alice",
        CONF_TOKEN: "abc123",
    }
    assert CONF_PASSWORD not in result["data"]
    assert len(mock_setup_entry.mock_calls) == 1


@pytest.mark.parametrize(
    ("error", "reason"),
    [
        (ScaleSyncAuthError("401"), "invalid_auth"),
        (ScaleSyncConnectionError("down"), "cannot_connect"),
        (ScaleSyncApiError("no token"), "unknown"),
    ],
)
async def test_user_flow_errors(
    hass: HomeAssistant, mock_setup_entry, error: Exception, reason: str
) -> None:
    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )

    with patch(LOGIN, AsyncMock(side_effect=error)):
        result = await hass.config_entries.flow.async_configure(
            result["flow_id"], USER_INPUT
        )

    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {"base": reason}

    # The form can be resubmitted once the backend accepts the login
    with patch(LOGIN, AsyncMock(return_value="abc123")):
        result = await hass.config_entries.flow.async_configure(
            result["flow_id"], USER_INPUT
        )
        await hass.async_block_till_done()

    assert result["type"] is FlowResultType.CREATE_ENTRY


async def test_single_entry(hass: HomeAssistant, mock_setup_entry) -> None:
    MockConfigEntry(domain=DOMAIN, unique_id=DOMAIN, data={}).add_to_hass(hass)

    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )

    assert result["type"] is FlowResultType.ABORT


async def test_options_flow(hass: HomeAssistant) -> None:
    entry = MockConfigEntry(domain=DOMAIN, unique_id=DOMAIN, data={})
    entry.add_to_hass(hass)

    result = await hass.config_entries.options.async_init(entry.entry_id)
    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "init"

    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        {CONF_SYNC_INTERVAL: -5, CONF_SESSION_TIMEOUT: 20},
    )
    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {"base": "invalid_sync_interval"}

    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        {CONF_SYNC_INTERVAL: 30, CONF_SESSION_TIMEOUT: 0},
    )
    assert result["errors"] == {"base": "invalid_session_timeout"}

    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        {CONF_SYNC_INTERVAL: 0, CONF_SESSION_TIMEOUT: 45},
    )
    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert entry.options == {CONF_SYNC_INTERVAL: 0, CONF_SESSION_TIMEOUT: 45}
