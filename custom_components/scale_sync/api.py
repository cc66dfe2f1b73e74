"""Client for the weight backend: login and measurement upload."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from .const import LOGIN_PATH, REQUEST_TIMEOUT, WEIGHTS_PATH
from .models import Measurement

_LOGGER = logging.getLogger(__name__)


class ScaleSyncApiError(Exception):
    """Raised when the backend rejects or fails a request."""


class ScaleSyncAuthError(ScaleSyncApiError):
    """Raised when the backend answers 401."""


class ScaleSyncConnectionError(ScaleSyncApiError):
    """Raised when the backend cannot be reached."""


class ScaleSyncApiClient:
    """Talk to the weight backend over HTTP."""

    def __init__(self, session: aiohttp.ClientSession, base_url: str) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")

    async def async_login(self, username: str, password: str) -> str:
        """Exchange credentials for a bearer token."""
        data = await self._async_post(
            LOGIN_PATH, {"username": username, "password": password}, read_json=True
        )
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ScaleSyncApiError("Login response did not contain a token")
        return token

    async def async_upload(self, measurement: Measurement, token: str) -> None:
        """Send one measurement to the backend."""
        payload = {
            "weightKg": measurement.weight_kg,
            "date": measurement.timestamp.isoformat(timespec="milliseconds"),
        }
        await self._async_post(
            WEIGHTS_PATH, payload, headers={"Authorization": f"Bearer {token}"}
        )

    async def _async_post(
        self,
        path: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        read_json: bool = False,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with self._session.post(
                url,
                json=payload,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
            ) as resp:
                if resp.status == 401:
                    raise ScaleSyncAuthError(f"Unauthorized: {url}")
                if not 200 <= resp.status < 300:
                    raise ScaleSyncApiError(f"HTTP {resp.status} from {url}")
                if not read_json:
                    return None
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            _LOGGER.debug("Request to %s failed: %s", url, err)
            raise ScaleSyncConnectionError(f"Error communicating with {url}: {err}") from err
        except ValueError as err:
            raise ScaleSyncApiError(f"Invalid response from {url}: {err}") from err
