"""TestPortal API client — async HTTP wrapper around the provider API.

Only two provider calls are used: allocating a single access code for a
test, and listing test headers for the admin screen.  Neither call is
retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from testportal_bridge.config import settings
from testportal_bridge.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# The provider has used each of these names for the code; first match wins.
ACCESS_CODE_FIELDS = ("accessCode", "access_code", "code")


@dataclass
class AccessCodeResult:
    """Outcome of one access-code request."""

    success: bool
    access_code: str | None = None
    error: str | None = None
    upstream_status: int | None = None


def extract_access_code(data: Any) -> str | None:
    """Find the access code in a provider response, or ``None``.

    The first entry of ``accessCodes`` is searched; when that list is
    missing the top-level object is searched instead.
    """
    if not isinstance(data, dict):
        return None

    entry: Any = data
    if "accessCodes" in data:
        codes = data["accessCodes"]
        if not isinstance(codes, list) or not codes:
            return None
        entry = codes[0]

    if not isinstance(entry, dict):
        return None
    for field in ACCESS_CODE_FIELDS:
        value = entry.get(field)
        if isinstance(value, str) and value:
            return value
    return None


class TestPortalClient:
    """Async HTTP client for the TestPortal manager API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.testportal_api_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    # ── Access codes ─────────────────────────────────────

    async def add_access_code(self, test_id: str, api_key: str) -> AccessCodeResult:
        """Ask TestPortal to allocate one access code for *test_id*."""
        url = (
            f"{self._base_url}/manager/me/tests/{quote(test_id, safe='')}"
            "/current-date/access-codes/add"
        )
        payload = {"count": 1, "sendInvitationOnTestActivation": False}
        logger.info("Requesting access code for test %s from %s", test_id, self._base_url)

        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload, headers={"Api-Key": api_key})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.exception("Access code request error for test %s: %s", test_id, exc)
            return AccessCodeResult(success=False, error=str(exc) or type(exc).__name__)

        if not resp.is_success:
            logger.error(
                "TestPortal access code request failed: %s %s %s",
                resp.status_code,
                resp.reason_phrase,
                resp.text,
            )
            return AccessCodeResult(
                success=False,
                error=f"TestPortal API returned {resp.status_code}: {resp.reason_phrase}",
                upstream_status=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError:
            logger.error("TestPortal returned a non-JSON body: %s", resp.text[:200])
            return AccessCodeResult(
                success=False,
                error="TestPortal API returned an invalid JSON body",
                upstream_status=resp.status_code,
            )

        access_code = extract_access_code(data)
        if access_code is None:
            logger.error("TestPortal response missing access code: %s", data)
            return AccessCodeResult(
                success=False,
                error="TestPortal API response did not contain an access code",
                upstream_status=resp.status_code,
            )

        logger.info("Access code %s... received for test %s", access_code[:4], test_id)
        return AccessCodeResult(
            success=True, access_code=access_code, upstream_status=resp.status_code
        )

    # ── Test listing ─────────────────────────────────────

    async def list_tests(
        self,
        api_key: str,
        id_test_category: str | None = None,
        name: str | None = None,
    ) -> Any:
        """Return the provider's test headers JSON.

        Raises ``UpstreamUnavailable`` on any transport or HTTP failure.
        """
        url = f"{self._base_url}/manager/me/tests/headers"
        params = {}
        if id_test_category:
            params["idTestCategory"] = id_test_category
        if name:
            params["name"] = name

        try:
            async with self._client() as client:
                resp = await client.get(url, params=params, headers={"Api-Key": api_key})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.exception("Tests headers request error: %s", exc)
            raise UpstreamUnavailable(
                "Failed to retrieve tests list from TestPortal", reason=str(exc)
            ) from exc

        if not resp.is_success:
            logger.error(
                "TestPortal tests headers request failed: %s %s %s",
                resp.status_code,
                resp.reason_phrase,
                resp.text,
            )
            raise UpstreamUnavailable(
                "Failed to retrieve tests list from TestPortal",
                upstream_status=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable(
                "Failed to retrieve tests list from TestPortal",
                reason="invalid JSON body",
                upstream_status=resp.status_code,
            ) from exc
