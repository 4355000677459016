"""Tests for the TestPortal API client."""

from __future__ import annotations

import json

import httpx
import pytest

from testportal_bridge.errors import UpstreamUnavailable
from testportal_bridge.services.testportal import TestPortalClient as PortalClient
from testportal_bridge.services.testportal import extract_access_code

BASE_URL = "https://testportal.example/api/v1"


def _client(handler) -> PortalClient:
    return PortalClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


# ── Response parsing ─────────────────────────────────────

@pytest.mark.parametrize(
    ("data", "expected"),
    [
        ({"accessCodes": [{"accessCode": "A1", "access_code": "A2", "code": "A3"}]}, "A1"),
        ({"accessCodes": [{"access_code": "A2", "code": "A3"}]}, "A2"),
        ({"accessCodes": [{"code": "A3"}]}, "A3"),
        ({"accessCode": "TOP"}, "TOP"),
        ({"accessCodes": []}, None),
        ({"accessCodes": [{"unexpected": "x"}]}, None),
        (["not", "an", "object"], None),
    ],
)
def test_extract_access_code(data, expected):
    assert extract_access_code(data) == expected


# ── Access codes ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_add_access_code_success():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"accessCodes": [{"accessCode": "XYZ789"}]})

    result = await _client(handler).add_access_code("12345", "secret-key")

    assert result.success is True
    assert result.access_code == "XYZ789"
    assert len(seen) == 1
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/manager/me/tests/12345/current-date/access-codes/add"
    assert request.headers["Api-Key"] == "secret-key"
    assert json.loads(request.content) == {"count": 1, "sendInvitationOnTestActivation": False}


@pytest.mark.asyncio
async def test_add_access_code_escapes_test_id():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"accessCodes": [{"code": "C"}]})

    await _client(handler).add_access_code("../admin", "k")

    assert b"/tests/..%2Fadmin/current-date/" in seen[0].url.raw_path


@pytest.mark.asyncio
async def test_add_access_code_http_error_captures_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    result = await _client(handler).add_access_code("1", "k")

    assert result.success is False
    assert result.upstream_status == 500
    assert "500" in result.error


@pytest.mark.asyncio
async def test_add_access_code_missing_field():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"accessCodes": [{"id": 7}]})

    result = await _client(handler).add_access_code("1", "k")

    assert result.success is False
    assert result.upstream_status == 200
    assert "did not contain an access code" in result.error


@pytest.mark.asyncio
async def test_add_access_code_non_json_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    result = await _client(handler).add_access_code("1", "k")
    assert result.success is False


@pytest.mark.asyncio
async def test_add_access_code_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    result = await _client(handler).add_access_code("1", "k")

    assert result.success is False
    assert result.upstream_status is None
    assert "timed out" in result.error


# ── Test listing ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_tests_forwards_filters():
    seen: list[httpx.Request] = []
    payload = [{"idTest": 1, "name": "Algebra"}]

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=payload)

    data = await _client(handler).list_tests("k", id_test_category="9", name="Alg")

    assert data == payload
    assert seen[0].url.path == "/api/v1/manager/me/tests/headers"
    assert seen[0].url.params["idTestCategory"] == "9"
    assert seen[0].url.params["name"] == "Alg"


@pytest.mark.asyncio
async def test_list_tests_failure_raises_upstream_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await _client(handler).list_tests("k")
    assert exc_info.value.upstream_status == 503


@pytest.mark.asyncio
async def test_add_access_code_oversized_test_id_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"accessCodes": [{"code": "C"}]})

    result = await _client(handler).add_access_code("9" * 70_000, "k")

    assert result.success is False
    assert result.access_code is None
    assert result.error
