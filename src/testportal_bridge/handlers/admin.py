"""Admin routes — shared-password login and the TestPortal test list proxy."""

from __future__ import annotations

import hmac
import logging
import re

from fastapi import APIRouter, Depends, Request, Response

from testportal_bridge.config import settings
from testportal_bridge.errors import BadRequest, BridgeError, Misconfigured, Unauthorized
from testportal_bridge.handlers.deps import get_credentials, get_testportal_client
from testportal_bridge.handlers.http import (
    ALL_METHODS,
    CorsPolicy,
    error_response,
    guard,
    json_response,
    read_json,
)
from testportal_bridge.services.secrets import CredentialStore
from testportal_bridge.services.testportal import TestPortalClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

_login_policy = CorsPolicy(origin=settings.admin_allowed_origin, method="POST")
_tests_policy = CorsPolicy(
    origin=settings.admin_allowed_origin,
    method="GET",
    allow_headers="Content-Type,X-Admin-Password,Authorization",
)

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def _extract_password(request: Request) -> str | None:
    """Read the admin password from ``X-Admin-Password`` or a bearer header."""
    header_password = request.headers.get("x-admin-password")
    if header_password:
        return header_password

    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None
    match = _BEARER_RE.match(auth_header)
    return match.group(1) if match else None


def _check_password(credentials: CredentialStore, password: str) -> None:
    expected = credentials.get_admin_password()
    if not expected:
        logger.error("Admin password is not configured")
        raise Misconfigured("Admin password is not configured")
    if not hmac.compare_digest(password.encode(), expected.encode()):
        logger.warning("Admin password mismatch")
        raise Unauthorized("Invalid credentials")


@router.api_route("/login", methods=ALL_METHODS)
async def admin_login(
    request: Request, credentials: CredentialStore = Depends(get_credentials)
) -> Response:
    """Check the shared admin password; body ``{"password": "..."}``."""
    try:
        preflight = guard(request, _login_policy)
        if preflight is not None:
            return preflight
        body = await read_json(request)
        password = body.get("password") if isinstance(body, dict) else None
        if not isinstance(password, str) or not password:
            raise BadRequest("Password is required")
        _check_password(credentials, password)
    except BridgeError as exc:
        return error_response(_login_policy, exc)

    return json_response(_login_policy, 200, {"ok": True})


@router.api_route("/tests/headers", methods=ALL_METHODS)
async def admin_tests(
    request: Request,
    credentials: CredentialStore = Depends(get_credentials),
    provider: TestPortalClient = Depends(get_testportal_client),
) -> Response:
    """Proxy the TestPortal tests list for the admin screen."""
    try:
        preflight = guard(request, _tests_policy)
        if preflight is not None:
            return preflight

        password = _extract_password(request)
        if not password:
            raise Unauthorized("Missing admin password")
        _check_password(credentials, password)

        api_key = credentials.get_provider_credential()
        if not api_key:
            logger.error("TestPortal API key is not configured")
            raise Misconfigured("TestPortal API key is not configured")

        data = await provider.list_tests(
            api_key,
            id_test_category=request.query_params.get("idTestCategory"),
            name=request.query_params.get("name"),
        )
    except BridgeError as exc:
        return error_response(_tests_policy, exc)

    return json_response(_tests_policy, 200, data)
