"""Access-code route — exchanges a live token for a TestPortal access code."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from testportal_bridge.config import settings
from testportal_bridge.database.engine import get_session
from testportal_bridge.errors import BadRequest, BridgeError
from testportal_bridge.handlers.deps import get_credentials, get_testportal_client
from testportal_bridge.handlers.http import (
    ALL_METHODS,
    CorsPolicy,
    error_response,
    guard,
    json_response,
    read_json,
)
from testportal_bridge.services.exchange import AccessCodeExchanger
from testportal_bridge.services.secrets import CredentialStore
from testportal_bridge.services.testportal import TestPortalClient
from testportal_bridge.services.tokens import TokenValidator

router = APIRouter(tags=["access-code"])

_policy = CorsPolicy(origin=settings.allowed_origin, method="POST")


@router.api_route("/test/access-code", methods=ALL_METHODS)
async def get_access_code(
    request: Request,
    session: AsyncSession = Depends(get_session),
    credentials: CredentialStore = Depends(get_credentials),
    provider: TestPortalClient = Depends(get_testportal_client),
) -> Response:
    """Expected body: ``{"token": "...", "testId": "..."}``."""
    try:
        preflight = guard(request, _policy)
        if preflight is not None:
            return preflight
        body = await read_json(request)
    except BridgeError as exc:
        return error_response(_policy, exc)

    if not isinstance(body, dict):
        return error_response(
            _policy, BadRequest("Missing required fields: token and testId are required")
        )

    exchanger = AccessCodeExchanger(TokenValidator(session), credentials, provider)
    result = await exchanger.exchange(body.get("token"), body.get("testId"))
    if result.error is not None:
        return error_response(_policy, result.error)
    return json_response(_policy, 200, result.to_body())
