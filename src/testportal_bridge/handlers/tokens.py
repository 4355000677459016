"""Token request route — called from the learner's browser before a test."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from testportal_bridge.config import settings
from testportal_bridge.database.engine import get_session
from testportal_bridge.errors import BridgeError
from testportal_bridge.handlers.http import (
    ALL_METHODS,
    CorsPolicy,
    error_response,
    guard,
    json_response,
)
from testportal_bridge.services.tokens import TokenIssuer, token_prefix

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tokens"])

_policy = CorsPolicy(origin=settings.allowed_origin, method="POST")


@router.api_route("/token/request", methods=ALL_METHODS)
async def request_token(
    request: Request, session: AsyncSession = Depends(get_session)
) -> Response:
    """Mint a short-lived token for the calling browser."""
    try:
        preflight = guard(request, _policy)
        if preflight is not None:
            return preflight
        token = await TokenIssuer(session).issue()
    except BridgeError as exc:
        return error_response(_policy, exc)

    logger.info("Token %s issued", token_prefix(token))
    return json_response(_policy, 200, {"token": token})
