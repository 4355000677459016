"""Request guard shared by every bridge route — CORS, method and origin checks."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from testportal_bridge.errors import BadRequest, BridgeError, Forbidden, MethodNotAllowed

logger = logging.getLogger(__name__)

# Registered on every bridge route so wrong methods reach the guard.
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@dataclass(frozen=True)
class CorsPolicy:
    """The single origin and method a route accepts."""

    origin: str
    method: str
    allow_headers: str = "Content-Type"

    def headers(self) -> dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.origin,
            "Access-Control-Allow-Methods": f"{self.method},OPTIONS",
            "Access-Control-Allow-Headers": self.allow_headers,
        }


def guard(request: Request, policy: CorsPolicy) -> Response | None:
    """Apply preflight, method and origin checks, in that order.

    Returns the preflight response for ``OPTIONS``; ``None`` means the
    request may proceed.  Raises ``MethodNotAllowed`` or ``Forbidden``.
    """
    origin = request.headers.get("origin")
    logger.info(
        "%s invoked (method=%s, origin=%s)", request.url.path, request.method, origin
    )

    if request.method == "OPTIONS":
        return Response(status_code=204, headers=policy.headers())

    if request.method != policy.method:
        logger.warning("Invalid HTTP method %s", request.method)
        raise MethodNotAllowed()

    if origin != policy.origin:
        logger.warning(
            "Request from unauthorized origin (received=%s, expected=%s)",
            origin,
            policy.origin,
        )
        raise Forbidden()

    return None


async def read_json(request: Request) -> Any:
    """Decode the request body; an empty body decodes to ``None``."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        logger.warning("Invalid JSON in request body")
        raise BadRequest("Invalid JSON in request body") from exc


def json_response(policy: CorsPolicy, status_code: int, body: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=policy.headers())


def error_response(policy: CorsPolicy, exc: BridgeError) -> JSONResponse:
    return json_response(policy, exc.status_code, exc.to_body())
