"""Access-code exchanger — trades a live token for a TestPortal access code.

Flow
----
1. ``RECEIVED``: token and test ID must both be non-empty strings, the
   test ID no longer than ``MAX_TEST_ID_LENGTH``.
2. ``TOKEN_CHECKED``: the token must be live.  Nothing external is called
   before this check passes.
3. ``DEV_MODE`` when no provider credential is configured, otherwise
   ``PROVIDER_CALLED`` (exactly one provider request).
4. ``RESULT``: the access code, or a typed error.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel, Field, StrictStr, ValidationError

from testportal_bridge.errors import BadRequest, BridgeError, Unauthorized, UpstreamUnavailable
from testportal_bridge.services.secrets import CredentialStore
from testportal_bridge.services.testportal import AccessCodeResult, TestPortalClient
from testportal_bridge.services.tokens import token_prefix

logger = logging.getLogger(__name__)

# Returned instead of a real code when no API key is configured.
MOCK_ACCESS_CODE = "ABC123MOCK"

# TestPortal test IDs are short numeric strings.
MAX_TEST_ID_LENGTH = 128


class ExchangeState(str, enum.Enum):
    RECEIVED = "received"
    TOKEN_CHECKED = "token_checked"
    PROVIDER_CALLED = "provider_called"
    DEV_MODE = "dev_mode"
    RESULT = "result"


class AccessCodeRequest(BaseModel):
    """Shape of an exchange request; both fields are required strings."""

    token: StrictStr = Field(min_length=1)
    test_id: StrictStr = Field(min_length=1, max_length=MAX_TEST_ID_LENGTH)


class Validator(Protocol):
    async def validate(self, token: object) -> bool: ...


@dataclass
class ExchangeResult:
    """Outcome of one exchange; exactly one of ``access_code``/``error`` is set."""

    access_code: str | None = None
    is_development_mode: bool = False
    error: BridgeError | None = None
    states: list[ExchangeState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_body(self) -> dict:
        if self.error is not None:
            return self.error.to_body()
        body: dict[str, Any] = {"accessCode": self.access_code}
        if self.is_development_mode:
            body["_dev"] = True
        return body


class AccessCodeExchanger:
    """Runs the exchange flow for a single request."""

    def __init__(
        self,
        validator: Validator,
        credentials: CredentialStore,
        provider: TestPortalClient,
    ) -> None:
        self._validator = validator
        self._credentials = credentials
        self._provider = provider

    async def exchange(self, token: Any, test_id: Any) -> ExchangeResult:
        result = ExchangeResult(states=[ExchangeState.RECEIVED])

        try:
            request = AccessCodeRequest(token=token, test_id=test_id)
        except ValidationError:
            logger.warning(
                "Missing required fields in exchange request (token=%s, testId=%s)",
                bool(token),
                bool(test_id),
            )
            return self._finish(
                result,
                error=BadRequest("Missing required fields: token and testId are required"),
            )

        logger.info(
            "Processing access code request for test %s with token %s",
            request.test_id,
            token_prefix(request.token),
        )

        if not await self._validator.validate(request.token):
            logger.warning("Token validation failed for %s", token_prefix(request.token))
            return self._finish(result, error=Unauthorized("Invalid or expired token"))
        result.states.append(ExchangeState.TOKEN_CHECKED)

        api_key = self._credentials.get_provider_credential()
        if not api_key:
            result.states.append(ExchangeState.DEV_MODE)
            logger.info(
                "Development mode: returning mock access code for test %s", request.test_id
            )
            return self._finish(result, access_code=MOCK_ACCESS_CODE, dev=True)

        result.states.append(ExchangeState.PROVIDER_CALLED)
        outcome: AccessCodeResult = await self._provider.add_access_code(request.test_id, api_key)
        if not outcome.success:
            logger.error(
                "Failed to get access code for test %s: %s", request.test_id, outcome.error
            )
            return self._finish(
                result,
                error=UpstreamUnavailable(
                    "Failed to retrieve access code from TestPortal",
                    reason=outcome.error,
                    upstream_status=outcome.upstream_status,
                ),
            )

        return self._finish(result, access_code=outcome.access_code)

    @staticmethod
    def _finish(
        result: ExchangeResult,
        access_code: str | None = None,
        dev: bool = False,
        error: BridgeError | None = None,
    ) -> ExchangeResult:
        result.states.append(ExchangeState.RESULT)
        result.access_code = access_code
        result.is_development_mode = dev
        result.error = error
        if access_code:
            logger.info(
                "Access code %s... issued (development mode: %s)", access_code[:4], dev
            )
        return result
