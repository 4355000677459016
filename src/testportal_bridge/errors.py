"""Error taxonomy shared by the services and the HTTP layer.

Each category tells the caller what to do next:

* ``Unauthorized``: mint a fresh token and retry.
* ``UpstreamUnavailable``: retry later.
* ``BadRequest``, ``Forbidden``, ``Misconfigured``: do not retry.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error the bridge reports to a caller."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict:
        return {"message": self.message}


class BadRequest(BridgeError):
    status_code = 400


class Unauthorized(BridgeError):
    status_code = 401


class Forbidden(BridgeError):
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class MethodNotAllowed(BridgeError):
    status_code = 405

    def __init__(self, message: str = "Method not allowed") -> None:
        super().__init__(message)


class Misconfigured(BridgeError):
    status_code = 500


class UpstreamUnavailable(BridgeError):
    """The provider or the token store failed or returned unusable data.

    ``reason`` keeps the upstream detail for diagnostics; ``upstream_status``
    is the provider's HTTP status when one was received.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        upstream_status: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.reason = reason
        self.upstream_status = upstream_status

    def to_body(self) -> dict:
        body = super().to_body()
        if self.reason:
            body["error"] = self.reason
        return body


class TokenStoreError(UpstreamUnavailable):
    """The token store could not durably record or read a token."""

    status_code = 500

    def to_body(self) -> dict:
        return {"message": self.message}
