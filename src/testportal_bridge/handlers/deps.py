"""FastAPI dependencies — build per-request services from app-scoped state."""

from __future__ import annotations

from fastapi import Request

from testportal_bridge.config import settings
from testportal_bridge.services.secrets import CredentialStore, SecretBackend
from testportal_bridge.services.testportal import TestPortalClient


def get_credentials(request: Request) -> CredentialStore:
    """Credential lookups backed by the application's own secret cache."""
    return CredentialStore(
        settings,
        SecretBackend(settings.secrets_dir),
        request.app.state.secret_cache,
    )


def get_testportal_client() -> TestPortalClient:
    return TestPortalClient()
