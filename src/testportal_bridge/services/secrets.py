"""Secret lookup — API keys and the admin password.

Secrets are read from a secrets directory (one file per secret, as mounted
by Docker or Kubernetes) or, failing that, from an environment variable of
the same name.  Lookups go through a ``SecretCache`` owned by the caller,
so a rotated secret is picked up once its cache entry times out.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from testportal_bridge.config import Settings

logger = logging.getLogger(__name__)

API_KEY_FIELDS = ("apiKey", "api_key")
ADMIN_PASSWORD_FIELDS = ("password", "adminPassword")


class SecretBackend:
    """Resolves a named secret to its string value, or ``None``."""

    def __init__(self, secrets_dir: str | None = None) -> None:
        self._secrets_dir = Path(secrets_dir) if secrets_dir else None

    def fetch(self, name: str) -> str | None:
        if self._secrets_dir is not None:
            path = self._secrets_dir / name
            try:
                if path.is_file():
                    value = path.read_text(encoding="utf-8").strip()
                    return value or None
            except OSError:
                logger.exception("Failed to read secret file %s", path)
                return None

        value = os.environ.get(name)
        return value or None


class SecretCache:
    """Time-boxed secret cache, scoped to whoever owns the instance."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, name: str) -> str | None:
        entry = self._entries.get(name)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self._ttl:
            self._entries.pop(name, None)
            return None
        return value

    def set(self, name: str, value: str) -> None:
        self._entries[name] = (value, self._clock())


def _unwrap(value: str, fields: Sequence[str]) -> str:
    """Pick the first present field from a JSON secret, else return it as-is."""
    try:
        parsed = json.loads(value)
    except ValueError:
        return value
    if isinstance(parsed, dict):
        for field in fields:
            candidate = parsed.get(field)
            if isinstance(candidate, str) and candidate:
                return candidate
    return value


class CredentialStore:
    """Credential lookups used by the exchanger and the admin routes."""

    def __init__(self, settings: Settings, backend: SecretBackend, cache: SecretCache) -> None:
        self._settings = settings
        self._backend = backend
        self._cache = cache

    def get_secret(self, name: str) -> str | None:
        cached = self._cache.get(name)
        if cached is not None:
            logger.debug("Using cached secret %s", name)
            return cached

        value = self._backend.fetch(name)
        if value is None:
            logger.warning("Secret %s not found", name)
            return None

        self._cache.set(name, value)
        logger.info("Secret %s retrieved and cached", name)
        return value

    def get_provider_credential(self) -> str | None:
        """Return the TestPortal API key; ``None`` means development mode."""
        name = self._settings.testportal_secret_name
        if not name:
            logger.warning("TESTPORTAL_SECRET_NAME not configured")
            return None
        value = self.get_secret(name)
        return _unwrap(value, API_KEY_FIELDS) if value else None

    def get_admin_password(self) -> str | None:
        name = self._settings.admin_password_secret_name
        if not name:
            logger.warning("ADMIN_PASSWORD_SECRET_NAME not configured")
            return None
        value = self.get_secret(name)
        return _unwrap(value, ADMIN_PASSWORD_FIELDS) if value else None
