"""Tests for secret lookup and the credential cache."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from testportal_bridge.config import Settings
from testportal_bridge.services.secrets import CredentialStore, SecretBackend, SecretCache


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _settings(**overrides) -> Settings:
    values = {"testportal_secret_name": "tp-key", "admin_password_secret_name": "tp-admin"}
    values.update(overrides)
    return Settings(**values)


def _store(backend, clock=None, **overrides) -> CredentialStore:
    cache = SecretCache(ttl_seconds=300, clock=clock or FakeClock())
    return CredentialStore(_settings(**overrides), backend, cache)


# ── Backend ──────────────────────────────────────────────

def test_backend_reads_secret_file(tmp_path):
    (tmp_path / "tp-key").write_text("file-key\n")
    assert SecretBackend(str(tmp_path)).fetch("tp-key") == "file-key"


def test_backend_falls_back_to_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("tp-env-key", "env-key")
    assert SecretBackend(str(tmp_path)).fetch("tp-env-key") == "env-key"


def test_backend_missing_secret_is_none(tmp_path, monkeypatch):
    monkeypatch.delenv("tp-missing", raising=False)
    assert SecretBackend(str(tmp_path)).fetch("tp-missing") is None


# ── Cache ────────────────────────────────────────────────

def test_cache_expires_entries():
    clock = FakeClock()
    cache = SecretCache(ttl_seconds=60, clock=clock)
    cache.set("name", "value")

    clock.now = 59
    assert cache.get("name") == "value"
    clock.now = 60
    assert cache.get("name") is None


def test_lookup_is_memoized_within_ttl():
    backend = MagicMock(spec=SecretBackend)
    backend.fetch.return_value = "plain-key"
    store = _store(backend)

    assert store.get_provider_credential() == "plain-key"
    assert store.get_provider_credential() == "plain-key"
    backend.fetch.assert_called_once_with("tp-key")


def test_rotated_secret_picked_up_after_ttl():
    clock = FakeClock()
    backend = MagicMock(spec=SecretBackend)
    backend.fetch.return_value = "old-key"
    store = _store(backend, clock=clock)
    assert store.get_provider_credential() == "old-key"

    backend.fetch.return_value = "new-key"
    clock.now = 301
    assert store.get_provider_credential() == "new-key"


def test_absence_is_not_cached():
    backend = MagicMock(spec=SecretBackend)
    backend.fetch.side_effect = [None, "configured-later"]
    store = _store(backend)

    assert store.get_provider_credential() is None
    assert store.get_provider_credential() == "configured-later"


# ── Credential parsing ───────────────────────────────────

@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("plain-key", "plain-key"),
        (json.dumps({"apiKey": "k1", "api_key": "k2"}), "k1"),
        (json.dumps({"api_key": "k2"}), "k2"),
        (json.dumps({"other": "x"}), json.dumps({"other": "x"})),
    ],
)
def test_provider_credential_formats(raw, expected):
    backend = MagicMock(spec=SecretBackend)
    backend.fetch.return_value = raw
    assert _store(backend).get_provider_credential() == expected


def test_provider_credential_unconfigured_name_means_dev_mode():
    backend = MagicMock(spec=SecretBackend)
    store = _store(backend, testportal_secret_name=None)

    assert store.get_provider_credential() is None
    backend.fetch.assert_not_called()


def test_admin_password_json_field():
    backend = MagicMock(spec=SecretBackend)
    backend.fetch.return_value = json.dumps({"adminPassword": "s3cret"})
    assert _store(backend).get_admin_password() == "s3cret"
