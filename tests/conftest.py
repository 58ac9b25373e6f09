"""Pytest configuration and shared fixtures for artifactregistry-auth tests."""

import pytest

from artifactregistry_auth.auth import CredentialResolver
from artifactregistry_auth.testing import StaticTokenSource, make_access_token


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    """Auto-cleanup: Clear settings environment variables before each test.

    This prevents a developer's own configuration from leaking into tests.
    """
    import os

    for key in list(os.environ.keys()):
        if key.startswith("ARTIFACT_REGISTRY_"):
            monkeypatch.delenv(key, raising=False)

    yield


@pytest.fixture
def access_token():
    """A token valid for the next hour."""
    return make_access_token("test-access-token")


@pytest.fixture
def static_source(access_token):
    return StaticTokenSource(access_token)


@pytest.fixture
def resolver(static_source):
    """Resolver backed by a single in-memory token source."""
    return CredentialResolver([static_source])
