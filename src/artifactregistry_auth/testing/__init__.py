"""Testing utilities for code built on artifactregistry_auth.

Fakes for the two I/O boundaries of credential resolution (token sources and
command runners) plus a helper that renders gcloud's JSON output.

Example:
    ```python
    from artifactregistry_auth.auth import CredentialResolver
    from artifactregistry_auth.testing import StaticTokenSource, make_access_token


    def test_client_sends_token():
        resolver = CredentialResolver([StaticTokenSource(make_access_token("test-token"))])
        ...
    ```
"""

import json
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from artifactregistry_auth.auth.command import CommandResult
from artifactregistry_auth.auth.sources import TokenSource
from artifactregistry_auth.auth.tokens import EXPIRY_FORMAT, AccessToken


def make_access_token(value: str = "test-access-token", lifetime: timedelta = timedelta(hours=1)) -> AccessToken:
    """Build a token that expires ``lifetime`` from now (negative for expired)."""
    expiry = datetime.now(UTC).replace(microsecond=0) + lifetime
    return AccessToken(value=value, expiry=expiry)


def gcloud_output(access_token: str, token_expiry: datetime | str) -> str:
    """Render the JSON printed by ``gcloud config config-helper --format=json(credential)``."""
    if isinstance(token_expiry, datetime):
        token_expiry = token_expiry.astimezone(UTC).strftime(EXPIRY_FORMAT)
    return json.dumps({"credential": {"access_token": access_token, "token_expiry": token_expiry}})


class StaticTokenSource(TokenSource):
    """Token source that hands out preset tokens and counts fetches.

    Given several tokens it returns them in order and keeps returning the last.
    """

    name = "static"

    def __init__(self, *tokens: AccessToken) -> None:
        if not tokens:
            tokens = (make_access_token(),)
        self._tokens = list(tokens)
        self.fetch_count = 0

    def fetch(self) -> AccessToken:
        token = self._tokens[min(self.fetch_count, len(self._tokens) - 1)]
        self.fetch_count += 1
        return token


class FailingTokenSource(TokenSource):
    """Token source that always raises ``error``."""

    name = "failing"

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.fetch_count = 0

    def fetch(self) -> AccessToken:
        self.fetch_count += 1
        raise self.error


class FakeCommandRunner:
    """Command runner that replays canned results and records every call."""

    def __init__(self, results: Iterable[CommandResult]) -> None:
        self._results = list(results)
        self.calls: list[tuple[str, ...]] = []

    def execute(self, command: str, *args: str) -> CommandResult:
        self.calls.append((command, *args))
        return self._results[min(len(self.calls), len(self._results)) - 1]
