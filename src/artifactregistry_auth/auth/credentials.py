"""Credential resolution with caching and throttled refresh.

This module owns the one cached credential of a process (or of whichever
component constructs the resolver). The first call tries each token source in
order and keeps the first that succeeds; later calls reuse it and refresh its
token at most once per refresh interval.

Resolution order:
1. Application Default Credentials (no subprocess)
2. gcloud CLI

Example:
    ```python
    from artifactregistry_auth.auth import CredentialResolver

    # Build once, share across every request of the build
    resolver = CredentialResolver()

    token = resolver.get_access_token()
    headers = {"Authorization": f"Bearer {token.value}"}
    ```

Concurrency:
    - Resolution and refresh share a single lock, so concurrent callers never
      run gcloud twice or see a half-updated cache
    - The resolver never resets to empty; a failed resolution simply leaves
      the cache empty for the next caller to try again
    - Staleness is measured with wall-clock time, so clock adjustments can
      shorten or lengthen one refresh interval
"""

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from threading import Lock
from typing import TYPE_CHECKING

from artifactregistry_auth.auth.command import SubprocessCommandRunner
from artifactregistry_auth.auth.exceptions import CredentialError, CredentialUnavailableError
from artifactregistry_auth.auth.sources import TokenSource, default_sources
from artifactregistry_auth.auth.tokens import AccessToken

if TYPE_CHECKING:
    from artifactregistry_auth.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_MS = 10_000


def _now_ms() -> int:
    return int(time.time() * 1000)


class Credential:
    """A resolved credential: the source that produced it and its current token.

    Attributes:
        source: The token source that succeeded during resolution.
        token: The most recently fetched access token.
    """

    def __init__(self, source: TokenSource, token: AccessToken) -> None:
        self.source = source
        self.token = token

    def refresh(self) -> AccessToken:
        """Fetch a new token from the same source and replace the current one."""
        logger.info(f"Refreshing {self.source.name} credentials...")
        self.token = self.source.fetch()
        return self.token

    def __repr__(self) -> str:
        return f"Credential(source={self.source.name!r}, token={self.token!r})"


@dataclass
class CachedCredential:
    """The resolver's cache entry."""

    credential: Credential
    last_refresh_ms: int


class CredentialResolver:
    """Resolve, cache and refresh the credential used for repository requests.

    Args:
        sources: Token sources in the order they are tried. Defaults to
            Application Default Credentials followed by gcloud.
        refresh_interval_ms: Minimum time between two refreshes of the
            cached token.
        clock: Returns the current wall-clock time in epoch milliseconds.

    Example:
        ```python
        # Custom order or test doubles
        resolver = CredentialResolver(sources=[GcloudTokenSource()])

        # Slower refresh cadence
        resolver = CredentialResolver(refresh_interval_ms=60_000)
        ```
    """

    def __init__(
        self,
        sources: Sequence[TokenSource] | None = None,
        *,
        refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._sources = tuple(sources) if sources is not None else default_sources()
        self.refresh_interval_ms = refresh_interval_ms
        self._clock = clock or _now_ms
        self._lock = Lock()
        self._cached: CachedCredential | None = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CredentialResolver":
        """Build a resolver with the default source chain configured by ``settings``."""
        sources = default_sources(
            scopes=settings.scopes,
            runner=SubprocessCommandRunner(timeout=settings.command_timeout),
            command=settings.gcloud_command,
        )
        return cls(sources, refresh_interval_ms=settings.refresh_interval_ms)

    @property
    def sources(self) -> tuple[TokenSource, ...]:
        return self._sources

    @property
    def has_credential(self) -> bool:
        """Whether a credential has been resolved and cached."""
        return self._cached is not None

    def get_credential(self) -> Credential:
        """Return the cached credential, resolving or refreshing it as needed.

        Returns:
            The cached credential, with a token refreshed within the last
            refresh interval.

        Raises:
            CredentialUnavailableError: If the cache is empty and no source
                can produce a token.
            CredentialError: If refreshing a stale cached token fails.
        """
        with self._lock:
            if self._cached is None:
                logger.info("Initializing credentials...")
                credential = self._resolve()
                self._cached = CachedCredential(credential=credential, last_refresh_ms=self._clock())
            else:
                self._refresh_if_stale()
            return self._cached.credential

    def get_access_token(self) -> AccessToken:
        """Return the current access token of the cached credential."""
        return self.get_credential().token

    def refresh_if_stale(self) -> bool:
        """Refresh the cached token if the refresh interval has elapsed.

        Returns:
            True if a refresh happened, False if the cache is empty or fresh.
        """
        with self._lock:
            return self._refresh_if_stale()

    def _refresh_if_stale(self) -> bool:
        if self._cached is None:
            return False

        now = self._clock()
        if now <= self._cached.last_refresh_ms + self.refresh_interval_ms:
            return False

        self._cached.credential.refresh()
        self._cached.last_refresh_ms = now
        return True

    def _resolve(self) -> Credential:
        errors: list[Exception] = []

        for source in self._sources:
            logger.debug(f"Trying {source.name}...")
            try:
                token = source.fetch()
            except CredentialError as e:
                logger.debug(f"Failed to retrieve credentials from {source.name}: {e}")
                errors.append(e)
                continue

            logger.info(f"Using credentials retrieved from {source.name}: {self._mask_token(token)}")
            return Credential(source, token)

        logger.info("No credentials could be found.")
        details = "; ".join(f"{source.name}: {error}" for source, error in zip(self._sources, errors, strict=True))
        message = "No credentials could be found. Check debug logs for more details."
        if details:
            message += f" ({details})"
        raise CredentialUnavailableError(message, errors=errors)

    def _mask_token(self, token: AccessToken | None) -> str:
        """Mask a token for safe logging.

        Returns:
            Masked string with the expiry if a token exists, "None" otherwise.
        """
        if token is None:
            return "None"
        return f"*** (expires {token.expiry.isoformat()})"
