"""Token sources: the places an access token can come from.

Two sources exist, tried in this order by the resolver:

1. ``AmbientTokenSource``: Application Default Credentials discovered by
   google-auth (service account key file, metadata server, user ADC file).
   No subprocess is involved.
2. ``GcloudTokenSource``: the token of the active gcloud login, read from
   ``gcloud config config-helper --format=json(credential)``.

Example:
    ```python
    from artifactregistry_auth.auth.sources import GcloudTokenSource

    token = GcloudTokenSource().fetch()
    print(token.expiry)
    ```
"""

import json
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import google.auth
import google.auth.credentials
import google.auth.exceptions
from google.auth.transport.requests import Request

from artifactregistry_auth.auth.command import CommandRunner, SubprocessCommandRunner
from artifactregistry_auth.auth.exceptions import (
    CommandExecutionError,
    CredentialExpiredError,
    CredentialUnavailableError,
    MalformedCredentialError,
)
from artifactregistry_auth.auth.tokens import AccessToken, parse_expiry

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/cloud-platform.read-only",
)

GCLOUD_ARGS: tuple[str, ...] = ("config", "config-helper", "--format=json(credential)")

KEY_CREDENTIAL = "credential"
KEY_ACCESS_TOKEN = "access_token"
KEY_TOKEN_EXPIRY = "token_expiry"


def gcloud_command(platform: str | None = None) -> str:
    """Return the gcloud executable name for a platform.

    Args:
        platform: Platform identifier such as ``sys.platform`` (``"win32"``)
            or ``platform.system()`` (``"Windows"``). Defaults to
            ``sys.platform``.

    Returns:
        ``"gcloud.cmd"`` on Windows, ``"gcloud"`` everywhere else.
    """
    if platform is None:
        platform = sys.platform
    return "gcloud.cmd" if platform.lower().startswith("win") else "gcloud"


class TokenSource(ABC):
    """A place an access token can be fetched from."""

    name: str = "token source"

    @abstractmethod
    def fetch(self) -> AccessToken:
        """Fetch a fresh access token.

        Raises:
            CredentialError: If this source cannot produce a usable token.
        """


class AmbientTokenSource(TokenSource):
    """Application Default Credentials scoped for Artifact Registry.

    Args:
        scopes: OAuth scopes requested from google-auth.
        request_factory: Builds the google-auth transport request used to
            refresh the credentials. Defaults to
            :class:`google.auth.transport.requests.Request`.
    """

    name = "application default credentials"

    def __init__(
        self,
        scopes: Sequence[str] = CLOUD_PLATFORM_SCOPES,
        request_factory: Callable[[], Request] | None = None,
    ) -> None:
        self.scopes = tuple(scopes)
        self._request_factory = request_factory or Request
        self._credentials: google.auth.credentials.Credentials | None = None

    def fetch(self) -> AccessToken:
        """Refresh the discovered credentials and return their token.

        Discovery runs until a token has been obtained once; later calls
        refresh the same credentials object.
        """
        credentials = self._credentials
        try:
            if credentials is None:
                credentials, project_id = google.auth.default(scopes=list(self.scopes))
                logger.debug(f"Discovered Application Default Credentials (project: {project_id})")
            credentials.refresh(self._request_factory())
        except google.auth.exceptions.GoogleAuthError as e:
            raise CredentialUnavailableError(f"Application Default Credentials unavailable: {e}") from e

        token = getattr(credentials, "token", None)
        expiry = getattr(credentials, "expiry", None)
        if not token or expiry is None:
            raise CredentialUnavailableError("Application Default Credentials did not return an access token")

        # google-auth reports expiry as a naive UTC datetime
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)

        self._credentials = credentials
        return AccessToken(value=token, expiry=expiry)


class GcloudTokenSource(TokenSource):
    """Access token of the active gcloud login.

    gcloud does not fail when its own session has expired; it prints the stale
    token. ``fetch`` therefore rejects any token whose expiry has passed so the
    user gets an actionable message instead of a 401 from the repository.

    Args:
        runner: Command runner used to invoke gcloud.
        command: gcloud executable. Defaults to :func:`gcloud_command`.
        clock: Returns the current aware UTC time.
    """

    name = "gcloud"

    def __init__(
        self,
        runner: CommandRunner | None = None,
        command: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._runner = runner or SubprocessCommandRunner()
        self.command = command or gcloud_command()
        self._clock = clock or (lambda: datetime.now(UTC))

    def fetch(self) -> AccessToken:
        result = self._runner.execute(self.command, *GCLOUD_ARGS)
        if result.exit_code != 0:
            raise CommandExecutionError(
                f"gcloud exited with status: {result.exit_code}\n"
                f"Output:\n{result.stdout}\n"
                f"Error Output:\n{result.stderr}\n",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        token = self._parse(result.stdout)
        if token.is_expired(self._clock()):
            raise CredentialExpiredError("AccessToken is expired - maybe run `gcloud auth login`")
        return token

    @staticmethod
    def _parse(output: str) -> AccessToken:
        try:
            document = json.loads(output)
        except ValueError as e:
            raise MalformedCredentialError(f"Failed to parse gcloud output as JSON: {e}") from e

        credential = document.get(KEY_CREDENTIAL) if isinstance(document, dict) else None
        if credential is None:
            raise MalformedCredentialError("No credential returned from gcloud")
        if not isinstance(credential, dict):
            raise MalformedCredentialError("Malformed response from gcloud")

        access_token = credential.get(KEY_ACCESS_TOKEN)
        token_expiry = credential.get(KEY_TOKEN_EXPIRY)
        if not isinstance(access_token, str) or not isinstance(token_expiry, str):
            raise MalformedCredentialError("Malformed response from gcloud")

        try:
            expiry = parse_expiry(token_expiry)
        except ValueError as e:
            raise MalformedCredentialError("Failed to parse timestamp from gcloud output") from e

        return AccessToken(value=access_token, expiry=expiry)


def default_sources(
    scopes: Sequence[str] = CLOUD_PLATFORM_SCOPES,
    runner: CommandRunner | None = None,
    command: str | None = None,
) -> tuple[TokenSource, ...]:
    """Build the standard source chain: ambient credentials, then gcloud."""
    return (
        AmbientTokenSource(scopes=scopes),
        GcloudTokenSource(runner=runner, command=command),
    )
