"""Credential resolution for Artifact Registry clients.

This module provides:
- Token sources (Application Default Credentials, gcloud CLI)
- A resolver that caches the first working source and refreshes it on a throttle
- Subprocess execution for the gcloud source

Example:
    ```python
    from artifactregistry_auth.auth import CredentialResolver

    resolver = CredentialResolver()
    token = resolver.get_access_token()
    ```
"""

from artifactregistry_auth.auth.command import CommandResult, CommandRunner, SubprocessCommandRunner
from artifactregistry_auth.auth.credentials import CachedCredential, Credential, CredentialResolver
from artifactregistry_auth.auth.exceptions import (
    CommandExecutionError,
    CredentialError,
    CredentialExpiredError,
    CredentialUnavailableError,
    MalformedCredentialError,
)
from artifactregistry_auth.auth.sources import (
    AmbientTokenSource,
    GcloudTokenSource,
    TokenSource,
    gcloud_command,
)
from artifactregistry_auth.auth.tokens import AccessToken

__all__ = [
    "AccessToken",
    "AmbientTokenSource",
    "CachedCredential",
    "CommandExecutionError",
    "CommandResult",
    "CommandRunner",
    "Credential",
    "CredentialError",
    "CredentialExpiredError",
    "CredentialResolver",
    "CredentialUnavailableError",
    "GcloudTokenSource",
    "MalformedCredentialError",
    "SubprocessCommandRunner",
    "TokenSource",
    "gcloud_command",
]
