"""Custom exceptions for credential resolution and token retrieval.

This module defines the exceptions raised while looking for an access token,
from the ambient Application Default Credentials lookup through the gcloud
subprocess to the resolver that tries both.

Example:
    ```python
    from artifactregistry_auth.auth.exceptions import CredentialUnavailableError

    try:
        credential = resolver.get_credential()
    except CredentialUnavailableError as e:
        print(f"Falling back to anonymous access: {e}")
    ```
"""


class CredentialError(Exception):
    """Base exception for credential-related errors.

    All credential-specific exceptions inherit from this class,
    making it easy to catch any credential-related error.
    """

    pass


class CredentialUnavailableError(CredentialError):
    """Raised when no source could produce an access token.

    Attributes:
        errors: The failure raised by each source that was tried, in order.

    Example:
        ```python
        try:
            resolver.get_credential()
        except CredentialUnavailableError as e:
            for error in e.errors:
                print(error)
        ```
    """

    def __init__(self, message: str, errors: list[Exception] | None = None):
        """Initialize CredentialUnavailableError.

        Args:
            message: Error message describing why no credential was found.
            errors: Optional list of per-source failures.
        """
        super().__init__(message)
        self.errors = errors if errors is not None else []


class CredentialExpiredError(CredentialUnavailableError):
    """Raised when gcloud returns a well-formed token that has already expired.

    gcloud does not fail when its own login has lapsed; it prints the stale
    token instead. The message tells the user to log in again.
    """

    pass


class MalformedCredentialError(CredentialError):
    """Raised when gcloud output cannot be parsed into an access token."""

    pass


class CommandExecutionError(CredentialError):
    """Raised when an external command fails to start or exits nonzero.

    Attributes:
        exit_code: Exit status of the command, or None if it never ran.
        stdout: Captured standard output, if any.
        stderr: Captured standard error, if any.
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
