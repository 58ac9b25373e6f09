"""Structured exceptions for repository transfer errors."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class TransferError(Exception):
    """Base exception for repository transfer errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: "httpx.Response | None" = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class ResourceNotFoundError(TransferError):
    """404 Not Found."""

    pass


class AuthorizationError(TransferError):
    """401 Unauthorized or 403 Forbidden.

    Attributes:
        has_credentials: Whether the rejected request carried a token.
    """

    def __init__(self, message: str, has_credentials: bool = True, **kwargs):
        super().__init__(message, **kwargs)
        self.has_credentials = has_credentials


class TransferFailedError(TransferError):
    """Any other server error, or a failure to reach the server at all."""

    pass
