"""Error handling for repository transfers."""

from artifactregistry_auth.errors.exceptions import (
    AuthorizationError,
    ResourceNotFoundError,
    TransferError,
    TransferFailedError,
)
from artifactregistry_auth.errors.handler import classify_status, raise_for_status

__all__ = [
    "AuthorizationError",
    "ResourceNotFoundError",
    "TransferError",
    "TransferFailedError",
    "classify_status",
    "raise_for_status",
]
