"""Error handling utilities for repository responses."""

import httpx

from artifactregistry_auth.errors.exceptions import (
    AuthorizationError,
    ResourceNotFoundError,
    TransferError,
    TransferFailedError,
)

PERMISSION_DENIED_MESSAGE = "Permission denied on remote repository (or it may not exist). "
NO_CREDENTIALS_MESSAGE = (
    "The request had no credentials because neither Application Default Credentials nor gcloud "
    "credentials are available. See https://cloud.google.com/docs/authentication/application-default-credentials "
    "for more information."
)
NOT_FOUND_MESSAGE = "The remote resource does not exist."
SERVER_ERROR_MESSAGE = "Received an error from the remote server."

EXCEPTION_MAP: dict[int, type[TransferError]] = {
    401: AuthorizationError,
    403: AuthorizationError,
    404: ResourceNotFoundError,
}


def classify_status(status_code: int) -> type[TransferError] | None:
    """Map an HTTP status code to the exception it should raise.

    Args:
        status_code: HTTP status code of a response

    Returns:
        None for 2xx, otherwise the TransferError subclass for the status
    """
    if 200 <= status_code < 300:
        return None
    return EXCEPTION_MAP.get(status_code, TransferFailedError)


def raise_for_status(response: httpx.Response, *, has_credentials: bool = True) -> None:
    """Raise the matching TransferError for a failed repository response.

    Args:
        response: HTTP response object
        has_credentials: Whether the request was sent with a bearer token.
            Controls the wording of authorization failures.

    Raises:
        TransferError subclass based on status code
    """
    exc_class = classify_status(response.status_code)
    if exc_class is None:
        return

    status_code = response.status_code

    if exc_class is AuthorizationError:
        message = PERMISSION_DENIED_MESSAGE
        if not has_credentials:
            message += NO_CREDENTIALS_MESSAGE
        raise AuthorizationError(
            message.strip(),
            has_credentials=has_credentials,
            status_code=status_code,
            response=response,
        )

    if exc_class is ResourceNotFoundError:
        raise ResourceNotFoundError(NOT_FOUND_MESSAGE, status_code=status_code, response=response)

    # Streamed responses may not have been read
    try:
        response_text = response.text[:200]
    except httpx.ResponseNotRead:
        response_text = ""
    message = f"{SERVER_ERROR_MESSAGE} HTTP {status_code}"
    if response_text:
        message += f": {response_text}"
    raise exc_class(message, status_code=status_code, response=response)
