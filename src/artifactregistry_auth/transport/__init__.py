"""Transport layer components for authenticated repository requests.

Modules:
    auth: httpx auth hook that adds the bearer token and read timeout

Example:
    ```python
    from artifactregistry_auth.transport import BearerTokenAuth

    client = httpx.Client(auth=BearerTokenAuth(resolver, read_timeout_ms=30_000))
    ```
"""

from artifactregistry_auth.transport.auth import BearerTokenAuth

__all__ = ["BearerTokenAuth"]
