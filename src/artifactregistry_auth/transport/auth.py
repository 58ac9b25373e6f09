"""Bearer token authentication for repository requests.

``BearerTokenAuth`` plugs into httpx's auth hook. Before each request is sent
it asks the resolver for the current token (refreshing it if the refresh
interval has passed), sets the ``Authorization`` header and applies the
configured read timeout.

Example:
    ```python
    import httpx

    from artifactregistry_auth.auth import CredentialResolver
    from artifactregistry_auth.transport.auth import BearerTokenAuth

    auth = BearerTokenAuth(CredentialResolver(), read_timeout_ms=30_000)

    with httpx.Client(auth=auth) as client:
        response = client.get("https://us-maven.pkg.dev/my-project/my-repo/com/example/lib/maven-metadata.xml")
    ```
"""

from collections.abc import Generator

import httpx

from artifactregistry_auth.auth.credentials import CredentialResolver
from artifactregistry_auth.config import DEFAULT_READ_TIMEOUT_MS


class BearerTokenAuth(httpx.Auth):
    """Attach ``Authorization: Bearer <token>`` and a read timeout to requests.

    Args:
        resolver: Supplies the access token for every request.
        read_timeout_ms: Read timeout set on every request, in milliseconds.
    """

    def __init__(self, resolver: CredentialResolver, read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS) -> None:
        self.resolver = resolver
        self.read_timeout_ms = read_timeout_ms

    def initialize(self, request: httpx.Request) -> None:
        """Decorate ``request`` in place with the bearer token and read timeout.

        Raises:
            CredentialError: If the resolver cannot supply a token.
        """
        token = self.resolver.get_access_token()
        request.headers["Authorization"] = f"Bearer {token.value}"

        timeout = dict(request.extensions.get("timeout", {}))
        timeout["read"] = self.read_timeout_ms / 1000
        request.extensions["timeout"] = timeout

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        self.initialize(request)
        yield request
