"""Authenticated transfers against an Artifact Registry repository.

``RepositoryClient`` downloads, uploads and probes artifacts under a
repository base URL. Requests carry a bearer token from the
``CredentialResolver``; if no credential can be found at connect time the
client falls back to anonymous requests, which public repositories accept.

Example:
    ```python
    from pathlib import Path

    from artifactregistry_auth.client import RepositoryClient

    with RepositoryClient("artifactregistry://us-maven.pkg.dev/my-project/my-repo") as repo:
        if not repo.resource_exists("com/example/lib/1.0/lib-1.0.jar"):
            repo.put(Path("build/libs/lib-1.0.jar"), "com/example/lib/1.0/lib-1.0.jar")
        repo.get("com/example/lib/1.0/lib-1.0.pom", Path("lib-1.0.pom"))
    ```
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import httpx

from artifactregistry_auth.auth.credentials import CredentialResolver
from artifactregistry_auth.auth.exceptions import CredentialError
from artifactregistry_auth.config import Settings
from artifactregistry_auth.errors.exceptions import TransferFailedError
from artifactregistry_auth.errors.handler import raise_for_status
from artifactregistry_auth.transport.auth import BearerTokenAuth

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

DOT_SEGMENTS = frozenset({".", ".."})
TARGET_SAFE = "/%:@!$&'()*+,;=?~"


@dataclass(frozen=True)
class RepositoryEndpoint:
    """Host and base path of a repository.

    Attributes:
        host: Host name, with ``:port`` when the base URL names one.
        base_path: Path of the repository on the host, e.g. ``/my-project/my-repo``.
    """

    host: str
    base_path: str

    @classmethod
    def from_url(cls, base_url: str) -> "RepositoryEndpoint":
        """Parse a repository base URL of any scheme (``artifactregistry://``, ``https://``, ...)."""
        url = httpx.URL(base_url)
        if not url.host:
            raise ValueError(f"Repository URL has no host: {base_url!r}")
        host = f"{url.host}:{url.port}" if url.port else url.host
        return cls(host=host, base_path="" if url.path == "/" else url.path)

    def url_for(self, resource_path: str) -> str:
        """Return the https URL of ``resource_path`` inside this repository.

        The path is appended after a single ``/`` as given; duplicate slashes
        and ``..`` segments are not normalised.
        """
        return f"https://{self.host}{self.base_path}/{resource_path}"

    def target_for(self, resource_path: str) -> bytes | None:
        """Return the raw request target for paths that contain dot segments.

        httpx removes ``.`` and ``..`` segments while parsing an absolute URL,
        so such paths are sent through the ``target`` request extension
        instead. Returns None when the parsed URL already carries the path
        unchanged.
        """
        path = f"{self.base_path}/{resource_path}"
        if DOT_SEGMENTS.isdisjoint(path.partition("?")[0].split("/")):
            return None
        return quote(path, safe=TARGET_SAFE).encode("ascii")


class ResponseBody:
    """Body of a streamed download.

    Iterating reads the body to the end and releases the connection. A body
    that will not be read must be closed, directly or with ``with``.
    """

    def __init__(self, response: httpx.Response) -> None:
        self.response = response

    def __enter__(self) -> "ResponseBody":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self.response.iter_bytes()
        except httpx.HTTPError as e:
            raise TransferFailedError("Failed to read response from remote server.") from e
        finally:
            self.response.close()

    def close(self) -> None:
        self.response.close()


class FileContent:
    """Request body streamed from a file.

    Every iteration reopens the file, so the transport can send the body again.
    """

    CHUNK_SIZE = 65_536

    def __init__(self, path: Path) -> None:
        self.path = path

    def __len__(self) -> int:
        return self.path.stat().st_size

    def __iter__(self) -> Iterator[bytes]:
        with self.path.open("rb") as f:
            while chunk := f.read(self.CHUNK_SIZE):
                yield chunk


class RepositoryClient:
    """Transfer adapter for one repository.

    Must be connected before use, either explicitly with :meth:`connect` or by
    using it as a context manager.

    Args:
        base_url: Repository base URL. The scheme is ignored; requests always
            use https.
        resolver: Credential resolver shared by every client of the build.
            Defaults to a new resolver built from ``settings``.
        settings: Timeouts and resolver configuration. Defaults to
            :meth:`Settings.from_env`.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        base_url: str,
        *,
        resolver: CredentialResolver | None = None,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint = RepositoryEndpoint.from_url(base_url)
        self.settings = settings or Settings.from_env()
        self.resolver = resolver if resolver is not None else CredentialResolver.from_settings(self.settings)
        self.has_credentials = False
        self._transport = transport
        self._client: httpx.Client | None = None

    def __enter__(self) -> "RepositoryClient":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def connect(self) -> None:
        """Resolve credentials and open the HTTP client.

        Credential failures are not raised; the client continues without an
        ``Authorization`` header. Connecting again replaces the open client.
        """
        self.close()

        auth: BearerTokenAuth | None = None
        try:
            self.resolver.get_credential()
        except CredentialError as e:
            logger.info(f"Failed to get access token from gcloud or Application Default Credentials: {e}")
            self.has_credentials = False
        else:
            auth = BearerTokenAuth(self.resolver, self.settings.read_timeout_ms)
            self.has_credentials = True

        self._client = httpx.Client(
            auth=auth,
            timeout=httpx.Timeout(DEFAULT_TIMEOUT, read=self.settings.read_timeout),
            transport=self._transport,
            follow_redirects=True,
            event_hooks={"response": [self._clear_request_target]},
        )

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def get_stream(self, resource_path: str) -> ResponseBody:
        """Download a resource as an iterable of byte chunks.

        The status is checked before this returns, so errors surface here and
        not on the first iteration. Close the body if it will not be read.

        Example:
            ```python
            with repo.get_stream("com/example/lib/maven-metadata.xml") as body:
                metadata = b"".join(body)
            ```

        Raises:
            ResourceNotFoundError: On 404.
            AuthorizationError: On 401 / 403.
            TransferFailedError: On any other failure.
        """
        response = self._send("GET", resource_path, stream=True)
        if not response.is_success:
            try:
                response.read()
            except httpx.HTTPError as e:
                raise TransferFailedError("Failed to read response from remote server.") from e
            finally:
                response.close()
            raise_for_status(response, has_credentials=self.has_credentials)
        return ResponseBody(response)

    def get(self, resource_path: str, destination: str | Path) -> None:
        """Download a resource into ``destination``, creating parent directories.

        A download that fails part way removes the incomplete file.
        """
        destination = Path(destination)
        with self.get_stream(resource_path) as body:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with destination.open("wb") as f:
                try:
                    for chunk in body:
                        f.write(chunk)
                except Exception:
                    f.close()
                    destination.unlink(missing_ok=True)
                    raise

    def resource_exists(self, resource_path: str) -> bool:
        """Check whether a resource exists with a HEAD request.

        Returns:
            True on 2xx, False on 404.

        Raises:
            AuthorizationError: On 401 / 403.
            TransferFailedError: On any other failure.
        """
        response = self._send("HEAD", resource_path)
        if response.status_code == 404:
            return False
        raise_for_status(response, has_credentials=self.has_credentials)
        return True

    def put(self, source: bytes | str | Path, resource_path: str) -> None:
        """Upload ``source`` (raw bytes or a file path) to ``resource_path``.

        The body is sent with a Content-Length and without a Content-Type.

        Raises:
            ResourceNotFoundError: On 404.
            AuthorizationError: On 401 / 403.
            TransferFailedError: On any other failure, or if the file cannot be read.
        """
        headers: dict[str, str] = {}
        if isinstance(source, (bytes, bytearray)):
            content: bytes | FileContent = bytes(source)
        else:
            content = FileContent(Path(source))
            try:
                headers["Content-Length"] = str(len(content))
            except OSError as e:
                raise TransferFailedError(f"Error uploading file: {e}") from e

        try:
            response = self._send("PUT", resource_path, content=content, headers=headers)
        except OSError as e:
            raise TransferFailedError(f"Error uploading file: {e}") from e
        raise_for_status(response, has_credentials=self.has_credentials)


    def _send(self, method: str, resource_path: str, *, stream: bool = False, **kwargs) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("RepositoryClient is not connected; call connect() or use it as a context manager")

        url = self.endpoint.url_for(resource_path)
        logger.debug(f"{method} {url}")
        try:
            request = self._client.build_request(method, url, **kwargs)
            target = self.endpoint.target_for(resource_path)
            if target is not None:
                request.extensions["target"] = target
            return self._client.send(request, stream=stream)
        except httpx.HTTPError as e:
            raise TransferFailedError("Failed to send request to remote server.") from e

    @staticmethod
    def _clear_request_target(response: httpx.Response) -> None:
        # Redirect requests inherit the extensions of the request they follow
        response.request.extensions.pop("target", None)
