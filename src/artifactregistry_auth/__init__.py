"""Artifact Registry Auth - bearer token authentication for build-tool repository plugins.

This library provides the pieces a Maven or Gradle style plugin needs to talk
to Artifact Registry without manual credential management:
- Credential resolution (Application Default Credentials, then gcloud)
- Token caching with throttled refresh, safe for parallel build tasks
- Authenticated GET / HEAD / PUT with a small error taxonomy

Example:
    ```python
    import sys

    from artifactregistry_auth import CredentialResolver, RepositoryClient

    # One resolver per build, shared by every repository
    resolver = CredentialResolver()

    with RepositoryClient("artifactregistry://us-maven.pkg.dev/my-project/my-repo", resolver=resolver) as repo:
        for chunk in repo.get_stream("com/example/lib/maven-metadata.xml"):
            sys.stdout.buffer.write(chunk)
    ```
"""

from artifactregistry_auth.auth.credentials import CredentialResolver
from artifactregistry_auth.client import RepositoryClient, RepositoryEndpoint
from artifactregistry_auth.config import Settings

__version__ = "0.1.0"

__all__ = [
    "CredentialResolver",
    "RepositoryClient",
    "RepositoryEndpoint",
    "Settings",
    "__version__",
]
