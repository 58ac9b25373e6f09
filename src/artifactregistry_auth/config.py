"""Runtime settings for credential resolution and repository transfers.

Settings come from (highest to lowest priority):
1. Environment variables
2. .env file (python-dotenv, never overrides existing variables)
3. Built-in defaults

Variables:
    ARTIFACT_REGISTRY_REFRESH_INTERVAL_MS: minimum time between token refreshes
    ARTIFACT_REGISTRY_READ_TIMEOUT_MS: read timeout for repository requests
    ARTIFACT_REGISTRY_COMMAND_TIMEOUT: seconds to wait for gcloud ("none" waits forever)
    ARTIFACT_REGISTRY_GCLOUD_COMMAND: gcloud executable to run

Example:
    ```python
    from artifactregistry_auth.config import Settings

    settings = Settings.from_env()
    print(settings.read_timeout_ms)
    ```
"""

import logging
import os
from dataclasses import dataclass
from threading import Lock

from dotenv import load_dotenv

from artifactregistry_auth.auth.command import DEFAULT_COMMAND_TIMEOUT
from artifactregistry_auth.auth.credentials import DEFAULT_REFRESH_INTERVAL_MS
from artifactregistry_auth.auth.sources import CLOUD_PLATFORM_SCOPES

logger = logging.getLogger(__name__)

ENV_PREFIX = "ARTIFACT_REGISTRY_"
ENV_REFRESH_INTERVAL_MS = f"{ENV_PREFIX}REFRESH_INTERVAL_MS"
ENV_READ_TIMEOUT_MS = f"{ENV_PREFIX}READ_TIMEOUT_MS"
ENV_COMMAND_TIMEOUT = f"{ENV_PREFIX}COMMAND_TIMEOUT"
ENV_GCLOUD_COMMAND = f"{ENV_PREFIX}GCLOUD_COMMAND"

DEFAULT_READ_TIMEOUT_MS = 60_000

_dotenv_lock = Lock()
_dotenv_loaded_paths: set[str | None] = set()


class SettingsError(ValueError):
    """Raised when an environment variable holds an invalid setting.

    Attributes:
        env_var_name: The offending environment variable.
    """

    def __init__(self, message: str, env_var_name: str):
        super().__init__(message)
        self.env_var_name = env_var_name


def _ensure_dotenv_loaded(dotenv_path: str | None) -> None:
    """Load a .env file into os.environ once per path (thread-safe)."""
    if dotenv_path in _dotenv_loaded_paths:
        return

    with _dotenv_lock:
        # Double-check pattern for thread safety
        if dotenv_path in _dotenv_loaded_paths:
            return

        try:
            load_dotenv(dotenv_path=dotenv_path)
            logger.debug("Loaded .env file for settings")
        except OSError as e:
            logger.warning(f"Failed to load .env file: {e}")
        _dotenv_loaded_paths.add(dotenv_path)


def _positive_int(env_var_name: str, default: int) -> int:
    raw = os.environ.get(env_var_name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise SettingsError(f"{env_var_name} must be an integer, got {raw!r}", env_var_name) from None
    if value <= 0:
        raise SettingsError(f"{env_var_name} must be positive, got {value}", env_var_name)
    return value


def _optional_seconds(env_var_name: str, default: float | None) -> float | None:
    raw = os.environ.get(env_var_name)
    if raw is None or not raw.strip():
        return default
    if raw.strip().lower() == "none":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise SettingsError(f"{env_var_name} must be a number of seconds, got {raw!r}", env_var_name) from None
    if value <= 0:
        raise SettingsError(f"{env_var_name} must be positive, got {value}", env_var_name)
    return value


@dataclass(frozen=True)
class Settings:
    """Tunables for the resolver and the repository client.

    Attributes:
        refresh_interval_ms: Minimum time between two token refreshes.
        read_timeout_ms: Read timeout applied to every repository request.
        command_timeout: Seconds to wait for gcloud, or None for no limit.
        gcloud_command: gcloud executable; None picks the platform default.
        scopes: OAuth scopes requested from Application Default Credentials.
    """

    refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS
    read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS
    command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT
    gcloud_command: str | None = None
    scopes: tuple[str, ...] = CLOUD_PLATFORM_SCOPES

    @property
    def read_timeout(self) -> float:
        """Read timeout in seconds, as httpx expects it."""
        return self.read_timeout_ms / 1000

    @classmethod
    def from_env(cls, dotenv_path: str | None = None, load_dotenv: bool = True) -> "Settings":
        """Build settings from environment variables and an optional .env file.

        Args:
            dotenv_path: Path to .env file. If None, python-dotenv searches
                parent directories.
            load_dotenv: Whether to load a .env file at all.

        Raises:
            SettingsError: If a variable is set to an invalid value.
        """
        if load_dotenv:
            _ensure_dotenv_loaded(dotenv_path)

        return cls(
            refresh_interval_ms=_positive_int(ENV_REFRESH_INTERVAL_MS, DEFAULT_REFRESH_INTERVAL_MS),
            read_timeout_ms=_positive_int(ENV_READ_TIMEOUT_MS, DEFAULT_READ_TIMEOUT_MS),
            command_timeout=_optional_seconds(ENV_COMMAND_TIMEOUT, DEFAULT_COMMAND_TIMEOUT),
            gcloud_command=os.environ.get(ENV_GCLOUD_COMMAND) or None,
        )
