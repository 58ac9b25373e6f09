"""Access token value type."""

from dataclasses import dataclass
from datetime import UTC, datetime

# Expiry format printed by `gcloud config config-helper`, always UTC.
EXPIRY_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def parse_expiry(value: str) -> datetime:
    """Parse a gcloud ``token_expiry`` string into an aware UTC datetime.

    Raises:
        ValueError: If ``value`` does not match ``EXPIRY_FORMAT``.
    """
    return datetime.strptime(value, EXPIRY_FORMAT).replace(tzinfo=UTC)


@dataclass(frozen=True)
class AccessToken:
    """A short-lived bearer token and the moment it stops being valid."""

    value: str
    expiry: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True when the token expires at or before ``now``."""
        if now is None:
            now = datetime.now(UTC)
        return self.expiry <= now

    def __repr__(self) -> str:
        return f"AccessToken(value='***', expiry={self.expiry.isoformat()})"
