from typing import Optional


class RestoreError(Exception):
    """Base class for every error that aborts a restore run."""


class ConfigError(RestoreError):
    """Credentials, profile, endpoint or bucket setup is unusable. Raised before listing starts."""


class ListingError(RestoreError):
    """A page of object versions could not be fetched."""


class MutationError(RestoreError):
    """A copy or delete failed for a specific key."""

    def __init__(self, message: str, key: str, version_id: Optional[str] = None):
        super().__init__(message)
        self.key = key
        self.version_id = version_id


class DeadlineExceeded(RestoreError):
    """The time budget for the run was used up before the next network call."""
