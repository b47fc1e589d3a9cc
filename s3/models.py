from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class OperationType(str, Enum):
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ObjectVersion:
    """One historical state of a key: a written version or a delete marker."""
    version_id: str
    operation: OperationType
    timestamp: datetime
    is_latest: bool
    etag: str = ""

    @classmethod
    def from_version(cls, entry: Dict[str, Any]) -> "ObjectVersion":
        """Builds a PUT record from an item of the `Versions` list of ListObjectVersions."""
        return cls(
            version_id=entry["VersionId"],
            operation=OperationType.PUT,
            timestamp=entry["LastModified"],
            is_latest=entry.get("IsLatest", False),
            etag=entry.get("ETag", ""),
        )

    @classmethod
    def from_delete_marker(cls, entry: Dict[str, Any]) -> "ObjectVersion":
        """Builds a DELETE record from an item of the `DeleteMarkers` list. Markers carry no etag."""
        return cls(
            version_id=entry["VersionId"],
            operation=OperationType.DELETE,
            timestamp=entry["LastModified"],
            is_latest=entry.get("IsLatest", False),
        )


@dataclass
class VersionPage:
    """
    One response of the paginated version listing.

    `versions` and `delete_markers` keep the raw entries returned by S3 (each with at least
    Key, VersionId, LastModified, IsLatest and, for versions, ETag).
    """
    versions: List[Dict[str, Any]] = field(default_factory=list)
    delete_markers: List[Dict[str, Any]] = field(default_factory=list)
    is_truncated: bool = False
    next_key_marker: Optional[str] = None
    next_version_id_marker: Optional[str] = None


class ActionType(str, Enum):
    SKIP = "skip"
    DELETE = "delete"
    PROMOTE = "promote"


@dataclass(frozen=True)
class RestoreAction:
    type: ActionType
    version_id: Optional[str] = None

    @classmethod
    def skip(cls) -> "RestoreAction":
        return cls(ActionType.SKIP)

    @classmethod
    def delete(cls) -> "RestoreAction":
        return cls(ActionType.DELETE)

    @classmethod
    def promote(cls, version_id: str) -> "RestoreAction":
        return cls(ActionType.PROMOTE, version_id)
