"""
Per-key version history reconstruction over the paginated ListObjectVersions API.

S3 returns versions ordered by ascending key, truncated every `MaxKeys` entries, and a
single key's versions can span several pages. The iterator below only hands a key to the
caller once no later page can still add records to it: as soon as two distinct keys are
pending, the smallest one is complete, and when the listing is exhausted every pending key is.
Memory therefore stays bounded by one page of keys instead of the whole bucket.

The ascending key order across pages is a contract of the listing backend. A backend that
does not honour it breaks the completeness guarantee.
"""
from typing import Iterator, List, Optional, Tuple

from s3.models import ObjectVersion
from utils.logger import get_logger

logger = get_logger(__name__)

# ListObjectVersions never returns more than 1000 entries per page
MAX_KEYS = 1000
PROGRESS_LOG_EVERY = 1000

VersionHistory = List[ObjectVersion]


class ObjectVersionMap(dict):
    """
    Keys received but not yet emitted, each with its history sorted by timestamp.
    """

    def __init__(self):
        super().__init__()
        self.loaded_keys = 0

    def add(self, key: str, version: ObjectVersion):
        history = self.get(key)
        if history is None:
            history = []
            self.loaded_keys += 1
            if self.loaded_keys % PROGRESS_LOG_EVERY == 0:
                logger.debug(f"Loading objects: {self.loaded_keys} keys so far")
        history.append(version)
        # sort is stable: equal timestamps keep their arrival order
        history.sort(key=lambda v: v.timestamp)
        self[key] = history

    def pop_first(self) -> Tuple[str, VersionHistory]:
        key = min(self)
        return key, self.pop(key)


class VersionListIterator:
    """
    Yields `(key, history)` once per key under `prefix`, histories sorted ascending by timestamp.

    The iterator is single use. A failed page fetch raises and leaves the cursors and the
    pending keys untouched, so calling `next()` again re-requests the same page.
    """

    def __init__(self, gateway, bucket: str, prefix: Optional[str] = None, page_size: int = MAX_KEYS):
        self.gateway = gateway
        self.bucket = bucket
        self.prefix = prefix
        self.page_size = page_size
        self.load_more = True
        self.key_marker: Optional[str] = None
        self.version_id_marker: Optional[str] = None
        self.pending = ObjectVersionMap()
        self.pages_fetched = 0

    def __iter__(self) -> Iterator[Tuple[str, VersionHistory]]:
        return self

    def __next__(self) -> Tuple[str, VersionHistory]:
        while self.load_more and len(self.pending) <= 1:
            self._fetch_page()

        # either several keys are pending (the smallest is complete),
        # or the listing is over and every pending key is complete
        if not self.pending:
            self.load_more = False
            raise StopIteration
        return self.pending.pop_first()

    def _fetch_page(self):
        logger.debug(f"Requesting page {self.pages_fetched + 1} (KeyMarker: {self.key_marker}, "
                     f"VersionIdMarker: {self.version_id_marker})")
        page = self.gateway.list_versions_page(
            self.bucket,
            prefix=self.prefix,
            key_marker=self.key_marker,
            version_id_marker=self.version_id_marker,
            max_keys=self.page_size,
        )
        records = [(entry["Key"], ObjectVersion.from_version(entry)) for entry in page.versions]
        records += [(entry["Key"], ObjectVersion.from_delete_marker(entry)) for entry in page.delete_markers]

        self.pages_fetched += 1
        self.load_more = page.is_truncated
        self.key_marker = page.next_key_marker
        self.version_id_marker = page.next_version_id_marker

        for key, version in records:
            self.pending.add(key, version)
