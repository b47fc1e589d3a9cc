import itertools
from datetime import datetime, timedelta, timezone

import pytest

from s3.models import ObjectVersion, OperationType, VersionPage
from utils.aws import AWSHelper
from utils.errors import MutationError

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


def put(version_id, minutes, etag, latest=False) -> ObjectVersion:
    return ObjectVersion(version_id, OperationType.PUT, at(minutes), latest, etag)


def marker(version_id, minutes, latest=False) -> ObjectVersion:
    return ObjectVersion(version_id, OperationType.DELETE, at(minutes), latest)


class FakeVersionedBucket:
    """
    In-memory versioned bucket implementing the S3Gateway interface.

    Listings follow S3: keys ascending, versions of a key newest first, at most
    `max_keys` entries per page, continuation by KeyMarker/VersionIdMarker.
    Copies and deletes append new versions one minute after the newest timestamp so far.
    """

    def __init__(self, name="bucket", versioning="Enabled", copy_changes_etag=False):
        self.name = name
        # SSE-KMS and multipart objects get a new ETag when copied
        self.copy_changes_etag = copy_changes_etag
        self.versioning = versioning
        self.objects = {}
        self.clock = T0 + timedelta(days=1)
        self._ids = itertools.count(1)
        self.list_calls = []
        self.mutations = []
        self.listing_errors = []
        self.mutation_errors = {}

    def _now(self, timestamp=None):
        if timestamp is not None:
            return timestamp
        self.clock += timedelta(minutes=1)
        return self.clock

    def _append(self, key, entry):
        history = self.objects.setdefault(key, [])
        for old in history:
            old["IsLatest"] = False
        history.append(entry)

    def put(self, key, etag, timestamp=None, version_id=None):
        self._append(key, {
            "Key": key,
            "VersionId": version_id or f"v{next(self._ids)}",
            "LastModified": self._now(timestamp),
            "IsLatest": True,
            "ETag": etag,
        })
        return self

    def delete(self, key, timestamp=None, version_id=None):
        self._append(key, {
            "Key": key,
            "VersionId": version_id or f"d{next(self._ids)}",
            "LastModified": self._now(timestamp),
            "IsLatest": True,
            "IsDeleteMarker": True,
        })
        return self

    def entries(self, prefix=None):
        for key in sorted(self.objects):
            if prefix and not key.startswith(prefix):
                continue
            yield from reversed(self.objects[key])

    def current(self, key):
        return next(e for e in self.objects[key] if e["IsLatest"])

    def etag_at(self, key, reference):
        found = None
        for entry in self.objects[key]:
            if entry["LastModified"] < reference:
                found = entry
        if found is None or found.get("IsDeleteMarker"):
            return ""
        return found["ETag"]

    def current_etag(self, key):
        entry = self.current(key)
        return "" if entry.get("IsDeleteMarker") else entry["ETag"]

    # S3Gateway interface

    def list_versions_page(self, bucket, prefix=None, key_marker=None, version_id_marker=None, max_keys=1000):
        self.list_calls.append((key_marker, version_id_marker))
        if self.listing_errors:
            raise self.listing_errors.pop(0)

        entries = list(self.entries(prefix))
        start = 0
        if key_marker is not None:
            for index, entry in enumerate(entries):
                if (entry["Key"], entry["VersionId"]) == (key_marker, version_id_marker):
                    start = index + 1
                    break
        page = entries[start:start + max_keys]
        truncated = start + max_keys < len(entries)

        strip = [{k: v for k, v in e.items() if k != "IsDeleteMarker"} for e in page]
        return VersionPage(
            versions=[s for s, e in zip(strip, page) if not e.get("IsDeleteMarker")],
            delete_markers=[s for s, e in zip(strip, page) if e.get("IsDeleteMarker")],
            is_truncated=truncated,
            next_key_marker=page[-1]["Key"] if truncated else None,
            next_version_id_marker=page[-1]["VersionId"] if truncated else None,
        )

    def copy_version(self, source_bucket, dest_bucket, key, version_id):
        if key in self.mutation_errors:
            raise MutationError(self.mutation_errors[key], key=key, version_id=version_id)
        source = next(e for e in self.objects[key] if e["VersionId"] == version_id)
        self.mutations.append(("copy", key, version_id))
        etag = source["ETag"]
        if self.copy_changes_etag:
            etag = f"\"copy-{len(self.mutations)}\""
        self.put(key, etag)

    def delete_current_version(self, bucket, key):
        if key in self.mutation_errors:
            raise MutationError(self.mutation_errors[key], key=key)
        self.mutations.append(("delete", key))
        self.delete(key)

    def get_versioning_status(self, bucket):
        return self.versioning


@pytest.fixture
def bucket():
    return FakeVersionedBucket()


@pytest.fixture
def history_bucket():
    """
    A bucket with one key per restore situation, all written before T0 + 60 minutes
    and changed afterwards.
    """
    b = FakeVersionedBucket()
    # had content at the reference, overwritten later
    b.put("a/overwritten.txt", '"a1"', at(0)).put("a/overwritten.txt", '"a2"', at(90))
    # created after the reference
    b.put("a/created-later.txt", '"b1"', at(90))
    # deleted after the reference
    b.put("b/deleted-later.txt", '"c1"', at(10)).delete("b/deleted-later.txt", at(100))
    # untouched since before the reference
    b.put("b/untouched.txt", '"d1"', at(5))
    # deleted before the reference, recreated after
    b.put("c/recreated.txt", '"e1"', at(1)).delete("c/recreated.txt", at(20)).put("c/recreated.txt", '"e2"', at(120))
    # created and deleted after the reference
    b.put("c/short-lived.txt", '"f1"', at(70)).delete("c/short-lived.txt", at(80))
    # rewritten with the same content after the reference
    b.put("d/same-content.txt", '"g1"', at(2)).put("d/same-content.txt", '"g1"', at(75))
    # many versions, spans pages with small page sizes
    for i in range(6):
        b.put("d/busy.txt", f'"h{i}"', at(15 * i))
    return b


@pytest.fixture(autouse=True)
def reset_aws_helper():
    AWSHelper.reset()
    yield
    AWSHelper.reset()
