from datetime import datetime
from typing import Optional, Sequence

from s3.models import ObjectVersion, OperationType, RestoreAction


def version_at(history: Sequence[ObjectVersion], reference: datetime) -> Optional[ObjectVersion]:
    """
    Returns the record in effect at `reference`: the last one strictly before it,
    or None if the key did not exist yet. `history` must be sorted ascending by timestamp.
    """
    found = None
    for version in history:
        if version.timestamp < reference:
            found = version
    return found


def latest_version(history: Sequence[ObjectVersion]) -> Optional[ObjectVersion]:
    for version in history:
        if version.is_latest:
            return version
    return None


def _etag(version: Optional[ObjectVersion]) -> str:
    return version.etag if version is not None else ""


def decide(history: Sequence[ObjectVersion], reference: datetime) -> RestoreAction:
    """
    Computes the mutation that brings a key back to its state at `reference`.

    A missing key and a deleted key both have an empty etag, so "never existed" and
    "deleted" are treated as the same state: a key that did not exist at `reference`
    and is currently behind a delete marker is skipped.

    - same etag now and at `reference`: SKIP
    - absent or deleted at `reference`: DELETE, a new delete marker on top of the history
    - otherwise: PROMOTE the version in effect at `reference` by copying it onto itself
    """
    at_reference = version_at(history, reference)
    current = latest_version(history)

    if _etag(current) == _etag(at_reference):
        return RestoreAction.skip()

    if at_reference is None or at_reference.operation == OperationType.DELETE:
        return RestoreAction.delete()

    return RestoreAction.promote(at_reference.version_id)
