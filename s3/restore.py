"""
Point-in-time restore of a versioned S3 bucket.

Every key is brought back to the state it had at a reference timestamp using only
server side operations that append to the version history:

- a key that did not exist, or was deleted, at the reference time gets a new delete marker
- a key that had content at the reference time gets that version copied on top of itself
- a key already in the wanted state is left alone

Running the same restore twice is a no-op the second time.
Requires s3:ListBucketVersions, s3:GetObjectVersion, s3:PutObject and s3:DeleteObject.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import typer

from s3.decision import decide
from s3.models import ActionType
from s3.versioning import check_bucket_versioning
from s3.versions import MAX_KEYS, VersionListIterator
from utils.aws import AWSHelper
from utils.deadline import Deadline
from utils.errors import ConfigError, MutationError, RestoreError
from utils.logger import get_logger, setup_logging
from utils.s3 import S3Gateway

logger = get_logger(__name__)

RFC3339 = re.compile(r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$")


@dataclass
class RestoreSummary:
    scanned: int = 0
    skipped: int = 0
    deleted: int = 0
    restored: int = 0

    @property
    def mutated(self) -> int:
        return self.deleted + self.restored


def parse_timestamp(value: str) -> datetime:
    """
    Parses an RFC3339 timestamp such as 2023-08-17T18:50:00+02:00 or 2023-08-17T16:50:00Z.
    The UTC offset is mandatory: S3 timestamps are timezone aware and a naive value cannot be compared.
    """
    text = value.strip()
    if not RFC3339.match(text):
        raise ValueError(f"Invalid RFC3339 timestamp: '{value}', expected e.g. 2023-08-17T18:50:00+02:00")
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        # matches the pattern but is not a real date, e.g. 2023-02-30
        raise ValueError(f"Invalid RFC3339 timestamp: '{value}'") from e


def restore_bucket(gateway: S3Gateway, bucket: str, reference: datetime, prefix: Optional[str] = None,
                   dry_run: bool = False, page_size: int = MAX_KEYS) -> RestoreSummary:
    """
    Walks every key under `prefix` and applies the action computed by `decide`.

    Stops at the first listing or mutation error; nothing is skipped silently.
    """
    summary = RestoreSummary()
    reference_str = reference.isoformat()

    for key, history in VersionListIterator(gateway, bucket, prefix=prefix, page_size=page_size):
        summary.scanned += 1
        if summary.scanned % 1000 == 0:
            logger.info(f"Processed {summary.scanned} keys...")
        logger.debug(f"Checking '{key}': {history}")
        action = decide(history, reference)

        if action.type == ActionType.SKIP:
            logger.info(f"Skipping '{key}': already at its state of {reference_str}")
            summary.skipped += 1
            continue

        if action.type == ActionType.DELETE:
            logger.info(f"{'[DRY RUN] Would delete' if dry_run else 'Deleting'} '{key}': "
                        f"absent at {reference_str}")
            if not dry_run:
                # no version id: adds a delete marker and keeps the history
                gateway.delete_current_version(bucket, key)
            summary.deleted += 1
        else:
            logger.info(f"{'[DRY RUN] Would restore' if dry_run else 'Restoring'} '{key}' "
                        f"to version '{action.version_id}'")
            if not dry_run:
                gateway.copy_version(bucket, bucket, key, action.version_id)
            summary.restored += 1

    return summary


def restore(
        bucket: str = typer.Argument(..., help="Name of the versioned bucket to restore."),
        timestamp: str = typer.Argument(..., help="RFC3339 reference time, e.g. 2023-08-17T18:50:00+02:00"),
        prefix: str = typer.Option(None, "--prefix", "-p", help="Only work on keys under this prefix."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging."),
        dry_run: bool = typer.Option(False, "--dry-run",
                                     help="Only report what would be done, without modifying any object."),
        timeout: float = typer.Option(None, "--timeout",
                                      help="Send no new request after this many seconds. Connect and read timeouts are "
                                           "capped to it, so a call in flight (with its retries) ends soon after."),
        skip_versioning_check: bool = typer.Option(False, "--skip-versioning-check",
                                                   help="Do not require versioning to be enabled on the bucket."),
):
    """
    Restores every object of BUCKET to the state it had at TIMESTAMP, preserving the full version history.

    Example: restore -v mybucket "2023-08-17T18:50:00+02:00"
    """
    setup_logging(verbose)

    try:
        reference = parse_timestamp(timestamp)
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)

    if dry_run:
        logger.info("--- DRY RUN MODE ENABLED ---")
        logger.info("No object will be modified. The script will only report what it would do.")

    try:
        AWSHelper.verify_credentials()
        gateway = S3Gateway(deadline=Deadline(timeout))
        if not skip_versioning_check:
            check_bucket_versioning(gateway, bucket)

        logger.info(f"Restoring bucket '{bucket}'{f' (prefix: {prefix})' if prefix else ''} "
                    f"to {reference.isoformat()}")
        summary = restore_bucket(gateway, bucket, reference, prefix=prefix, dry_run=dry_run)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        raise typer.Exit(code=1)
    except MutationError as e:
        logger.error(f"Restore of '{e.key}' (version: {e.version_id}) to {reference.isoformat()} failed, "
                     f"stopping: {e}")
        raise typer.Exit(code=1)
    except RestoreError as e:
        logger.error(f"Restore of '{bucket}' to {reference.isoformat()} aborted: {e}")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.error(f"Restore of '{bucket}' to {reference.isoformat()} interrupted")
        raise typer.Exit(code=130)

    logger.info("--- Restore completed ---")
    logger.info(f"Keys scanned: {summary.scanned}")
    logger.info(f"Already in place: {summary.skipped}")
    verb = "would be" if dry_run else "were"
    logger.info(f"Keys that {verb} deleted: {summary.deleted}")
    logger.info(f"Keys that {verb} restored: {summary.restored}")
    typer.secho(f"\n🎉 Restore of '{bucket}' to {reference.isoformat()} completed!", fg=typer.colors.GREEN)
