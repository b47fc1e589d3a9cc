from typing import Optional

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from s3.models import VersionPage
from utils.aws import AWSHelper
from utils.deadline import Deadline
from utils.errors import ConfigError, ListingError, MutationError
from utils.logger import get_logger

logger = get_logger(__name__)

GiB = 1024 ** 3

# CopyObject is limited to 5 GiB, bigger versions go through UploadPartCopy.
# Objects below the threshold keep their ETag when copied, which keeps a second restore a no-op.
COPY_CONFIG = TransferConfig(
    multipart_threshold=5 * GiB,
    multipart_chunksize=1 * GiB,
    use_threads=False,
    preferred_transfer_client="classic",
)


def error_code(e: Exception) -> Optional[str]:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code")
    return None


class S3Gateway:
    """
    The only place that talks to S3. Every call checks the run deadline first, then
    wraps botocore failures into the restore error types.

    `list_versions_page` relies on S3 returning keys in ascending order across pages;
    any S3-compatible backend used through `--endpoint-url` must do the same.
    Retries of transient failures happen inside botocore with identical request parameters,
    so a retried page keeps the same markers.
    """

    def __init__(self, s3_client=None, deadline: Optional[Deadline] = None,
                 transfer_config: TransferConfig = COPY_CONFIG):
        self.deadline = deadline or Deadline()
        # a single call never waits longer than what is left of the run budget
        self.client = s3_client or AWSHelper.get_client("s3", max_timeout=self.deadline.remaining)
        self.transfer_config = transfer_config

    def list_versions_page(self, bucket: str, prefix: Optional[str] = None, key_marker: Optional[str] = None,
                           version_id_marker: Optional[str] = None, max_keys: int = 1000) -> VersionPage:
        """
        Fetches one page of versions and delete markers. Needs s3:ListBucketVersions.
        """
        self.deadline.check(f"listing versions of '{bucket}'")
        request_params = {
            "Bucket": bucket,
            "MaxKeys": max_keys,
        }
        if prefix:
            request_params["Prefix"] = prefix
        if key_marker:
            request_params["KeyMarker"] = key_marker
        if version_id_marker:
            request_params["VersionIdMarker"] = version_id_marker

        try:
            response = self.client.list_object_versions(**request_params)
        except (ClientError, BotoCoreError) as e:
            if error_code(e) == "AccessDenied":
                logger.error("Required permission: 's3:ListBucketVersions'.")
            raise ListingError(f"Listing object versions of '{bucket}' failed "
                               f"(KeyMarker: {key_marker}, VersionIdMarker: {version_id_marker}): {e}") from e

        # the fields are absent, not empty, when a page has none of them
        return VersionPage(
            versions=response.get("Versions", []),
            delete_markers=response.get("DeleteMarkers", []),
            is_truncated=response.get("IsTruncated", False),
            next_key_marker=response.get("NextKeyMarker"),
            next_version_id_marker=response.get("NextVersionIdMarker"),
        )

    def copy_version(self, source_bucket: str, dest_bucket: str, key: str, version_id: str):
        """
        Creates a new current version of `key` in `dest_bucket` with the content of `version_id`.

        Uses boto3's managed copy: a single CopyObject below 5 GiB, a multipart UploadPartCopy
        above it. Both run server side; no object data goes through this process.
        """
        self.deadline.check(f"copying '{key}'")
        copy_source = {"Bucket": source_bucket, "Key": key, "VersionId": version_id}
        try:
            self.client.copy(copy_source, dest_bucket, key, Config=self.transfer_config)
        except (ClientError, BotoCoreError) as e:
            raise MutationError(f"Copying s3://{source_bucket}/{key}?versionId={version_id} failed: {e}",
                                key=key, version_id=version_id) from e

    def delete_current_version(self, bucket: str, key: str):
        """
        Deletes `key` without a version id. On a versioned bucket this only adds a delete marker.
        """
        self.deadline.check(f"deleting '{key}'")
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise MutationError(f"Deleting s3://{bucket}/{key} failed: {e}", key=key) from e

    def get_versioning_status(self, bucket: str) -> Optional[str]:
        """
        Returns 'Enabled', 'Suspended' or None when versioning was never turned on.
        """
        self.deadline.check(f"reading versioning of '{bucket}'")
        try:
            versioning = self.client.get_bucket_versioning(Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            if error_code(e) == "NoSuchBucket":
                raise ConfigError(f"Bucket '{bucket}' does not exist") from e
            raise ConfigError(f"Cannot determine versioning status of bucket '{bucket}': {e}") from e
        return versioning.get("Status")
