import typer

from utils.aws import AWSHelper
from utils.errors import ConfigError, RestoreError
from utils.s3 import S3Gateway


def check_bucket_versioning(gateway: S3Gateway, bucket_name: str) -> str:
    """
    Makes sure versioning is enabled on the bucket.

    On an unversioned or suspended bucket a copy or a delete overwrites the `null` version,
    so the restore would destroy history instead of appending to it.

    Raises:
        ConfigError: if versioning is not 'Enabled'.
    """
    status = gateway.get_versioning_status(bucket_name)
    if status != "Enabled":
        raise ConfigError(f"Versioning is not enabled on bucket '{bucket_name}' (status: {status or 'never enabled'})")
    return status


def check_versioning(bucket_name: str = typer.Argument(..., help="Name of the bucket to check.")):
    """
    Prints the versioning status of a bucket and fails if a restore could not run on it.
    """
    try:
        AWSHelper.verify_credentials()
        check_bucket_versioning(S3Gateway(), bucket_name)
    except RestoreError as e:
        typer.secho(f"👎 {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho(f"👍 Versioning is enabled for bucket: {bucket_name}", fg=typer.colors.GREEN)
