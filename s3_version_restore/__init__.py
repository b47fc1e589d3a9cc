import typer

from s3.main import app as s3_app
from utils.aws import AWSHelper

app = typer.Typer(no_args_is_help=True, add_completion=True)

# Add sub commands here
app.add_typer(s3_app, name="s3")


@app.callback()
def main(
        profile: str = typer.Option(None, envvar="AWS_PROFILE", help="AWS profile to use."),
        region: str = typer.Option(None, help="AWS region, otherwise resolved from the profile/environment."),
        endpoint_url: str = typer.Option(None, help="Custom S3 endpoint. Defaults to $AWS_ENDPOINT_URL_S3."),
        connect_timeout: float = typer.Option(10, help="Seconds before a connection attempt is abandoned."),
        read_timeout: float = typer.Option(60, help="Seconds to wait for each S3 response."),
        max_attempts: int = typer.Option(5, help="Attempts per S3 request, including retries."),
):
    """
    Point-in-time restore of versioned S3 buckets.
    """
    typer.secho(f"\nConfiguring CLI for use profile: '{profile or 'default'}'", err=True)
    AWSHelper.configure(profile=profile, region=region, endpoint_url=endpoint_url,
                        connect_timeout=connect_timeout, read_timeout=read_timeout, max_attempts=max_attempts)


if __name__ == "__main__":
    app()
