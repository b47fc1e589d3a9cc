import os
import boto3
import typer
from boto3.session import Session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ProfileNotFound
from typing import Dict, Optional

from utils.errors import ConfigError

Boto3Client = object

ENDPOINT_ENV_VARS = ("AWS_ENDPOINT_URL_S3", "AWS_ENDPOINT_URL")


class AWSHelper:
    """
    A static helper class to manage a single boto3.Session and its clients.

    This class uses static methods and class attributes, so it never needs to be instantiated.
    The AWS profile should be set once using the `configure` method before first use.
    """
    _session: Optional[Session] = None
    _clients: Dict[str, Boto3Client] = {}
    _profile: Optional[str] = None
    _region: Optional[str] = None
    _endpoint_url: Optional[str] = None
    _client_config: Optional[Config] = None
    _initialized: bool = False

    @staticmethod
    def configure(profile: Optional[str] = None, region: Optional[str] = None, endpoint_url: Optional[str] = None,
                  connect_timeout: float = 10, read_timeout: float = 60, max_attempts: int = 5):
        """
        Configures the helper with a specific AWS profile.
        This method should be called once at the beginning of the application.

        Args:
            profile: The name of the AWS profile to use. If None, the default is used.
            region: Region override, otherwise resolved by boto3.
            endpoint_url: Custom S3 endpoint. Falls back to AWS_ENDPOINT_URL_S3 / AWS_ENDPOINT_URL.
            connect_timeout: Seconds before a connection attempt is abandoned.
            read_timeout: Seconds to wait for a response on an open connection.
            max_attempts: Total attempts per request, handled by botocore's standard retry mode.
        """
        if AWSHelper._initialized:
            typer.secho(f"Warning: AWSHelper was already configured for profile '{AWSHelper._profile or 'default'}'. "
                        "Re-configuration is ignored.", fg=typer.colors.YELLOW)
            return

        AWSHelper._profile = profile
        AWSHelper._region = region
        AWSHelper._endpoint_url = endpoint_url or AWSHelper._endpoint_from_env()
        AWSHelper._client_config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": max_attempts, "mode": "standard"},
        )
        AWSHelper._initialized = True

    @staticmethod
    def reset():
        """Drops the cached session and clients so the helper can be configured again."""
        AWSHelper._session = None
        AWSHelper._clients = {}
        AWSHelper._profile = None
        AWSHelper._region = None
        AWSHelper._endpoint_url = None
        AWSHelper._client_config = None
        AWSHelper._initialized = False

    @staticmethod
    def _endpoint_from_env() -> Optional[str]:
        for name in ENDPOINT_ENV_VARS:
            if os.environ.get(name):
                return os.environ[name]
        return None

    @staticmethod
    def get_session() -> Session:
        """
        Lazy-loads and returns the boto3 session using class attributes.
        """
        if not AWSHelper._initialized:
            AWSHelper.configure()

        if AWSHelper._session is None:
            try:
                AWSHelper._session = boto3.Session(profile_name=AWSHelper._profile, region_name=AWSHelper._region)
            except ProfileNotFound as e:
                raise ConfigError(f"AWS profile not found: {e}") from e

        return AWSHelper._session

    @staticmethod
    def verify_credentials():
        """
        Fails fast when no credentials can be resolved, before any listing starts.
        """
        if AWSHelper.get_session().get_credentials() is None:
            raise ConfigError("AWS credentials not found. Please configure your environment (e.g., via `aws configure`).")

    @staticmethod
    def get_client(service_name: str, max_timeout: Optional[float] = None) -> Boto3Client:
        """
        Lazy-loads and returns a specific service client from the class-level cache.

        Args:
            service_name: The name of the AWS service (e.g., 's3', 'ec2').
            max_timeout: Upper bound in seconds for the connect and read timeouts. A client built
                with a bound is not cached, since the bound belongs to one run.

        Returns:
            A boto3 client for the requested service.
        """
        if max_timeout is not None:
            return AWSHelper._new_client(service_name, AWSHelper._capped_config(max_timeout))

        if service_name not in AWSHelper._clients:
            AWSHelper._clients[service_name] = AWSHelper._new_client(service_name, AWSHelper._client_config)

        return AWSHelper._clients[service_name]

    @staticmethod
    def _capped_config(max_timeout: float) -> Config:
        if not AWSHelper._initialized:
            AWSHelper.configure()
        config = AWSHelper._client_config
        # at least one second; an expired budget is caught by the deadline before any request
        cap = max(max_timeout, 1)
        return config.merge(Config(connect_timeout=min(config.connect_timeout, cap),
                                   read_timeout=min(config.read_timeout, cap)))

    @staticmethod
    def _new_client(service_name: str, config: Config) -> Boto3Client:
        session = AWSHelper.get_session()
        kwargs = {"config": config}
        if service_name == "s3" and AWSHelper._endpoint_url:
            kwargs["endpoint_url"] = AWSHelper._endpoint_url
        try:
            return session.client(service_name, **kwargs)
        except (ValueError, BotoCoreError) as e:
            # malformed endpoint URLs surface as ValueError
            raise ConfigError(f"Cannot create '{service_name}' client: {e}") from e
