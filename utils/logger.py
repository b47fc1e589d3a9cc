import logging

APP_LOGGER = "s3_version_restore"

# libraries that log every request at DEBUG
QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def setup_logging(verbose: bool = False):
    """
    Logs to stderr. `verbose` turns on DEBUG for this tool's own loggers only,
    the AWS libraries stay at WARNING either way.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger(APP_LOGGER).setLevel(logging.DEBUG if verbose else logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Returns a child of the application logger, e.g. 's3_version_restore.s3.restore'."""
    return logging.getLogger(f"{APP_LOGGER}.{name}")
