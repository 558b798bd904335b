"""boto3 clients for S3 and Rekognition, built once and reused."""
import logging

import boto3

from eventsnap.core.config import settings

logger = logging.getLogger(__name__)

# Cached clients, keyed by service name
_clients: dict[str, object] = {}


def _client_kwargs() -> dict:
    kwargs = {"region_name": settings.aws_region}
    # Fall back to the default credential chain when no keys are configured
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    return kwargs


def get_client(service_name: str):
    """Return the shared boto3 client for ``service_name``."""
    if service_name not in _clients:
        logger.info(f"Creating boto3 {service_name} client in {settings.aws_region}")
        _clients[service_name] = boto3.client(service_name, **_client_kwargs())
    return _clients[service_name]


def get_s3_client():
    return get_client("s3")


def get_rekognition_client():
    return get_client("rekognition")


def has_bucket_configured() -> bool:
    """Check if an object storage bucket is configured."""
    return bool(settings.s3_bucket_name)
