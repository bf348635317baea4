"""boto3 client construction for the two backend services.

Bucket, BucketPolicy and AccessPoint talk to ``s3control``; Endpoint talks
to ``s3outposts``.  Clients are built once per invocation, lazily, from the
invocation's region (falling back to settings).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import boto3
from botocore.config import Config

from outpost_spine.core.errors import ConfigError
from outpost_spine.core.logging import get_logger
from outpost_spine.orchestration.context import InvocationContext

logger = get_logger(__name__)

S3CONTROL = "s3control"
S3OUTPOSTS = "s3outposts"


def build_client(service_name: str, ctx: InvocationContext) -> Any:
    """Create a boto3 client for ``service_name`` in the invocation's region.

    Raises:
        ConfigError: No region in the request or in settings
    """
    settings = ctx.settings
    region = ctx.region or settings.aws_region
    if not region:
        raise ConfigError(
            f"No region for {service_name} client: set it on the request or OUTPOST_SPINE_AWS_REGION"
        )

    client_kwargs: dict[str, Any] = {
        "service_name": service_name,
        "region_name": region,
        "config": Config(retries={"max_attempts": settings.max_client_attempts, "mode": "standard"}),
    }
    if settings.endpoint_url:
        client_kwargs["endpoint_url"] = settings.endpoint_url

    logger.debug("client.build", service=service_name, region=region, endpoint=settings.endpoint_url)
    return boto3.client(**client_kwargs)


def client_factory(service_name: str) -> Callable[[InvocationContext], Any]:
    """Factory suitable for ``ResourceDefinition.client_factory``."""

    def _factory(ctx: InvocationContext) -> Any:
        return build_client(service_name, ctx)

    return _factory


__all__ = ["S3CONTROL", "S3OUTPOSTS", "build_client", "client_factory"]
