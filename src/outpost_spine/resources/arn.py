"""Identity decomposition for S3 on Outposts ARNs.

Every Outposts identity has the same shape::

    arn:<partition>:s3-outposts:<region>:<account>:outpost/<outpost-id>/<kind>/<child>

where ``kind`` is ``bucket``, ``accesspoint`` or ``endpoint``.  Freshly
created objects on EC2-backed outposts come back with ``ec2`` in the
outpost segment; ``with_outpost`` rewrites that segment to the real id.
"""

from __future__ import annotations

from dataclasses import dataclass

from outpost_spine.core.errors import InvalidIdentityError

SERVICE = "s3-outposts"
BUCKET = "bucket"
ACCESS_POINT = "accesspoint"
ENDPOINT = "endpoint"


@dataclass(frozen=True)
class OutpostArn:
    """Constituent parts of an Outposts ARN."""

    region: str
    account_id: str
    outpost_id: str
    kind: str
    child: str
    partition: str = "aws"

    def __str__(self) -> str:
        return (
            f"arn:{self.partition}:{SERVICE}:{self.region}:{self.account_id}:"
            f"outpost/{self.outpost_id}/{self.kind}/{self.child}"
        )

    @property
    def arn(self) -> str:
        return str(self)

    def sibling(self, kind: str, child: str) -> OutpostArn:
        """Same region/account/outpost, different object."""
        return OutpostArn(self.region, self.account_id, self.outpost_id, kind, child, self.partition)


def parse_arn(arn: str | None, kind: str | None = None) -> OutpostArn:
    """Split an Outposts ARN into its parts.

    Raises:
        InvalidIdentityError: ``arn`` is empty, malformed, or of another kind
    """
    expected = kind or "Outposts"
    if not arn:
        raise InvalidIdentityError(arn, expected)

    head, sep, tail = arn.partition(":outpost/")
    fields = head.split(":")
    if not sep or len(fields) != 5 or fields[0] != "arn" or fields[2] != SERVICE:
        raise InvalidIdentityError(arn, expected)

    parts = tail.split("/", 2)
    if len(parts) != 3 or not all(parts):
        raise InvalidIdentityError(arn, expected)
    outpost_id, found_kind, child = parts
    if kind is not None and found_kind != kind:
        raise InvalidIdentityError(arn, expected)

    return OutpostArn(
        region=fields[3],
        account_id=fields[4],
        outpost_id=outpost_id,
        kind=found_kind,
        child=child,
        partition=fields[1],
    )


def parse_bucket_arn(arn: str | None) -> OutpostArn:
    return parse_arn(arn, BUCKET)


def parse_access_point_arn(arn: str | None) -> OutpostArn:
    return parse_arn(arn, ACCESS_POINT)


def parse_endpoint_arn(arn: str | None) -> OutpostArn:
    return parse_arn(arn, ENDPOINT)


def build_bucket_arn(region: str, account_id: str, outpost_id: str, bucket: str) -> str:
    return str(OutpostArn(region, account_id, outpost_id, BUCKET, bucket))


def build_access_point_arn(region: str, account_id: str, outpost_id: str, name: str) -> str:
    return str(OutpostArn(region, account_id, outpost_id, ACCESS_POINT, name))


def build_endpoint_arn(region: str, account_id: str, outpost_id: str, endpoint_id: str) -> str:
    return str(OutpostArn(region, account_id, outpost_id, ENDPOINT, endpoint_id))


def with_outpost(arn: str, outpost_id: str | None) -> str:
    """Replace a placeholder ``/ec2/`` outpost segment with ``outpost_id``."""
    if not outpost_id:
        return arn
    return arn.replace("/ec2/", f"/{outpost_id}/", 1)


__all__ = [
    "OutpostArn",
    "BUCKET",
    "ACCESS_POINT",
    "ENDPOINT",
    "parse_arn",
    "parse_bucket_arn",
    "parse_access_point_arn",
    "parse_endpoint_arn",
    "build_bucket_arn",
    "build_access_point_arn",
    "build_endpoint_arn",
    "with_outpost",
]
