"""
S3 on Outposts resource families.

Each module exposes ``build_definition()`` returning a
:class:`~outpost_spine.orchestration.ResourceDefinition`; the registry loads
``BUILTIN_DEFINITIONS`` on first lookup.

    bucket         AWS::S3Outposts::Bucket
    bucket_policy  AWS::S3Outposts::BucketPolicy
    access_point   AWS::S3Outposts::AccessPoint
    endpoint       AWS::S3Outposts::Endpoint
"""

from outpost_spine.resources import access_point, bucket, bucket_policy, endpoint

BUILTIN_DEFINITIONS = [
    bucket.build_definition,
    bucket_policy.build_definition,
    access_point.build_definition,
    endpoint.build_definition,
]

__all__ = ["BUILTIN_DEFINITIONS", "access_point", "bucket", "bucket_policy", "endpoint"]
