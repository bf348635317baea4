"""
Outpost-Spine - resumable provisioning handlers for S3 on Outposts.

- outpost_spine.core: logging, errors, settings
- outpost_spine.orchestration: the stage/pipeline engine
- outpost_spine.resources: Bucket, BucketPolicy, AccessPoint, Endpoint
- outpost_spine.handler: single-invocation entrypoint
"""

__version__ = "0.1.0"

from outpost_spine.orchestration import (  # noqa: E402
    CallbackState,
    HandlerRequest,
    OperationKind,
    OperationStatus,
    Orchestrator,
    OutcomeCode,
    ProgressEnvelope,
    get_resource,
    list_resources,
)

__all__ = [
    "__version__",
    "CallbackState",
    "HandlerRequest",
    "OperationKind",
    "OperationStatus",
    "Orchestrator",
    "OutcomeCode",
    "ProgressEnvelope",
    "get_resource",
    "list_resources",
]
