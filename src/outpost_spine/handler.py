"""
Single-invocation entrypoint.

The scheduler sends one JSON payload per invocation and expects one
Progress Envelope back::

    {"typeName": "AWS::S3Outposts::Bucket", "action": "CREATE",
     "desiredResourceState": {...}, "callbackContext": {...}, ...}
        → {"status": "IN_PROGRESS", "callbackState": {...},
           "requestedDelaySeconds": 20, ...}

Nothing survives between calls except what the envelope carries.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from outpost_spine.core.errors import ResourceNotRegisteredError
from outpost_spine.core.logging import configure_logging, get_logger
from outpost_spine.core.settings import EngineSettings, get_settings
from outpost_spine.orchestration import Orchestrator, OutcomeCode, ProgressEnvelope, get_resource

logger = get_logger(__name__)

_logging_configured = False


def _ensure_logging(settings: EngineSettings) -> None:
    global _logging_configured
    if not _logging_configured:
        configure_logging(level=settings.log_level, json_format=settings.json_logs)
        _logging_configured = True


def handle(payload: Mapping[str, Any], *, settings: EngineSettings | None = None, client_factory=None) -> ProgressEnvelope:
    """Route ``payload`` to its resource type and run one invocation."""
    settings = settings or get_settings()
    if not isinstance(payload, Mapping):
        logger.warning("invocation.malformed", payload_type=type(payload).__name__)
        return ProgressEnvelope.failed(
            OutcomeCode.INVALID_REQUEST, "Malformed request: payload must be a JSON object"
        )
    type_name = payload.get("typeName") or payload.get("resourceType")
    try:
        definition = get_resource(type_name)
    except ResourceNotRegisteredError as e:
        logger.warning("invocation.unknown_type", **e.to_dict())
        return ProgressEnvelope.failed(OutcomeCode.INVALID_REQUEST, e.message)

    orchestrator = Orchestrator(definition, settings=settings, client_factory=client_factory)
    return orchestrator.handle_payload(payload)


def entrypoint(payload: Mapping[str, Any], context: Any = None) -> dict[str, Any]:
    """Lambda-style entrypoint: dict in, wire-shaped dict out."""
    settings = get_settings()
    _ensure_logging(settings)
    return handle(payload, settings=settings).to_dict()


__all__ = ["handle", "entrypoint"]
