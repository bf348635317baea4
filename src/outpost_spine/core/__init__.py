"""
Outpost-Spine core primitives: logging, errors, settings.

Nothing here knows about pipelines or remote clients; the orchestration
package builds on these.
"""

from outpost_spine.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvalidIdentityError,
    OrchestrationError,
    OutpostSpineError,
    PipelineDefinitionError,
    PipelineNotFoundError,
    RemoteDataError,
    ResourceNotRegisteredError,
    StabilizationError,
    ValidationError,
)
from outpost_spine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from outpost_spine.core.settings import EngineSettings, ExhaustionAction, get_settings

__all__ = [
    # errors
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidIdentityError",
    "OrchestrationError",
    "OutpostSpineError",
    "PipelineDefinitionError",
    "PipelineNotFoundError",
    "RemoteDataError",
    "ResourceNotRegisteredError",
    "StabilizationError",
    "ValidationError",
    # logging
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
    # settings
    "EngineSettings",
    "ExhaustionAction",
    "get_settings",
]
