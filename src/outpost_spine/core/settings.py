"""Engine settings for Outpost-Spine handlers.

The convergence policies are deliberately configuration, not code: how long
a freshly created Outposts object needs before reads see it, and whether a
resource that never reports convergence counts as created, differ between
accounts and resource kinds.

Features:
    - **EngineSettings:** delays, propagation cycles, stabilization bounds,
      logging and AWS client options
    - **env_prefix:** ``OUTPOST_SPINE_`` environment variables
    - **.env file support:** Automatic loading via pydantic-settings
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> from outpost_spine.core.settings import EngineSettings
    >>> settings = EngineSettings(propagation_cycles=2)
    >>> settings.callback_delay_seconds
    20

Tags:
    settings, configuration, pydantic, environment, outpost-spine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExhaustionAction(str, Enum):
    """What a stabilization policy reports once its retry bound is reached."""

    SUCCEED = "succeed"
    FAIL = "fail"


class EngineSettings(BaseSettings):
    """Settings shared by every resource handler in the process.

    Fields
    ──────
    callback_delay_seconds      : Delay for propagation and transient-conflict suspends
    propagation_cycles          : Forced delays after a create before dependent stages run
    stabilization_max_attempts  : Suspends allowed while waiting for convergence
    stabilization_delay_seconds : Delay between convergence checks
    stabilization_exhausted     : Outcome once the stabilization bound is reached
    log_level / json_logs       : Structlog configuration
    aws_region / endpoint_url   : boto3 client options
    max_client_attempts         : botocore retry attempts per remote call
    """

    model_config = SettingsConfigDict(
        env_prefix="OUTPOST_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Convergence ──────────────────────────────────────────────
    callback_delay_seconds: int = Field(default=20, gt=0)
    propagation_cycles: int = Field(default=4, ge=0)
    stabilization_max_attempts: int = Field(default=10, ge=0)
    stabilization_delay_seconds: int = Field(default=15, gt=0)
    stabilization_exhausted: ExhaustionAction = ExhaustionAction.SUCCEED

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── AWS client ───────────────────────────────────────────────
    aws_region: str | None = None
    endpoint_url: str | None = None
    max_client_attempts: int = Field(default=3, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Return the process-wide settings (read once from the environment)."""
    return EngineSettings()


__all__ = ["EngineSettings", "ExhaustionAction", "get_settings"]
