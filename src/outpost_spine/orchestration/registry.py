"""Resource Registry — type name to ResourceDefinition.

Manifesto:
    The handler entrypoint and the CLI receive a type name
(``"AWS::S3Outposts::Bucket"``) and nothing else.  The registry is the
single lookup table from that name to the pipelines that serve it.

ARCHITECTURE
────────────
::

    register_resource(definition_or_factory)   → stores in global dict
    get_resource(type_name)                    → ResourceDefinition or raises
    list_resources()                           → sorted type names
    clear_registry()                           → reset (for testing)

    Built-in resource families are loaded lazily on first lookup.

BEST PRACTICES
──────────────
- Call ``clear_registry()`` in test fixtures to avoid leaks.
- ``register_resource`` accepts a definition or a zero-arg factory, so it
  works as a decorator.

Tags:
    outpost-spine, orchestration, registry, discovery

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable

from outpost_spine.core.errors import ResourceNotRegisteredError
from outpost_spine.core.logging import get_logger
from outpost_spine.orchestration.orchestrator import ResourceDefinition

logger = get_logger(__name__)

_registry: dict[str, ResourceDefinition] = {}
_loaded: bool = False


def register_resource(
    definition_or_factory: ResourceDefinition | Callable[[], ResourceDefinition],
    *,
    replace: bool = False,
) -> ResourceDefinition:
    """
    Register a resource definition.

    Raises:
        ValueError: If the type name is already registered and ``replace`` is false
        TypeError: If the argument does not produce a ResourceDefinition

    Examples:
        register_resource(bucket.build_definition())

        @register_resource
        def my_resource():
            return ResourceDefinition(type_name="My::Type", ...)
    """
    if callable(definition_or_factory) and not isinstance(definition_or_factory, ResourceDefinition):
        definition = definition_or_factory()
    else:
        definition = definition_or_factory

    if not isinstance(definition, ResourceDefinition):
        raise TypeError(
            f"Expected ResourceDefinition, got {type(definition).__name__}. "
            "If using as decorator, the function must return a ResourceDefinition."
        )

    if definition.type_name in _registry and not replace:
        raise ValueError(f"Resource type '{definition.type_name}' is already registered")

    _registry[definition.type_name] = definition
    logger.debug(
        "resource_registered",
        type_name=definition.type_name,
        operations=[op.value for op in definition.operations],
    )
    return definition


def get_resource(type_name: str) -> ResourceDefinition:
    """Get a resource definition by type name."""
    _ensure_loaded()
    if type_name not in _registry:
        raise ResourceNotRegisteredError(type_name, list(_registry))
    return _registry[type_name]


def list_resources() -> list[str]:
    """Sorted list of registered type names."""
    _ensure_loaded()
    return sorted(_registry.keys())


def resource_exists(type_name: str) -> bool:
    _ensure_loaded()
    return type_name in _registry


def clear_registry() -> None:
    """Clear the registry; built-ins are reloaded on the next lookup."""
    global _loaded
    _registry.clear()
    _loaded = False
    logger.debug("resource_registry_cleared")


def _ensure_loaded() -> None:
    global _loaded
    if not _loaded:
        _loaded = True
        _load_builtin_resources()


def _load_builtin_resources() -> None:
    from outpost_spine.resources import BUILTIN_DEFINITIONS

    for factory in BUILTIN_DEFINITIONS:
        definition = factory()
        if definition.type_name not in _registry:
            register_resource(definition)


__all__ = [
    "register_resource",
    "get_resource",
    "list_resources",
    "resource_exists",
    "clear_registry",
]
