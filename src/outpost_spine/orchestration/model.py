"""Base class for resource attribute models.

Models are pydantic ``BaseModel`` subclasses whose wire keys are PascalCase
(``BucketName``, ``OutpostId``) while Python code uses snake_case field
names.  The engine only needs one thing from a model: which field holds the
resource's primary identity.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal


class AttributeModel(BaseModel):
    """Nested attribute group with PascalCase wire keys."""

    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        extra="ignore",
    )


class ResourceModel(AttributeModel):
    """Attribute bag for one resource."""

    identity_field: ClassVar[str] = "arn"

    @property
    def identity(self) -> str | None:
        return getattr(self, self.identity_field, None)

    def with_identity(self, identity: str | None) -> ResourceModel:
        return self.model_copy(update={self.identity_field: identity})

    def to_payload(self) -> dict[str, Any]:
        """PascalCase dict without unset attributes."""
        return self.model_dump(by_alias=True, exclude_none=True)


def merge_models(base: ResourceModel, fresh: ResourceModel | None) -> ResourceModel:
    """Overlay attributes read from the backend onto a locally built model.

    Attributes the fresh model leaves unset keep their local value.
    """
    if fresh is None:
        return base
    merged = base.model_dump()
    merged.update(fresh.model_dump(exclude_none=True))
    return type(base).model_validate(merged)


__all__ = ["AttributeModel", "ResourceModel", "merge_models"]
