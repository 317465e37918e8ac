"""Per-field override values for vehicle lines.

A vehicle line either inherits a field from the quote header (and, below
that, from the system defaults) or carries its own value. The two cases are
kept apart explicitly so an override of ``0`` or ``False`` is never mistaken
for "not set".
"""

from typing import Any, Generic, Literal, TypeVar

from pydantic import Field

from .base import BaseModelConfig

T = TypeVar("T")


class Inherited(BaseModelConfig):
    """The line takes the header default, or the system default."""

    kind: Literal["inherited"] = "inherited"


class Overridden(BaseModelConfig, Generic[T]):
    """The line carries its own value for the field."""

    kind: Literal["overridden"] = "overridden"
    value: T = Field(..., description="Line-level value, kept even when falsy")


INHERITED = Inherited()


def coerce_override(value: Any) -> Any:
    """Normalize raw input into the ``Inherited | Overridden`` shape.

    ``None`` means inherit. Already-tagged values and ``{"kind": ...}``
    mappings pass through to pydantic untouched; any other raw value is an
    explicit override.
    """
    if value is None:
        return INHERITED
    if isinstance(value, (Inherited, Overridden)):
        return value
    if isinstance(value, dict) and "kind" in value:
        return value
    return {"kind": "overridden", "value": value}
