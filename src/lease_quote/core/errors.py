"""Structured error values returned inside ``Err`` results.

Nothing in the quote core raises these. Each error carries its kind, the
field and/or line it refers to, and a human-readable message so callers
can route it back to the right place in the wizard.
"""

from decimal import Decimal
from typing import Any, ClassVar

from attrs import field, frozen
from pydantic import ValidationError as PydanticValidationError


@frozen(kw_only=True)
class QuoteError:
    """Base class for every error kind produced by the quote core."""

    kind: ClassVar[str] = "error"

    message: str
    field: str | None = None
    line_no: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "line_no": self.line_no,
        }


@frozen(kw_only=True)
class ValidationError(QuoteError):
    """Per-field, step-scoped validation failure; the user corrects and retries."""

    kind: ClassVar[str] = "validation"

    step: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {**super().to_dict(), "step": self.step}


@frozen(kw_only=True)
class InvariantViolation(ValidationError):
    """A record invariant is broken (negative deposit, return before pickup, ...).

    Never clamped: the offending value is reported back unchanged.
    """

    kind: ClassVar[str] = "invariant_violation"


@frozen(kw_only=True)
class MarginLineBreach:
    """One cost sheet line below the blocking margin."""

    line_no: int
    margin_percent: Decimal | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "line_no": self.line_no,
            "margin_percent": (
                str(self.margin_percent) if self.margin_percent is not None else None
            ),
        }


@frozen(kw_only=True)
class MarginGateError(QuoteError):
    """Cost sheet submission blocked by at least one line under the margin gate."""

    kind: ClassVar[str] = "margin_gate"

    threshold_percent: Decimal
    breaches: tuple[MarginLineBreach, ...] = field(default=(), converter=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            **super().to_dict(),
            "threshold_percent": str(self.threshold_percent),
            "breaches": [b.to_dict() for b in self.breaches],
        }


@frozen(kw_only=True)
class StaleStateError(QuoteError):
    """A transition was attempted against a status that is no longer current."""

    kind: ClassVar[str] = "stale_state"

    expected_status: str
    actual_status: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            **super().to_dict(),
            "expected_status": self.expected_status,
            "actual_status": self.actual_status,
        }


@frozen(kw_only=True)
class NotFoundError(QuoteError):
    """A record requested from the store does not exist."""

    kind: ClassVar[str] = "not_found"

    resource: str
    resource_id: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            **super().to_dict(),
            "resource": self.resource,
            "resource_id": self.resource_id,
        }


# pydantic error types that mean "value present but breaks an invariant"
_INVARIANT_ERROR_TYPES = frozenset(
    {
        "greater_than",
        "greater_than_equal",
        "less_than",
        "less_than_equal",
        "value_error",
    }
)


def from_pydantic_error(
    exc: PydanticValidationError, step: str | None = None
) -> list[ValidationError]:
    """Map a pydantic validation failure to structured errors.

    Errors inside ``quote_items[i]`` carry the 1-based line number; bound
    and model-rule failures become ``InvariantViolation``.
    """
    errors: list[ValidationError] = []
    for detail in exc.errors():
        loc = list(detail.get("loc", ()))
        line_no = None
        if len(loc) >= 2 and loc[0] == "quote_items" and isinstance(loc[1], int):
            line_no = loc[1] + 1
            loc = loc[2:]
        field_name = ".".join(str(part) for part in loc) or None
        message = str(detail.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        error_cls = (
            InvariantViolation
            if detail.get("type") in _INVARIANT_ERROR_TYPES
            else ValidationError
        )
        errors.append(
            error_cls(message=message, field=field_name, line_no=line_no, step=step)
        )
    return errors
