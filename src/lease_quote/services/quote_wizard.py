"""Multi-step quote wizard as a reducer over an immutable draft.

Every action returns a new ``WizardHistory``; nothing is mutated in place.
Edits to the draft are undoable, navigation is not. The draft is plain
data (what the UI collects) and only becomes a ``Quote`` through
``build_quote``, which is where the record schemas are enforced.
"""

import copy
from typing import Any, Final, Literal

from beartype import beartype
from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from ..core.config import Settings, get_settings
from ..core.errors import ValidationError, from_pydantic_error
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.base import BaseModelConfig
from ..models.quote import OVERRIDABLE_LINE_FIELDS, Quote
from .quote_validator import (
    STEP_ORDER,
    WIZARD_STEPS,
    is_step_complete,
    to_validation_errors,
    validate,
)

logger = get_logger(__name__)

MAX_HISTORY: Final = 100


class WizardState(BaseModelConfig):
    """Current state of the quote wizard."""

    current_step: str = "header"
    data: dict[str, Any] = Field(default_factory=dict)
    errors: dict[str, dict[str, str]] = Field(
        default_factory=dict, description="Validation errors keyed by step"
    )
    completed_steps: tuple[str, ...] = ()


class WizardHistory(BaseModelConfig):
    """Undo/redo stacks around the present wizard state."""

    past: tuple[WizardState, ...] = ()
    present: WizardState = Field(default_factory=WizardState)
    future: tuple[WizardState, ...] = ()

    @property
    def can_undo(self) -> bool:
        """Check if there is an edit to undo."""
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        """Check if there is an undone edit to redo."""
        return bool(self.future)


class UpdateFields(BaseModelConfig):
    """Merge header fields into the draft."""

    type: Literal["update_fields"] = "update_fields"
    fields: dict[str, Any]


class AddLine(BaseModelConfig):
    """Append a vehicle line seeded from the header defaults."""

    type: Literal["add_line"] = "add_line"
    values: dict[str, Any] = Field(default_factory=dict)


class UpdateLine(BaseModelConfig):
    """Merge fields into one vehicle line."""

    type: Literal["update_line"] = "update_line"
    line_no: int = Field(..., ge=1)
    fields: dict[str, Any]


class RemoveLine(BaseModelConfig):
    """Remove a vehicle line and renumber the rest."""

    type: Literal["remove_line"] = "remove_line"
    line_no: int = Field(..., ge=1)


class ResetLineField(BaseModelConfig):
    """Drop a line override so the field inherits from the header again."""

    type: Literal["reset_line_field"] = "reset_line_field"
    line_no: int = Field(..., ge=1)
    field: str


class NextStep(BaseModelConfig):
    """Advance, only through a complete step."""

    type: Literal["next_step"] = "next_step"


class PreviousStep(BaseModelConfig):
    """Go back one step; always allowed."""

    type: Literal["previous_step"] = "previous_step"


class GoToStep(BaseModelConfig):
    """Jump to a step: backward freely, forward only over complete steps."""

    type: Literal["go_to_step"] = "go_to_step"
    step: str


class Undo(BaseModelConfig):
    """Restore the draft before the last edit."""

    type: Literal["undo"] = "undo"


class Redo(BaseModelConfig):
    """Re-apply the last undone edit."""

    type: Literal["redo"] = "redo"


WizardAction = (
    UpdateFields
    | AddLine
    | UpdateLine
    | RemoveLine
    | ResetLineField
    | NextStep
    | PreviousStep
    | GoToStep
    | Undo
    | Redo
)


@beartype
def initial_draft(settings: Settings | None = None) -> dict[str, Any]:
    """Header values a new quote starts from."""
    settings = settings or get_settings()
    return {
        "quote_type": "Corporate lease",
        "status": "draft",
        "currency": settings.default_currency,
        "vat_percentage": settings.default_vat_percentage,
        "billing_plan": "monthly",
        "proration_rule": "first-last",
        "deposit_type": "refundable",
        "invoice_consolidation": False,
        "mileage_pooling_enabled": False,
        "line_defaults": {
            "deposit_amount": settings.default_deposit_amount,
            "advance_rent_months": settings.default_advance_rent_months,
        },
        "quote_items": [],
        "initial_fees": [],
        "default_addons": [],
    }


@beartype
def start(
    data: dict[str, Any] | None = None, settings: Settings | None = None
) -> WizardHistory:
    """Open the wizard on a new draft, or on existing quote data."""
    draft = initial_draft(settings)
    draft.update(copy.deepcopy(data or {}))
    return WizardHistory(present=WizardState(data=draft))


def _lines(data: dict[str, Any]) -> list[dict[str, Any]]:
    return list(data.get("quote_items") or [])


def _find_line(data: dict[str, Any], line_no: int) -> int | None:
    for index, line in enumerate(_lines(data)):
        if line.get("line_no") == line_no:
            return index
    return None


def _missing_line(line_no: int) -> ValidationError:
    return ValidationError(
        message=f"Vehicle line {line_no} does not exist",
        field="line_no",
        line_no=line_no,
        step="vehicles",
    )


def _new_line(
    data: dict[str, Any], values: dict[str, Any], settings: Settings
) -> dict[str, Any]:
    """Seed a line from the header; overridable fields stay absent (inherited)."""
    defaults = data.get("line_defaults") or {}
    deposit = defaults.get("deposit_amount")
    advance = defaults.get("advance_rent_months")
    line: dict[str, Any] = {
        "line_no": len(_lines(data)) + 1,
        "vehicle_id": None,
        "vehicle_class_id": None,
        "pickup_at": data.get("billing_start_date"),
        "return_at": None,
        "monthly_rate": None,
        "rate_type": "monthly",
        "deposit_amount": (
            deposit if deposit is not None else settings.default_deposit_amount
        ),
        "deposit_type": data.get("deposit_type") or "refundable",
        "advance_rent_months": (
            advance if advance is not None else settings.default_advance_rent_months
        ),
        "addons": copy.deepcopy(data.get("default_addons") or []),
    }
    line.update(copy.deepcopy(values))
    line["line_no"] = len(_lines(data)) + 1
    return line


def _refresh_validation(state: WizardState) -> WizardState:
    """Re-check the steps already validated against the new draft."""
    errors = {step: validate(step, state.data) for step in state.errors}
    completed = tuple(
        step for step in state.completed_steps if is_step_complete(step, state.data)
    )
    return state.model_copy(
        update={
            "errors": {step: errs for step, errs in errors.items() if errs},
            "completed_steps": completed,
        }
    )


def _edit(history: WizardHistory, data: dict[str, Any]) -> WizardHistory:
    """Record an edit: push the present onto the undo stack, clear redo."""
    present = _refresh_validation(history.present.model_copy(update={"data": data}))
    past = (*history.past, history.present)[-MAX_HISTORY:]
    return WizardHistory(past=past, present=present, future=())


def _navigate(history: WizardHistory, state: WizardState) -> WizardHistory:
    return history.model_copy(update={"present": state})


def _with_step_errors(
    state: WizardState, step: str, errors: dict[str, str]
) -> WizardState:
    all_errors = {k: v for k, v in state.errors.items() if k != step}
    if errors:
        all_errors[step] = errors
    completed = tuple(s for s in state.completed_steps if s != step)
    if not errors:
        completed = (*completed, step)
    return state.model_copy(update={"errors": all_errors, "completed_steps": completed})


@beartype
def reduce(
    history: WizardHistory,
    action: WizardAction,
    settings: Settings | None = None,
) -> Result[WizardHistory, ValidationError]:
    """Apply one wizard action.

    Args:
        history: Current wizard history
        action: Action to apply
        settings: Source of the defaults seeded into new lines

    Returns:
        Result containing the new history, or an error for an action that
        refers to a missing line, a non-inheritable field or an unknown step.
        A blocked step advance is not an error: the new state carries the
        step's validation errors instead.
    """
    settings = settings or get_settings()
    state = history.present
    data = copy.deepcopy(state.data)

    if isinstance(action, UpdateFields):
        if "quote_items" in action.fields:
            return Err(
                ValidationError(
                    message="Vehicle lines are edited through line actions",
                    field="quote_items",
                )
            )
        data.update(copy.deepcopy(action.fields))
        return Ok(_edit(history, data))

    if isinstance(action, AddLine):
        lines = _lines(data)
        lines.append(_new_line(data, action.values, settings))
        data["quote_items"] = lines
        return Ok(_edit(history, data))

    if isinstance(action, UpdateLine):
        index = _find_line(data, action.line_no)
        if index is None:
            return Err(_missing_line(action.line_no))
        if "line_no" in action.fields:
            return Err(
                ValidationError(
                    message="Line numbers are assigned by the wizard",
                    field="line_no",
                    line_no=action.line_no,
                    step="vehicles",
                )
            )
        lines = _lines(data)
        lines[index] = {**lines[index], **copy.deepcopy(action.fields)}
        data["quote_items"] = lines
        return Ok(_edit(history, data))

    if isinstance(action, RemoveLine):
        index = _find_line(data, action.line_no)
        if index is None:
            return Err(_missing_line(action.line_no))
        lines = _lines(data)
        del lines[index]
        data["quote_items"] = [
            {**line, "line_no": position}
            for position, line in enumerate(lines, start=1)
        ]
        return Ok(_edit(history, data))

    if isinstance(action, ResetLineField):
        index = _find_line(data, action.line_no)
        if index is None:
            return Err(_missing_line(action.line_no))
        if action.field not in OVERRIDABLE_LINE_FIELDS:
            return Err(
                ValidationError(
                    message=(
                        f"Field '{action.field}' cannot be inherited "
                        "from the quote header"
                    ),
                    field=action.field,
                    line_no=action.line_no,
                    step="vehicles",
                )
            )
        lines = _lines(data)
        lines[index] = {k: v for k, v in lines[index].items() if k != action.field}
        data["quote_items"] = lines
        return Ok(_edit(history, data))

    if isinstance(action, NextStep):
        step = WIZARD_STEPS[state.current_step]
        errors = validate(step.step_id, state.data)
        state = _with_step_errors(state, step.step_id, errors)
        if not errors and step.next_step:
            state = state.model_copy(update={"current_step": step.next_step})
        return Ok(_navigate(history, state))

    if isinstance(action, PreviousStep):
        step = WIZARD_STEPS[state.current_step]
        if step.previous_step:
            state = state.model_copy(update={"current_step": step.previous_step})
        return Ok(_navigate(history, state))

    if isinstance(action, GoToStep):
        if action.step not in WIZARD_STEPS:
            return Err(
                ValidationError(
                    message=f"Unknown wizard step: {action.step}", field="step"
                )
            )
        target = STEP_ORDER.index(action.step)
        if target <= STEP_ORDER.index(state.current_step):
            return Ok(
                _navigate(history, state.model_copy(update={"current_step": action.step}))
            )
        for step_id in STEP_ORDER[:target]:
            errors = validate(step_id, state.data)
            state = _with_step_errors(state, step_id, errors)
            if errors:
                logger.debug("Wizard jump to %s blocked at %s", action.step, step_id)
                return Ok(
                    _navigate(
                        history, state.model_copy(update={"current_step": step_id})
                    )
                )
        return Ok(
            _navigate(history, state.model_copy(update={"current_step": action.step}))
        )

    if isinstance(action, Undo):
        if not history.past:
            return Ok(history)
        restored = history.past[-1].model_copy(
            update={"current_step": state.current_step}
        )
        return Ok(
            WizardHistory(
                past=history.past[:-1],
                present=_refresh_validation(restored),
                future=(state, *history.future),
            )
        )

    if isinstance(action, Redo):
        if not history.future:
            return Ok(history)
        restored = history.future[0].model_copy(
            update={"current_step": state.current_step}
        )
        return Ok(
            WizardHistory(
                past=(*history.past, state),
                present=_refresh_validation(restored),
                future=history.future[1:],
            )
        )

    return Err(ValidationError(message=f"Unsupported wizard action: {action!r}"))


@beartype
def build_quote(
    history_or_data: WizardHistory | dict[str, Any],
) -> Result[Quote, list[ValidationError]]:
    """Turn the wizard draft into a validated ``Quote``.

    Every step must validate first; the record schemas are then applied
    and any schema failure is reported per field and line.
    """
    data = (
        history_or_data.present.data
        if isinstance(history_or_data, WizardHistory)
        else history_or_data
    )
    errors = validate("summary", data)
    if errors:
        return Err(to_validation_errors("summary", errors))
    try:
        return Ok(Quote.model_validate(data))
    except PydanticValidationError as exc:
        return Err(from_pydantic_error(exc, step="summary"))
