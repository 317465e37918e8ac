"""Quote status lifecycle.

draft -> submitted -> pending_approval -> approved -> won | lost

Once approved (and after won/lost) a quote is frozen; further changes go
into a new revision that supersedes it.
"""

from typing import Final
from uuid import uuid4

from beartype import beartype

from ..core.errors import InvariantViolation, QuoteError, StaleStateError
from ..core.result_types import Err, Ok, Result
from ..models.cost_sheet import CostSheet
from ..models.quote import LOCKED_STATUSES, Quote, QuoteStatus
from .cost_sheet.workflow import corporate_lease_gate
from .quote_validator import to_validation_errors, validate

QUOTE_TRANSITIONS: Final[dict[QuoteStatus, frozenset[QuoteStatus]]] = {
    QuoteStatus.DRAFT: frozenset({QuoteStatus.SUBMITTED}),
    QuoteStatus.SUBMITTED: frozenset({QuoteStatus.PENDING_APPROVAL}),
    QuoteStatus.PENDING_APPROVAL: frozenset({QuoteStatus.APPROVED}),
    QuoteStatus.APPROVED: frozenset({QuoteStatus.WON, QuoteStatus.LOST}),
    QuoteStatus.WON: frozenset(),
    QuoteStatus.LOST: frozenset(),
}


def _transition(
    quote: Quote, target: QuoteStatus, expected: QuoteStatus
) -> Result[Quote, QuoteError]:
    if target not in QUOTE_TRANSITIONS[quote.status]:
        return Err(
            StaleStateError(
                message=(
                    f"Cannot move quote from {quote.status.value} "
                    f"to {target.value}"
                ),
                field="status",
                expected_status=expected.value,
                actual_status=quote.status.value,
            )
        )
    return Ok(quote.model_copy(update={"status": target}))


@beartype
def ensure_editable(quote: Quote) -> Result[Quote, QuoteError]:
    """Approved, won and lost quotes are read-only."""
    if quote.status in LOCKED_STATUSES:
        return Err(
            InvariantViolation(
                message=(
                    f"Quote is {quote.status.value}; create a revision to change it"
                ),
                field="status",
            )
        )
    return Ok(quote)


@beartype
def apply_edit(stored: Quote, updated: Quote) -> Result[Quote, QuoteError]:
    """Accept an edited quote only if the stored one may still change.

    Status moves only through the lifecycle functions, never through an edit.
    """
    editable = ensure_editable(stored)
    if editable.is_err():
        return editable
    if updated.id != stored.id:
        return Err(InvariantViolation(message="Quote id cannot change", field="id"))
    if updated.status != stored.status:
        return Err(
            InvariantViolation(
                message="Status changes go through the quote lifecycle",
                field="status",
            )
        )
    return Ok(updated)


@beartype
def submit(quote: Quote) -> Result[Quote, QuoteError | list[QuoteError]]:
    """Submit a complete draft."""
    errors = validate("summary", quote.model_dump())
    if errors:
        return Err(to_validation_errors("summary", errors))
    return _transition(quote, QuoteStatus.SUBMITTED, QuoteStatus.DRAFT)


@beartype
def submit_for_approval(
    quote: Quote, cost_sheet: CostSheet | None
) -> Result[Quote, QuoteError]:
    """Send a submitted quote for approval.

    A corporate lease needs an approved, non-obsolete cost sheet first.
    """
    if quote.status == QuoteStatus.SUBMITTED:
        gate = corporate_lease_gate(quote, cost_sheet)
        if gate.is_err():
            return gate
    return _transition(quote, QuoteStatus.PENDING_APPROVAL, QuoteStatus.SUBMITTED)


@beartype
def approve(quote: Quote, cost_sheet: CostSheet | None) -> Result[Quote, QuoteError]:
    """Approve a quote awaiting approval; the cost sheet gate is re-checked."""
    if quote.status == QuoteStatus.PENDING_APPROVAL:
        gate = corporate_lease_gate(quote, cost_sheet)
        if gate.is_err():
            return gate
    return _transition(quote, QuoteStatus.APPROVED, QuoteStatus.PENDING_APPROVAL)


def _close(
    quote: Quote, target: QuoteStatus, reason: str
) -> Result[Quote, QuoteError]:
    if not reason.strip():
        return Err(
            InvariantViolation(
                message="Win/Loss reason is required for this status",
                field="win_loss_reason",
            )
        )
    moved = _transition(quote, target, QuoteStatus.APPROVED)
    if moved.is_err():
        return moved
    return Ok(moved.unwrap().model_copy(update={"win_loss_reason": reason.strip()}))


@beartype
def mark_won(quote: Quote, reason: str) -> Result[Quote, QuoteError]:
    """Close an approved quote as won."""
    return _close(quote, QuoteStatus.WON, reason)


@beartype
def mark_lost(quote: Quote, reason: str) -> Result[Quote, QuoteError]:
    """Close an approved quote as lost."""
    return _close(quote, QuoteStatus.LOST, reason)


@beartype
def revise(quote: Quote) -> Quote:
    """New draft version superseding ``quote``; the original is untouched."""
    return quote.model_copy(
        update={
            "id": uuid4(),
            "version": quote.version + 1,
            "parent_quote_id": quote.id,
            "status": QuoteStatus.DRAFT,
            "win_loss_reason": None,
            "created_at": None,
            "updated_at": None,
        }
    )
