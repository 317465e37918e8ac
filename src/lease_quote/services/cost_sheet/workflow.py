"""Cost sheet approval workflow.

draft -> pending_approval -> approved | rejected, with obsolete reachable
from every state except rejected. Transitions are pure: each returns the
updated sheet, and the store applies it only if the stored status still
matches the status the transition started from.
"""

from collections.abc import Mapping
from datetime import datetime, timezone

from beartype import beartype

from ...core.config import Settings, get_settings
from ...core.errors import (
    MarginGateError,
    MarginLineBreach,
    QuoteError,
    StaleStateError,
    ValidationError,
)
from ...core.result_types import Err, Ok, Result
from ...models.cost_sheet import (
    CostAssumptions,
    CostComponents,
    CostSheet,
    CostSheetStatus,
)
from ...models.quote import Quote
from .engine import CostSheetEngine

# Statuses each transition may start from
SUBMITTABLE: frozenset[CostSheetStatus] = frozenset({CostSheetStatus.DRAFT})
REVIEWABLE: frozenset[CostSheetStatus] = frozenset({CostSheetStatus.PENDING_APPROVAL})
OBSOLESCIBLE: frozenset[CostSheetStatus] = frozenset(
    {
        CostSheetStatus.DRAFT,
        CostSheetStatus.PENDING_APPROVAL,
        CostSheetStatus.APPROVED,
    }
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _stale(
    sheet: CostSheet, expected: CostSheetStatus, action: str
) -> StaleStateError:
    return StaleStateError(
        message=(
            f"Cannot {action} cost sheet v{sheet.version}: "
            f"status is {sheet.status.value}, expected {expected.value}"
        ),
        field="status",
        expected_status=expected.value,
        actual_status=sheet.status.value,
    )


class CostSheetWorkflow:
    """State transitions of a cost sheet."""

    @beartype
    @staticmethod
    def submit(
        sheet: CostSheet,
        quote: Quote,
        submitted_by: str,
        settings: Settings | None = None,
        now: datetime | None = None,
    ) -> Result[CostSheet, QuoteError]:
        """Send a draft sheet for approval.

        Quoted rates are refreshed from the live quote first, so the gate
        always judges the rates the customer will actually see.

        Args:
            sheet: Draft cost sheet
            quote: Quote the sheet belongs to, as currently stored
            submitted_by: Identity of the submitter
            settings: Source of the blocking margin threshold
            now: Submission time, defaults to the current UTC time

        Returns:
            Result containing the pending sheet, a MarginGateError when any
            line margin is under the blocking threshold, or a
            StaleStateError when the sheet is not a draft
        """
        settings = settings or get_settings()
        if sheet.status not in SUBMITTABLE:
            return Err(_stale(sheet, CostSheetStatus.DRAFT, "submit"))

        refreshed = CostSheetEngine.refresh_quoted_rates(sheet, quote, settings)
        threshold = settings.margin_block_percent
        breaches = [
            MarginLineBreach(line_no=ln.line_no, margin_percent=ln.actual_margin_percent)
            for ln in refreshed.lines
            if ln.is_below(threshold)
        ]
        if breaches:
            return Err(
                MarginGateError(
                    message=(
                        f"{len(breaches)} line(s) below the {threshold}% margin "
                        "gate; adjust costs or rates before submitting"
                    ),
                    field="actual_margin_percent",
                    line_no=breaches[0].line_no,
                    threshold_percent=threshold,
                    breaches=breaches,
                )
            )

        return Ok(
            refreshed.model_copy(
                update={
                    "status": CostSheetStatus.PENDING_APPROVAL,
                    "submitted_by": submitted_by,
                    "submitted_at": now or _now(),
                }
            )
        )

    @beartype
    @staticmethod
    def approve(
        sheet: CostSheet,
        approved_by: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Result[CostSheet, QuoteError]:
        """Approve a sheet awaiting approval."""
        if sheet.status not in REVIEWABLE:
            return Err(_stale(sheet, CostSheetStatus.PENDING_APPROVAL, "approve"))
        return Ok(
            sheet.model_copy(
                update={
                    "status": CostSheetStatus.APPROVED,
                    "approved_by": approved_by,
                    "approved_at": now or _now(),
                    "approval_notes": notes,
                }
            )
        )

    @beartype
    @staticmethod
    def reject(
        sheet: CostSheet,
        rejected_by: str,
        reason: str,
        now: datetime | None = None,
    ) -> Result[CostSheet, QuoteError]:
        """Reject a sheet awaiting approval; a reason is required."""
        if not reason.strip():
            return Err(
                ValidationError(
                    message="A rejection reason is required",
                    field="rejection_reason",
                )
            )
        if sheet.status not in REVIEWABLE:
            return Err(_stale(sheet, CostSheetStatus.PENDING_APPROVAL, "reject"))
        return Ok(
            sheet.model_copy(
                update={
                    "status": CostSheetStatus.REJECTED,
                    "rejected_by": rejected_by,
                    "rejected_at": now or _now(),
                    "rejection_reason": reason.strip(),
                }
            )
        )

    @beartype
    @staticmethod
    def recalculate(
        sheet: CostSheet,
        quote: Quote,
        components: Mapping[int, CostComponents],
        assumptions: CostAssumptions | None = None,
        settings: Settings | None = None,
    ) -> Result[CostSheet, QuoteError]:
        """Recompute a draft sheet in place, keeping its version."""
        if sheet.status not in SUBMITTABLE:
            return Err(_stale(sheet, CostSheetStatus.DRAFT, "recalculate"))
        assumptions = assumptions or sheet.assumptions
        lines = CostSheetEngine.calculate_lines(quote, assumptions, components, settings)
        if lines.is_err():
            return lines
        return Ok(
            sheet.model_copy(
                update={
                    "assumptions": assumptions,
                    "lines": lines.unwrap(),
                    "source_lines": CostSheetEngine.snapshot_lines(quote),
                }
            )
        )

    @beartype
    @staticmethod
    def mark_obsolete(
        sheet: CostSheet, now: datetime | None = None
    ) -> Result[CostSheet, QuoteError]:
        """System-only transition once the sheet no longer matches its quote."""
        if sheet.status not in OBSOLESCIBLE:
            return Err(
                StaleStateError(
                    message=(
                        f"Cost sheet v{sheet.version} is {sheet.status.value} "
                        "and cannot become obsolete"
                    ),
                    field="status",
                    expected_status="draft|pending_approval|approved",
                    actual_status=sheet.status.value,
                )
            )
        return Ok(
            sheet.model_copy(
                update={
                    "status": CostSheetStatus.OBSOLETE,
                    "obsoleted_at": now or _now(),
                }
            )
        )


@beartype
def corporate_lease_gate(
    quote: Quote, sheet: CostSheet | None
) -> Result[Quote, ValidationError]:
    """A corporate lease needs an approved, current cost sheet for approval."""
    if not quote.is_corporate_lease:
        return Ok(quote)
    if sheet is None or sheet.quote_id != quote.id:
        return Err(
            ValidationError(
                message="Corporate lease quotes need an approved cost sheet",
                field="cost_sheet",
            )
        )
    if sheet.status != CostSheetStatus.APPROVED:
        return Err(
            ValidationError(
                message=(
                    f"Cost sheet v{sheet.version} is {sheet.status.value}; "
                    "an approved cost sheet is required"
                ),
                field="cost_sheet",
            )
        )
    return Ok(quote)

