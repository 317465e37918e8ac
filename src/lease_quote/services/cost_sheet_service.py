"""Cost sheet service: calculation and review against the store."""

from collections.abc import Mapping
from uuid import UUID

from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.errors import NotFoundError, QuoteError, StaleStateError
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.cost_sheet import (
    CostAssumptions,
    CostComponents,
    CostSheet,
    CostSheetStatus,
    CostSheetSummary,
    FleetVehicle,
)
from ..models.quote import Quote
from .cost_sheet import (
    CostSheetEngine,
    CostSheetWorkflow,
    components_for_quote,
    default_assumptions,
    on_lines_changed,
)
from .performance_monitor import performance_monitor
from .quote_lifecycle import ensure_editable
from .store import QuoteStore

logger = get_logger(__name__)

# Compare-and-set retries when another writer moves a sheet under us
_CAS_ATTEMPTS = 3


def _quote_not_found(quote_id: UUID) -> NotFoundError:
    return NotFoundError(
        message="Quote not found", resource="quote", resource_id=str(quote_id)
    )


@beartype
async def sync_obsolescence(
    store: QuoteStore, quote: Quote
) -> Result[CostSheet | None, QuoteError]:
    """Persist the obsolete flip of the quote's current cost sheet, if due.

    Returns the quote's current sheet once the stored state agrees with the
    quote's vehicle lines.
    """
    for _ in range(_CAS_ATTEMPTS):
        sheet = await store.get_current_cost_sheet(quote.id)
        flipped = on_lines_changed(quote, sheet)
        if sheet is None or flipped is None:
            return Ok(sheet)
        stored = await store.update_cost_sheet(flipped, sheet.status)
        if stored.is_ok():
            logger.info(
                "Cost sheet v%d of quote %s is obsolete; vehicle lines changed",
                sheet.version,
                quote.id,
            )
            return Ok(await store.get_current_cost_sheet(quote.id))
    return Err(
        StaleStateError(
            message="Cost sheet kept changing while marking it obsolete; retry",
            field="status",
            expected_status=CostSheetStatus.OBSOLETE.value,
            actual_status="changing",
        )
    )


class CostSheetService:
    """Calculates cost sheets and moves them through review."""

    def __init__(self, store: QuoteStore, settings: Settings | None = None) -> None:
        """Initialize cost sheet service."""
        self._store = store
        self._settings = settings or get_settings()

    async def _load(
        self, quote_id: UUID
    ) -> Result[tuple[Quote, CostSheet | None], QuoteError]:
        quote = await self._store.get_quote(quote_id)
        if quote is None:
            return Err(_quote_not_found(quote_id))
        current = await sync_obsolescence(self._store, quote)
        if current.is_err():
            return current
        return Ok((quote, current.unwrap()))

    def _log_margins(self, sheet: CostSheet) -> CostSheetSummary:
        summary = CostSheetEngine.summarize(sheet, self._settings)
        if summary.blocking_line_nos:
            logger.warning(
                "Cost sheet v%d of quote %s: lines %s below the %s%% margin gate",
                sheet.version,
                sheet.quote_id,
                summary.blocking_line_nos,
                self._settings.margin_block_percent,
            )
        # blocking lines are also warnings; report them once
        warned = [n for n in summary.warning_line_nos if n not in summary.blocking_line_nos]
        if warned:
            logger.warning(
                "Cost sheet v%d of quote %s: lines %s below %s%% margin",
                sheet.version,
                sheet.quote_id,
                warned,
                self._settings.margin_warning_percent,
            )
        return summary

    @performance_monitor("cost_sheet_calculation")
    @beartype
    async def calculate(
        self,
        quote_id: UUID,
        assumptions: CostAssumptions | None = None,
        components: Mapping[int, CostComponents] | None = None,
        vehicles: Mapping[str, FleetVehicle] | None = None,
        notes_assumptions: str | None = None,
    ) -> Result[CostSheet, QuoteError]:
        """Calculate the quote's cost sheet.

        A draft sheet is recalculated in place. When the latest sheet is
        rejected or obsolete, or there is none, a new version is created.
        A sheet under review or approved is left alone: change the vehicle
        lines or reject it first.

        Args:
            quote_id: Quote to cost
            assumptions: Sheet assumptions, defaults derived from the quote
            components: Cost inputs keyed by line number; missing lines get
                defaults estimated from ``vehicles`` and settings
            vehicles: Fleet vehicles keyed by vehicle id
            notes_assumptions: Free-text notes stored on a new sheet

        Returns:
            Result containing the stored sheet or the error that stopped it
        """
        loaded = await self._load(quote_id)
        if loaded.is_err():
            return loaded
        quote, _ = loaded.unwrap()
        editable = ensure_editable(quote)
        if editable.is_err():
            return editable

        inputs = components_for_quote(quote, components, vehicles, self._settings)
        latest = await self._store.get_latest_cost_sheet(quote.id)

        if latest is not None and latest.status == CostSheetStatus.DRAFT:
            recalculated = CostSheetWorkflow.recalculate(
                latest, quote, inputs, assumptions, self._settings
            )
            if recalculated.is_err():
                return recalculated
            stored = await self._store.update_cost_sheet(
                recalculated.unwrap(), CostSheetStatus.DRAFT
            )
        elif latest is not None and latest.status in (
            CostSheetStatus.PENDING_APPROVAL,
            CostSheetStatus.APPROVED,
        ):
            logger.warning(
                "Refusing to recalculate %s cost sheet v%d of quote %s",
                latest.status.value,
                latest.version,
                quote.id,
            )
            return Err(
                StaleStateError(
                    message=(
                        f"Cost sheet v{latest.version} is {latest.status.value}; "
                        "reject it or change the vehicle lines before recalculating"
                    ),
                    field="status",
                    expected_status="draft|rejected|obsolete",
                    actual_status=latest.status.value,
                )
            )
        else:
            version = await self._store.next_cost_sheet_version(quote.id)
            created = CostSheetEngine.new_cost_sheet(
                quote,
                assumptions or default_assumptions(quote, self._settings),
                inputs,
                version,
                notes_assumptions,
                self._settings,
            )
            if created.is_err():
                return created
            stored = await self._store.insert_cost_sheet(created.unwrap())

        if stored.is_ok():
            sheet = stored.unwrap()
            logger.info(
                "Calculated cost sheet v%d for quote %s", sheet.version, quote.id
            )
            self._log_margins(sheet)
        return stored

    async def _reviewable(
        self, sheet_id: UUID
    ) -> Result[tuple[Quote, CostSheet], QuoteError]:
        sheet = await self._store.get_cost_sheet(sheet_id)
        if sheet is None:
            return Err(
                NotFoundError(
                    message="Cost sheet not found",
                    resource="cost_sheet",
                    resource_id=str(sheet_id),
                )
            )
        loaded = await self._load(sheet.quote_id)
        if loaded.is_err():
            return loaded
        quote, _ = loaded.unwrap()
        # re-read: the obsolescence check may just have flipped this sheet
        fresh = await self._store.get_cost_sheet(sheet_id)
        return Ok((quote, fresh if fresh is not None else sheet))

    @beartype
    async def submit(
        self, sheet_id: UUID, submitted_by: str
    ) -> Result[CostSheet, QuoteError]:
        """Send a draft sheet for approval through the margin gate."""
        loaded = await self._reviewable(sheet_id)
        if loaded.is_err():
            return loaded
        quote, sheet = loaded.unwrap()
        submitted = CostSheetWorkflow.submit(
            sheet, quote, submitted_by, self._settings
        )
        if submitted.is_err():
            logger.warning(
                "Cost sheet v%d of quote %s not submitted: %s",
                sheet.version,
                quote.id,
                submitted.unwrap_err().message,
            )
            return submitted
        stored = await self._store.update_cost_sheet(
            submitted.unwrap(), CostSheetStatus.DRAFT
        )
        if stored.is_ok():
            logger.info(
                "Cost sheet v%d of quote %s submitted by %s",
                sheet.version,
                quote.id,
                submitted_by,
            )
        return stored

    @beartype
    async def approve(
        self, sheet_id: UUID, approved_by: str, notes: str | None = None
    ) -> Result[CostSheet, QuoteError]:
        """Approve a sheet awaiting approval."""
        loaded = await self._reviewable(sheet_id)
        if loaded.is_err():
            return loaded
        quote, sheet = loaded.unwrap()
        approved = CostSheetWorkflow.approve(sheet, approved_by, notes)
        if approved.is_err():
            return approved
        stored = await self._store.update_cost_sheet(
            approved.unwrap(), CostSheetStatus.PENDING_APPROVAL
        )
        if stored.is_ok():
            logger.info(
                "Cost sheet v%d of quote %s approved by %s",
                sheet.version,
                quote.id,
                approved_by,
            )
        return stored

    @beartype
    async def reject(
        self, sheet_id: UUID, rejected_by: str, reason: str
    ) -> Result[CostSheet, QuoteError]:
        """Reject a sheet awaiting approval, recording why."""
        loaded = await self._reviewable(sheet_id)
        if loaded.is_err():
            return loaded
        quote, sheet = loaded.unwrap()
        rejected = CostSheetWorkflow.reject(sheet, rejected_by, reason)
        if rejected.is_err():
            return rejected
        stored = await self._store.update_cost_sheet(
            rejected.unwrap(), CostSheetStatus.PENDING_APPROVAL
        )
        if stored.is_ok():
            logger.info(
                "Cost sheet v%d of quote %s rejected by %s",
                sheet.version,
                quote.id,
                rejected_by,
            )
        return stored

    @beartype
    async def summary(self, sheet_id: UUID) -> Result[CostSheetSummary, QuoteError]:
        """Totals and margin flags of a stored sheet, priced at the live quote rates."""
        loaded = await self._reviewable(sheet_id)
        if loaded.is_err():
            return loaded
        quote, sheet = loaded.unwrap()
        refreshed = CostSheetEngine.refresh_quoted_rates(sheet, quote, self._settings)
        return Ok(CostSheetEngine.summarize(refreshed, self._settings))
