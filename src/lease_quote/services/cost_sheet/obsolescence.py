"""Detect cost sheets that no longer match their quote's vehicle lines.

A cost sheet certifies the line data it was computed from. Adding or
removing a line, or changing a line's vehicle, dates, rate or rate type,
makes the sheet obsolete. Header edits (notes, payment terms, ...) never do.
"""

from datetime import datetime

from beartype import beartype

from ...models.cost_sheet import CostSheet
from ...models.quote import Quote
from .engine import CostSheetEngine
from .workflow import CostSheetWorkflow


@beartype
def lines_changed(quote: Quote, sheet: CostSheet) -> bool:
    """Check if the quote's cost-relevant line data differs from the sheet's snapshot."""
    return CostSheetEngine.snapshot_lines(quote) != list(sheet.source_lines)


@beartype
def on_lines_changed(
    quote: Quote, sheet: CostSheet | None, now: datetime | None = None
) -> CostSheet | None:
    """Return the sheet flipped to obsolete, or ``None`` when nothing changes.

    Rejected and already-obsolete sheets are left alone.
    """
    if sheet is None or not sheet.is_current:
        return None
    if sheet.quote_id != quote.id or not lines_changed(quote, sheet):
        return None
    result = CostSheetWorkflow.mark_obsolete(sheet, now)
    return result.unwrap() if result.is_ok() else None
