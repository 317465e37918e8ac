"""Store boundary for quotes and cost sheets.

The quote core never touches persistence directly. Services talk to a
``QuoteStore``; ``InMemoryQuoteStore`` is the reference implementation and
the one the test-suite runs against. Cost sheet status changes are applied
with compare-and-set on the status the caller read, so two reviewers
acting on the same sheet cannot both succeed.
"""

import asyncio
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable
from uuid import UUID

from beartype import beartype

from ..core.errors import NotFoundError, QuoteError, StaleStateError
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.cost_sheet import CostSheet, CostSheetStatus
from ..models.quote import Quote

logger = get_logger(__name__)


@runtime_checkable
class QuoteStore(Protocol):
    """Read/write contract the services depend on."""

    async def get_quote(self, quote_id: UUID) -> Quote | None:
        """Fetch a quote with its vehicle lines."""
        ...

    async def save_quote(self, quote: Quote) -> Quote:
        """Upsert a quote, stamping its timestamps."""
        ...

    async def get_cost_sheet(self, sheet_id: UUID) -> CostSheet | None:
        """Fetch one cost sheet by id."""
        ...

    async def get_latest_cost_sheet(self, quote_id: UUID) -> CostSheet | None:
        """Highest version for the quote, whatever its status."""
        ...

    async def get_current_cost_sheet(self, quote_id: UUID) -> CostSheet | None:
        """Highest non-obsolete version for the quote."""
        ...

    async def next_cost_sheet_version(self, quote_id: UUID) -> int:
        """Version number the next cost sheet for the quote gets."""
        ...

    async def insert_cost_sheet(
        self, sheet: CostSheet
    ) -> Result[CostSheet, QuoteError]:
        """Insert a new cost sheet version."""
        ...

    async def update_cost_sheet(
        self, sheet: CostSheet, expected_status: CostSheetStatus
    ) -> Result[CostSheet, QuoteError]:
        """Replace a cost sheet only if its stored status is ``expected_status``."""
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryQuoteStore:
    """Dictionary-backed ``QuoteStore`` guarded by an asyncio lock."""

    def __init__(self) -> None:
        """Initialize empty store."""
        self._quotes: dict[UUID, Quote] = {}
        self._cost_sheets: dict[UUID, CostSheet] = {}
        self._lock = asyncio.Lock()

    @beartype
    async def get_quote(self, quote_id: UUID) -> Quote | None:
        """Fetch a quote with its vehicle lines."""
        return self._quotes.get(quote_id)

    @beartype
    async def save_quote(self, quote: Quote) -> Quote:
        """Upsert a quote, stamping its timestamps."""
        async with self._lock:
            now = _now()
            existing = self._quotes.get(quote.id)
            created_at = existing.created_at if existing else now
            stored = quote.model_copy(
                update={"created_at": created_at or now, "updated_at": now}
            )
            self._quotes[quote.id] = stored
            return stored

    @beartype
    async def get_cost_sheet(self, sheet_id: UUID) -> CostSheet | None:
        """Fetch one cost sheet by id."""
        return self._cost_sheets.get(sheet_id)

    def _sheets_for(self, quote_id: UUID) -> list[CostSheet]:
        return sorted(
            (s for s in self._cost_sheets.values() if s.quote_id == quote_id),
            key=lambda s: s.version,
        )

    @beartype
    async def get_latest_cost_sheet(self, quote_id: UUID) -> CostSheet | None:
        """Highest version for the quote, whatever its status."""
        sheets = self._sheets_for(quote_id)
        return sheets[-1] if sheets else None

    @beartype
    async def get_current_cost_sheet(self, quote_id: UUID) -> CostSheet | None:
        """Highest non-obsolete version for the quote."""
        current = [
            s for s in self._sheets_for(quote_id) if s.status != CostSheetStatus.OBSOLETE
        ]
        return current[-1] if current else None

    @beartype
    async def next_cost_sheet_version(self, quote_id: UUID) -> int:
        """Version number the next cost sheet for the quote gets."""
        sheets = self._sheets_for(quote_id)
        return sheets[-1].version + 1 if sheets else 1

    @beartype
    async def insert_cost_sheet(
        self, sheet: CostSheet
    ) -> Result[CostSheet, QuoteError]:
        """Insert a new cost sheet version; versions are unique per quote."""
        async with self._lock:
            if sheet.id in self._cost_sheets or any(
                s.version == sheet.version for s in self._sheets_for(sheet.quote_id)
            ):
                logger.warning(
                    "Cost sheet v%d for quote %s already exists",
                    sheet.version,
                    sheet.quote_id,
                )
                return Err(
                    StaleStateError(
                        message=(
                            f"Cost sheet version {sheet.version} already exists; "
                            "refetch and retry"
                        ),
                        field="version",
                        expected_status="absent",
                        actual_status="exists",
                    )
                )
            now = _now()
            stored = sheet.model_copy(update={"created_at": now, "updated_at": now})
            self._cost_sheets[sheet.id] = stored
            return Ok(stored)

    @beartype
    async def update_cost_sheet(
        self, sheet: CostSheet, expected_status: CostSheetStatus
    ) -> Result[CostSheet, QuoteError]:
        """Replace a cost sheet only if its stored status is ``expected_status``."""
        async with self._lock:
            existing = self._cost_sheets.get(sheet.id)
            if existing is None:
                return Err(
                    NotFoundError(
                        message="Cost sheet not found",
                        resource="cost_sheet",
                        resource_id=str(sheet.id),
                    )
                )
            if existing.status != expected_status:
                logger.warning(
                    "Stale cost sheet update on %s: expected %s, found %s",
                    sheet.id,
                    expected_status.value,
                    existing.status.value,
                )
                return Err(
                    StaleStateError(
                        message=(
                            f"Cost sheet is {existing.status.value}, "
                            f"expected {expected_status.value}; refetch and retry"
                        ),
                        field="status",
                        expected_status=expected_status.value,
                        actual_status=existing.status.value,
                    )
                )
            stored = sheet.model_copy(
                update={"created_at": existing.created_at, "updated_at": _now()}
            )
            self._cost_sheets[sheet.id] = stored
            return Ok(stored)
