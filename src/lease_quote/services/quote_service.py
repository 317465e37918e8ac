"""Quote service: persistence, pricing and lifecycle against the store."""

from uuid import UUID

from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.errors import InvariantViolation, NotFoundError, QuoteError
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.quote import Quote, QuoteStatus
from . import quote_lifecycle
from .cost_sheet_service import sync_obsolescence
from .performance_monitor import performance_monitor
from .pricing import QuoteTotals, price_quote
from .store import QuoteStore

logger = get_logger(__name__)


class QuoteService:
    """Service for quote persistence, pricing and status changes."""

    def __init__(self, store: QuoteStore, settings: Settings | None = None) -> None:
        """Initialize quote service."""
        self._store = store
        self._settings = settings or get_settings()

    @beartype
    async def get_quote(self, quote_id: UUID) -> Result[Quote, QuoteError]:
        """Fetch a stored quote."""
        quote = await self._store.get_quote(quote_id)
        if quote is None:
            return Err(
                NotFoundError(
                    message="Quote not found", resource="quote", resource_id=str(quote_id)
                )
            )
        return Ok(quote)

    @beartype
    async def save_quote(self, quote: Quote) -> Result[Quote, QuoteError]:
        """Create or edit a quote.

        Editing a quote whose vehicle lines no longer match its current cost
        sheet makes that sheet obsolete in the same call.
        """
        existing = await self._store.get_quote(quote.id)
        if existing is not None:
            accepted = quote_lifecycle.apply_edit(existing, quote)
            if accepted.is_err():
                logger.warning(
                    "Rejected edit of quote %s: %s",
                    quote.id,
                    accepted.unwrap_err().message,
                )
                return accepted
        elif quote.status != QuoteStatus.DRAFT:
            return Err(
                InvariantViolation(
                    message="New quotes start as drafts", field="status"
                )
            )

        stored = await self._store.save_quote(quote)
        synced = await sync_obsolescence(self._store, stored)
        if synced.is_err():
            return synced
        logger.info(
            "%s quote %s (v%d)",
            "Updated" if existing is not None else "Created",
            stored.id,
            stored.version,
        )
        return Ok(stored)

    @performance_monitor("quote_pricing")
    @beartype
    async def price(self, quote_id: UUID) -> Result[QuoteTotals, QuoteError]:
        """Upfront, VAT and contract totals of a stored quote."""
        loaded = await self.get_quote(quote_id)
        if loaded.is_err():
            return loaded
        return Ok(price_quote(loaded.unwrap(), self._settings))

    async def _move(
        self, quote_id: UUID, action: str, moved: Result[Quote, QuoteError]
    ) -> Result[Quote, QuoteError]:
        if moved.is_err():
            error = moved.unwrap_err()
            message = (
                "; ".join(e.message for e in error)
                if isinstance(error, list)
                else error.message
            )
            logger.warning("Cannot %s quote %s: %s", action, quote_id, message)
            return moved
        stored = await self._store.save_quote(moved.unwrap())
        logger.info("Quote %s is now %s", quote_id, stored.status.value)
        return Ok(stored)

    async def _with_current_sheet(self, quote_id: UUID) -> Result[tuple, QuoteError]:
        loaded = await self.get_quote(quote_id)
        if loaded.is_err():
            return loaded
        quote = loaded.unwrap()
        sheet = await sync_obsolescence(self._store, quote)
        if sheet.is_err():
            return sheet
        return Ok((quote, sheet.unwrap()))

    @beartype
    async def submit(self, quote_id: UUID) -> Result[Quote, QuoteError]:
        """Submit a complete draft."""
        loaded = await self.get_quote(quote_id)
        if loaded.is_err():
            return loaded
        return await self._move(
            quote_id, "submit", quote_lifecycle.submit(loaded.unwrap())
        )

    @beartype
    async def submit_for_approval(self, quote_id: UUID) -> Result[Quote, QuoteError]:
        """Send a submitted quote for approval; corporate leases need an approved sheet."""
        loaded = await self._with_current_sheet(quote_id)
        if loaded.is_err():
            return loaded
        quote, sheet = loaded.unwrap()
        return await self._move(
            quote_id,
            "submit for approval",
            quote_lifecycle.submit_for_approval(quote, sheet),
        )

    @beartype
    async def approve(self, quote_id: UUID) -> Result[Quote, QuoteError]:
        """Approve a quote awaiting approval."""
        loaded = await self._with_current_sheet(quote_id)
        if loaded.is_err():
            return loaded
        quote, sheet = loaded.unwrap()
        return await self._move(
            quote_id, "approve", quote_lifecycle.approve(quote, sheet)
        )

    @beartype
    async def mark_won(self, quote_id: UUID, reason: str) -> Result[Quote, QuoteError]:
        """Close an approved quote as won."""
        loaded = await self.get_quote(quote_id)
        if loaded.is_err():
            return loaded
        return await self._move(
            quote_id, "win", quote_lifecycle.mark_won(loaded.unwrap(), reason)
        )

    @beartype
    async def mark_lost(self, quote_id: UUID, reason: str) -> Result[Quote, QuoteError]:
        """Close an approved quote as lost."""
        loaded = await self.get_quote(quote_id)
        if loaded.is_err():
            return loaded
        return await self._move(
            quote_id, "lose", quote_lifecycle.mark_lost(loaded.unwrap(), reason)
        )

    @beartype
    async def revise(self, quote_id: UUID) -> Result[Quote, QuoteError]:
        """Store a new draft version of a quote; the original stays as it is."""
        loaded = await self.get_quote(quote_id)
        if loaded.is_err():
            return loaded
        revision = await self._store.save_quote(quote_lifecycle.revise(loaded.unwrap()))
        logger.info(
            "Quote %s revised as %s (v%d)", quote_id, revision.id, revision.version
        )
        return Ok(revision)
