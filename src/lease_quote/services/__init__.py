# LeaseQuote - Corporate Leasing Quote Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Business logic service layer."""

from ..core.result_types import Err, Ok, Result
from .cost_sheet_service import CostSheetService, sync_obsolescence
from .quote_service import QuoteService
from .store import InMemoryQuoteStore, QuoteStore

__all__ = [
    "Result",
    "Ok",
    "Err",
    "CostSheetService",
    "InMemoryQuoteStore",
    "QuoteService",
    "QuoteStore",
    "sync_obsolescence",
]
