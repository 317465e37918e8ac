# LeaseQuote - Corporate Leasing Quote Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Domain models for quotes and cost sheets."""

from .base import BaseModelConfig, IdentifiableModel, TimestampedModel
from .cost_sheet import (
    CostAssumptions,
    CostComponents,
    CostSheet,
    CostSheetLine,
    CostSheetStatus,
    CostSheetSummary,
    FleetVehicle,
    LineSnapshot,
)
from .overrides import INHERITED, Inherited, Overridden
from .quote import (
    OVERRIDABLE_LINE_FIELDS,
    AddOnLine,
    BillingPlan,
    DepositType,
    HandoverType,
    InitialFee,
    LineDefaults,
    PricingModel,
    ProrationRule,
    Quote,
    QuoteStatus,
    QuoteType,
    RateType,
    VehicleLine,
)

__all__ = [
    "BaseModelConfig",
    "IdentifiableModel",
    "TimestampedModel",
    "Inherited",
    "Overridden",
    "INHERITED",
    "OVERRIDABLE_LINE_FIELDS",
    "AddOnLine",
    "BillingPlan",
    "DepositType",
    "HandoverType",
    "InitialFee",
    "LineDefaults",
    "PricingModel",
    "ProrationRule",
    "Quote",
    "QuoteStatus",
    "QuoteType",
    "RateType",
    "VehicleLine",
    "CostAssumptions",
    "CostComponents",
    "CostSheet",
    "CostSheetLine",
    "CostSheetStatus",
    "CostSheetSummary",
    "FleetVehicle",
    "LineSnapshot",
]
