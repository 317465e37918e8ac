"""Cost sheets: calculation, approval workflow and obsolescence."""

from .engine import (
    CostSheetEngine,
    components_for_quote,
    default_assumptions,
    default_components,
    default_residual_value_percent,
    estimate_acquisition_cost,
    lease_term_months,
)
from .obsolescence import lines_changed, on_lines_changed
from .workflow import CostSheetWorkflow, corporate_lease_gate

__all__ = [
    "CostSheetEngine",
    "CostSheetWorkflow",
    "components_for_quote",
    "corporate_lease_gate",
    "default_assumptions",
    "default_components",
    "default_residual_value_percent",
    "estimate_acquisition_cost",
    "lease_term_months",
    "lines_changed",
    "on_lines_changed",
]
