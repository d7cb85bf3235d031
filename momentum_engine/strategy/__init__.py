"""Decision pipelines and strategy selection.

Includes:
- Admission pipeline (entry size fraction)
- Exit adjudication (first-match-wins allow/disallow)
- Strategy selector (price ordering to eligible tradebooks)
"""

from .admission import (
    EntryRequest,
    check_basic_global_entry_rules,
    check_global_entry_rules,
    check_red_to_green_plan_entry_rules,
    clamp_size,
    hard_veto_reason,
    validate_common_entry_rules,
)
from .exit_adjudication import (
    CheckRulesResult,
    adjudicate_flatten,
    adjudicate_limit_adjustment,
    adjudicate_market_out,
    adjudicate_stop_adjustment,
    adjudicate_trail_stop,
    first_match,
)
from .selector import (
    PriceOrdering,
    classify_ordering,
    selected_tradebook_ids,
    selection_prices,
    update_tradebooks_status,
)

__all__ = [
    # Admission
    "EntryRequest",
    "check_basic_global_entry_rules",
    "check_global_entry_rules",
    "check_red_to_green_plan_entry_rules",
    "clamp_size",
    "hard_veto_reason",
    "validate_common_entry_rules",
    # Exit adjudication
    "CheckRulesResult",
    "adjudicate_flatten",
    "adjudicate_limit_adjustment",
    "adjudicate_market_out",
    "adjudicate_stop_adjustment",
    "adjudicate_trail_stop",
    "first_match",
    # Selector
    "PriceOrdering",
    "classify_ordering",
    "selected_tradebook_ids",
    "selection_prices",
    "update_tradebooks_status",
]
