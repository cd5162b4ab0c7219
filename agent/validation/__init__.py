from .contracts import (
    GUARD_FAILURE_CODES,
    CriticIssue,
    CriticReport,
    GeneratedAnswer,
    GuardBatteryReport,
    GuardFailureCode,
    GuardReport,
    RiskLevel,
)
from .critic import (
    REASON_AMBIGUITY,
    REASON_HIGH_STAKES,
    REASON_STRATEGY,
    REASON_UNSUPPORTED_CLAIM,
    CascadeCritic,
    detect_ambiguity,
    detect_high_stakes,
    detect_strategy_request,
    detect_unsupported_claims,
)
from .guards import (
    DEFAULT_GUARDS,
    FORBIDDEN_PHRASES,
    claim_guard,
    extract_dates,
    extract_money_mentions,
    numeric_guard,
    run_guard_battery,
    window_guard,
)

__all__ = [
    "CascadeCritic",
    "CriticIssue",
    "CriticReport",
    "DEFAULT_GUARDS",
    "FORBIDDEN_PHRASES",
    "GUARD_FAILURE_CODES",
    "GeneratedAnswer",
    "GuardBatteryReport",
    "GuardFailureCode",
    "GuardReport",
    "REASON_AMBIGUITY",
    "REASON_HIGH_STAKES",
    "REASON_STRATEGY",
    "REASON_UNSUPPORTED_CLAIM",
    "RiskLevel",
    "claim_guard",
    "detect_ambiguity",
    "detect_high_stakes",
    "detect_strategy_request",
    "detect_unsupported_claims",
    "extract_dates",
    "extract_money_mentions",
    "numeric_guard",
    "run_guard_battery",
    "window_guard",
]
