from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from catalog import ContentKind

GuardName = Literal["numeric", "window", "claim"]
GuardFailureCode = Literal[
    "numeric_negative_amount",
    "numeric_sum_mismatch",
    "numeric_budget_limit_exceeded",
    "date_out_of_window",
    "claim_forbidden_phrasing",
    "claim_missing_disclaimer",
]
CriticIssueKind = Literal["guard_failure", "ambiguity", "unsupported_claim", "high_stakes", "strategy_request"]
RiskLevel = Literal["low", "medium", "high"]

GUARD_FAILURE_CODES: tuple[str, ...] = (
    "numeric_negative_amount",
    "numeric_sum_mismatch",
    "numeric_budget_limit_exceeded",
    "date_out_of_window",
    "claim_forbidden_phrasing",
    "claim_missing_disclaimer",
)


class GeneratedAnswer(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    content_kind: ContentKind = "factual"
    token_count: int = Field(default=0, ge=0)
    tier: Literal["standard", "escalated", "template"] = "standard"


class GuardReport(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    guard: GuardName
    passed: bool
    failures: tuple[GuardFailureCode, ...] = ()
    details: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _validate_consistency(self) -> "GuardReport":
        if self.passed == bool(self.failures):
            raise ValueError("passed must be true exactly when there are no failures")
        return self


class GuardBatteryReport(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    passed: bool
    failures: tuple[GuardFailureCode, ...] = ()
    reports: tuple[GuardReport, ...] = ()

    def details(self) -> list[str]:
        return [detail for report in self.reports for detail in report.details]


class CriticIssue(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: CriticIssueKind
    note: str


class CriticReport(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    passed: bool
    issues: tuple[CriticIssue, ...] = ()
    risk_level: RiskLevel = "low"
    escalate: bool = False
    escalation_reason: str | None = None

    @model_validator(mode="after")
    def _validate_escalation(self) -> "CriticReport":
        if self.escalate and not (self.escalation_reason or "").strip():
            raise ValueError("escalation requires a non-empty escalation_reason")
        return self
