from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SafetyAction = Literal["allow", "modify", "escalate", "block"]
SafetySeverity = Literal["none", "low", "medium", "high", "critical"]
SafetyScope = Literal["answer", "utterance", "both"]

SEVERITY_RANK: dict[str, int] = {"none": 0, "low": 1, "medium": 2, "high": 3, "critical": 4}
ACTION_RANK: dict[str, int] = {"allow": 0, "modify": 1, "escalate": 2, "block": 3}


class SafetyMatch(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    rule: str
    category: str
    action: SafetyAction
    severity: SafetySeverity
    matched_text: str


class SafetyVerdict(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    action: SafetyAction = "allow"
    severity: SafetySeverity = "none"
    matches: tuple[SafetyMatch, ...] = ()
    text: str = ""
    disclaimers: tuple[str, ...] = ()
    handoff: bool = False

    @property
    def blocked(self) -> bool:
        return self.action == "block"

    def categories(self) -> list[str]:
        return list(dict.fromkeys(match.category for match in self.matches))


class PerformanceReport(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    latency_ms: int = Field(ge=0)
    token_count: int = Field(default=0, ge=0)
    generation_attempts: int = Field(default=0, ge=0)
    external_failures: int = Field(default=0, ge=0)
    breaches: tuple[str, ...] = ()

    @property
    def within_thresholds(self) -> bool:
        return not self.breaches


class PipelineEventV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = "pipeline_event_v1"
    trace_id: str
    user_id: str = ""
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    utterance_fingerprint: str = ""
    input_decision: str = "pass"
    response_kind: str
    route_kind: str | None = None
    capability_id: str | None = None
    route_confidence: float | None = None
    route_reason: str | None = None
    passes_run: list[str] = Field(default_factory=list)
    answerability_can_answer: bool | None = None
    answerability_confidence: float | None = None
    missing_data: list[str] = Field(default_factory=list)
    guard_failures: list[str] = Field(default_factory=list)
    critic_escalate: bool | None = None
    escalation_reason: str | None = None
    risk_level: str | None = None
    tier: str | None = None
    low_confidence: bool = False
    fallback_kind: str | None = None
    safety_action: str = "allow"
    safety_severity: str = "none"
    latency_ms: int = Field(default=0, ge=0)
    token_count: int = Field(default=0, ge=0)
    generation_attempts: int = Field(default=0, ge=0)
    performance_breaches: list[str] = Field(default_factory=list)
    external_failures: list[str] = Field(default_factory=list)
    cache_hit: bool = False
