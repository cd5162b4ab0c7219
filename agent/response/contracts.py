from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from answerability import AnswerabilityResult
from fallback import FallbackAction, FallbackResponse
from intake import InputDecisionV1
from observability import SafetyVerdict
from router import RouteDecisionV1
from validation import CriticReport

ResponseKind = Literal["answer", "fallback", "clarification", "rejected", "blocked", "cancelled"]
ResponseTier = Literal["standard", "escalated", "template"]


class AssistantResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = "assistant_response_v1"
    trace_id: str
    text: str = Field(min_length=1)
    kind: ResponseKind
    capability_id: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    low_confidence: bool = False
    tier: ResponseTier | None = None
    fallback: FallbackResponse | None = None
    actions: list[FallbackAction] = Field(default_factory=list)
    route: RouteDecisionV1 | None = None
    answerability: AnswerabilityResult | None = None
    guard_failures: list[str] = Field(default_factory=list)
    critic: CriticReport | None = None
    safety: SafetyVerdict = Field(default_factory=SafetyVerdict)
    input_decision: InputDecisionV1 | None = None
    latency_ms: int = Field(default=0, ge=0)
    token_count: int = Field(default=0, ge=0)
    performance_breaches: list[str] = Field(default_factory=list)
    external_failures: list[str] = Field(default_factory=list)
    cache_hit: bool = False

    @model_validator(mode="after")
    def _validate_kind(self) -> "AssistantResponse":
        if self.kind == "answer" and (not self.capability_id or self.tier is None):
            raise ValueError("answer responses require capability_id and tier")
        if self.kind == "fallback" and self.fallback is None:
            raise ValueError("fallback responses require a fallback payload")
        return self
