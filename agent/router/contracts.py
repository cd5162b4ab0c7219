from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

RouteKind = Literal["capability", "guided_fallback", "unknown_fallback"]
RouterPass = Literal["pattern", "semantic", "generative"]


class RouteCandidate(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    capability_id: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    reason_code: str
    source: RouterPass
    matched_text: str | None = None


class RouteAlternative(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    capability_id: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: RouterPass


class RouteDecisionV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = "route_decision_v1"
    kind: RouteKind
    capability_id: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reason_code: str
    alternatives: list[RouteAlternative] = Field(default_factory=list)
    passes_run: list[RouterPass] = Field(default_factory=list)
    missing_slots: list[str] = Field(default_factory=list)
    slot_suggestions: Dict[str, list[str]] = Field(default_factory=dict)
    params: Dict[str, Any] = Field(default_factory=dict)
    reason_codes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_capability(self) -> "RouteDecisionV1":
        if self.kind == "capability" and not self.capability_id:
            raise ValueError("capability route requires capability_id")
        if self.kind != "capability" and self.capability_id is not None:
            raise ValueError(f"{self.kind} route must not carry capability_id")
        return self


class GenerativeCandidateV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    capability_id: str
    confidence: float = Field(ge=0.0, le=1.0)


class RouteExtractionV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = "route_extraction_v1"
    candidates: list[GenerativeCandidateV1] = Field(default_factory=list, max_length=5)
    reason: str = ""


class ClarifyingQuestionV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question_id: str
    question_text: str
    options: list[str] = Field(default_factory=list)
