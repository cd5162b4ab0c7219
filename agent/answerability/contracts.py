from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FallbackActionName = Literal[
    "CONNECT_ACCOUNT",
    "CREATE_FIRST_BUDGET",
    "CREATE_FIRST_GOAL",
    "ADD_RECURRING_EXPENSE",
    "ADD_DEBT",
    "SETUP_FINANCIAL_TRACKING",
    "GUIDED_SETUP",
]


class MissingData(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    category: str
    required: int = Field(ge=1)
    available: int = Field(ge=0)


class AnswerabilityResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: str = "answerability_v1"
    capability_id: str
    can_answer: bool
    confidence: float = Field(ge=0.0, le=1.0)
    missing_data: tuple[MissingData, ...] = ()
    suggestions: tuple[str, ...] = ()
    fallback_action: FallbackActionName | None = None

    @model_validator(mode="after")
    def _validate_missing(self) -> "AnswerabilityResult":
        if not self.can_answer and not self.missing_data:
            raise ValueError("an unanswerable result must name at least one missing data category")
        return self

    def missing_categories(self) -> list[str]:
        return [item.category for item in self.missing_data]


class GuidedSuggestion(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    capability_id: str
    name: str
    priority: float = Field(ge=0.0, le=1.0)
    example_utterance: str = ""


class DataQualityReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    completeness: float = Field(ge=0.0, le=1.0)
    counts: dict[str, int] = Field(default_factory=dict)
    populated_categories: list[str] = Field(default_factory=list)
    empty_categories: list[str] = Field(default_factory=list)
    answerable_capabilities: int = 0
    total_capabilities: int = 0
