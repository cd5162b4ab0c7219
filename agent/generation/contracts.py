from __future__ import annotations

from typing import Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

GenerationTier = Literal["standard", "escalated", "template"]
GenerationPurpose = Literal["answer", "route"]


class GenerationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    prompt: str = Field(min_length=1)
    max_tokens: int = Field(ge=1)
    tier: GenerationTier = "standard"
    purpose: GenerationPurpose = "answer"


class GenerationResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    token_count: int = Field(default=0, ge=0)
    tier: GenerationTier = "standard"
    model_id: str = ""
    attempts: int = Field(default=1, ge=1)


class Fact(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    fact_id: str = Field(min_length=1)
    label: str
    value_text: str
    value: float | None = None
    source: str = "snapshot"


GenerationFunction = Callable[[GenerationRequest], GenerationResult]
