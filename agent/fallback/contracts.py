from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

FallbackKind = Literal["guided", "educational", "setup", "unknown_collector"]
FallbackActionType = Literal["ask", "setup", "rephrase", "feedback", "handoff"]


class FallbackAction(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    action_id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    action_type: FallbackActionType
    capability_id: str | None = None
    params: Dict[str, Any] = Field(default_factory=dict)


class FallbackSuggestion(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = Field(min_length=1)
    capability_id: str | None = None


class FallbackResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: str = "fallback_response_v1"
    kind: FallbackKind
    message: str = Field(min_length=1)
    suggestions: tuple[FallbackSuggestion, ...] = ()
    actions: tuple[FallbackAction, ...] = Field(min_length=1)
    reason_code: str = ""
    record_id: str | None = None


class UnknownQueryRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    record_id: str
    utterance: str
    tokens: tuple[str, ...] = ()
    frequency: int = Field(default=1, ge=1)
    first_seen: datetime
    last_seen: datetime
    suggested_capabilities: tuple[str, ...] = ()
    feedback: str | None = None
    resolved: bool = False
    resolved_capability: str | None = None
