from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

InputDecisionName = Literal["pass", "repair", "reject"]


class InputDecisionV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = "input_decision_v1"
    decision: InputDecisionName
    mojibake_score: float = Field(ge=0.0, le=1.0)
    repair_applied: bool = False
    encoding_guess: str = ""
    reason_codes: list[str] = Field(default_factory=list)
    input_fingerprint: str
    rephrase_prompt: str = ""
