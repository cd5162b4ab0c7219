from __future__ import annotations

from datetime import date
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from catalog import SlotType

SlotProvenance = Literal["explicit", "inferred", "default", "context"]


class TimeWindow(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str
    start: date
    end: date

    @model_validator(mode="after")
    def _validate_order(self) -> "TimeWindow":
        if self.end < self.start:
            raise ValueError("time window end precedes start")
        return self

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


class ResolvedSlot(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: SlotType
    value: Any
    confidence: float = Field(ge=0.0, le=1.0)
    provenance: SlotProvenance
    matched_text: str | None = None


class SlotResolution(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resolved: Dict[str, ResolvedSlot] = Field(default_factory=dict)
    missing: list[str] = Field(default_factory=list)
    suggestions: Dict[str, list[str]] = Field(default_factory=dict)

    def params(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, slot in self.resolved.items():
            value = slot.value
            if isinstance(value, TimeWindow):
                value = value.model_dump(mode="json")
            values[name] = value
        return values

    def time_window(self) -> TimeWindow | None:
        for slot in self.resolved.values():
            if slot.type == "period" and isinstance(slot.value, TimeWindow):
                return slot.value
        return None
