from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from snapshot import DATA_CATEGORIES

SlotType = Literal["period", "amount", "category", "merchant", "account", "goal_id"]
ContentKind = Literal["factual", "strategy", "educational", "action"]


class SlotSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    slot_type: SlotType
    required: bool = False


class RoutingPattern(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    regex: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)


class CapabilitySpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    capability_id: str = Field(pattern=r"^[A-Z][A-Z0-9_]*$")
    name: str = Field(min_length=1)
    description: str = ""
    content_kind: ContentKind = "factual"
    requires: Mapping[str, int] = Field(default_factory=dict)
    requires_any: Mapping[str, int] = Field(default_factory=dict)
    optional: tuple[str, ...] = ()
    params: tuple[SlotSpec, ...] = ()
    patterns: tuple[RoutingPattern, ...] = ()
    keywords: tuple[str, ...] = ()
    priority: float = Field(default=0.0, ge=0.0, le=1.0)
    example_utterance: str = ""

    @field_validator("requires", "requires_any")
    @classmethod
    def _validate_requirements(cls, value: Mapping[str, int]) -> Mapping[str, int]:
        for category, threshold in value.items():
            if category not in DATA_CATEGORIES:
                raise ValueError(f"unknown data category: {category}")
            if int(threshold) < 1:
                raise ValueError(f"threshold for {category} must be >= 1")
        return MappingProxyType({str(key): int(val) for key, val in value.items()})

    @field_validator("optional")
    @classmethod
    def _validate_optional(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for category in value:
            if category not in DATA_CATEGORIES:
                raise ValueError(f"unknown data category: {category}")
        return value

    @model_validator(mode="after")
    def _validate_params(self) -> "CapabilitySpec":
        names = [param.name for param in self.params]
        if len(names) != len(set(names)):
            raise ValueError(f"{self.capability_id}: duplicate parameter names")
        if len(self.requires_any) == 1:
            raise ValueError(f"{self.capability_id}: requires_any needs at least two categories")
        return self

    def required_slot_names(self) -> list[str]:
        return [param.name for param in self.params if param.required]

    def slot_types(self) -> dict[str, SlotType]:
        return {param.name: param.slot_type for param in self.params}

    def requirement_count(self) -> int:
        return len(self.requires) + (1 if self.requires_any else 0)


class CapabilityCatalog:
    """Immutable, id-indexed view over the loaded capability specs."""

    def __init__(self, capabilities: list[CapabilitySpec], *, version: str) -> None:
        index: dict[str, CapabilitySpec] = {}
        for capability in capabilities:
            if capability.capability_id in index:
                raise ValueError(f"duplicate capability id: {capability.capability_id}")
            index[capability.capability_id] = capability
        self._capabilities = tuple(capabilities)
        self._index = MappingProxyType(index)
        self.version = version

    def __contains__(self, capability_id: object) -> bool:
        return capability_id in self._index

    def __iter__(self) -> Iterator[CapabilitySpec]:
        return iter(self._capabilities)

    def __len__(self) -> int:
        return len(self._capabilities)

    def get(self, capability_id: str | None) -> CapabilitySpec | None:
        if not capability_id:
            return None
        return self._index.get(capability_id)

    def require(self, capability_id: str) -> CapabilitySpec:
        capability = self._index.get(capability_id)
        if capability is None:
            raise KeyError(capability_id)
        return capability

    def ids(self) -> list[str]:
        return [item.capability_id for item in self._capabilities]

    def by_content_kind(self, content_kind: ContentKind) -> list[CapabilitySpec]:
        return [item for item in self._capabilities if item.content_kind == content_kind]
