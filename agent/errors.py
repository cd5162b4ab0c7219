from __future__ import annotations


class PipelineError(Exception):
    """Base class for assistant pipeline failures."""


class ConfigurationError(PipelineError):
    pass


class CatalogError(PipelineError):
    pass


class ContextProviderError(PipelineError):
    pass


class GenerationError(PipelineError):
    def __init__(self, message: str, *, tier: str = "") -> None:
        super().__init__(message)
        self.tier = tier


class GenerationTimeout(GenerationError):
    pass


class CapabilityExecutionError(PipelineError):
    def __init__(self, capability_id: str, code: str, message: str = "") -> None:
        super().__init__(message or f"{capability_id}: {code}")
        self.capability_id = capability_id
        self.code = code
