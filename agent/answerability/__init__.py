from .contracts import AnswerabilityResult, DataQualityReport, FallbackActionName, GuidedSuggestion, MissingData
from .gate import DataSufficiencyGate, evaluate_answerability
from .suggestions import GUIDED_PRIORITY, MISSING_DATA_SUGGESTIONS, suggestions_for_missing

__all__ = [
    "AnswerabilityResult",
    "DataQualityReport",
    "DataSufficiencyGate",
    "FallbackActionName",
    "GUIDED_PRIORITY",
    "GuidedSuggestion",
    "MISSING_DATA_SUGGESTIONS",
    "MissingData",
    "evaluate_answerability",
    "suggestions_for_missing",
]
