from .collector import UnknownQueryCollector, query_tokens, token_similarity
from .contracts import FallbackAction, FallbackKind, FallbackResponse, FallbackSuggestion, UnknownQueryRecord
from .generator import GUIDED_REASON_CODES, FallbackGenerator, is_explanation_seeking

__all__ = [
    "FallbackAction",
    "FallbackGenerator",
    "FallbackKind",
    "FallbackResponse",
    "FallbackSuggestion",
    "GUIDED_REASON_CODES",
    "UnknownQueryCollector",
    "UnknownQueryRecord",
    "is_explanation_seeking",
    "query_tokens",
    "token_similarity",
]
