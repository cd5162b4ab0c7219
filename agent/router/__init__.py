from .clarify import build_clarifying_question
from .contracts import (
    ClarifyingQuestionV1,
    RouteAlternative,
    RouteCandidate,
    RouteDecisionV1,
    RouteExtractionV1,
    RouteKind,
    RouterPass,
)
from .generative import GenerativeRoutePass, SlidingWindowRateLimiter
from .hierarchical import HierarchicalRouter
from .policy import DEFAULT_PASS_WEIGHTS, build_route_decision, rank_candidates, should_run_generative
from .rules import PatternRule, PatternRulePass, compile_pattern_rules
from .schemas import validate_route_extraction_payload
from .semantic import KeywordSemanticPass, tokenize

__all__ = [
    "ClarifyingQuestionV1",
    "DEFAULT_PASS_WEIGHTS",
    "GenerativeRoutePass",
    "HierarchicalRouter",
    "KeywordSemanticPass",
    "PatternRule",
    "PatternRulePass",
    "RouteAlternative",
    "RouteCandidate",
    "RouteDecisionV1",
    "RouteExtractionV1",
    "RouteKind",
    "RouterPass",
    "SlidingWindowRateLimiter",
    "build_clarifying_question",
    "build_route_decision",
    "compile_pattern_rules",
    "rank_candidates",
    "should_run_generative",
    "tokenize",
    "validate_route_extraction_payload",
]
