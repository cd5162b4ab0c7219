from .bedrock import BedrockConverseGenerator
from .contracts import Fact, GenerationFunction, GenerationRequest, GenerationResult, GenerationTier
from .facts import build_fact_pack, fmt_money, snapshot_facts
from .prompts import PROMPT_VERSION, build_answer_prompt, build_route_prompt
from .runner import call_generation
from .template import render_facts_only_answer, template_generation

__all__ = [
    "BedrockConverseGenerator",
    "Fact",
    "GenerationFunction",
    "GenerationRequest",
    "GenerationResult",
    "GenerationTier",
    "PROMPT_VERSION",
    "build_answer_prompt",
    "build_fact_pack",
    "build_route_prompt",
    "call_generation",
    "fmt_money",
    "render_facts_only_answer",
    "snapshot_facts",
    "template_generation",
]
