from .contracts import InputDecisionName, InputDecisionV1
from .gate import apply_utterance_gate

__all__ = [
    "InputDecisionName",
    "InputDecisionV1",
    "apply_utterance_gate",
]
