from .contracts import (
    PerformanceReport,
    PipelineEventV1,
    SafetyAction,
    SafetyMatch,
    SafetySeverity,
    SafetyVerdict,
)
from .events import EventDispatcher, EventSink, HttpAuditSink, LoggingEventSink
from .performance import PerformanceMonitor
from .safety import BLOCKED_MESSAGE, DEFAULT_SAFETY_RULES, HANDOFF_MESSAGE, SafetyClassifier, SafetyRule

__all__ = [
    "BLOCKED_MESSAGE",
    "DEFAULT_SAFETY_RULES",
    "EventDispatcher",
    "EventSink",
    "HANDOFF_MESSAGE",
    "HttpAuditSink",
    "LoggingEventSink",
    "PerformanceMonitor",
    "PerformanceReport",
    "PipelineEventV1",
    "SafetyAction",
    "SafetyClassifier",
    "SafetyMatch",
    "SafetyRule",
    "SafetySeverity",
    "SafetyVerdict",
]
