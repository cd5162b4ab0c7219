from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Protocol

from config import EVENT_POOL_SIZE

from .contracts import PipelineEventV1

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def emit(self, event: Dict[str, Any]) -> None: ...


class LoggingEventSink:
    def __init__(self, logger_name: str = "pipeline.events") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: Dict[str, Any]) -> None:
        self._logger.info("Pipeline event: %s", json.dumps(event, ensure_ascii=False, sort_keys=True, default=str))


class HttpAuditSink:
    """Forwards each event to an audit writer such as ``tools.audit_write``."""

    def __init__(self, writer: Callable[[Dict[str, Any]], Any]) -> None:
        self._writer = writer

    def emit(self, event: Dict[str, Any]) -> None:
        self._writer(event)


class EventDispatcher:
    """Fire-and-forget delivery of pipeline events on a small worker pool."""

    def __init__(self, sink: EventSink, *, pool_size: int = EVENT_POOL_SIZE) -> None:
        self.sink = sink
        self._executor = ThreadPoolExecutor(max_workers=max(1, pool_size), thread_name_prefix="pipeline-events")

    def _deliver(self, payload: Dict[str, Any]) -> None:
        try:
            self.sink.emit(payload)
        except Exception as exc:
            logger.warning("Event sink failed: trace_id=%s error=%s", payload.get("trace_id"), exc)

    def dispatch(self, event: PipelineEventV1) -> Future | None:
        payload = event.model_dump(mode="json")
        try:
            return self._executor.submit(self._deliver, payload)
        except RuntimeError as exc:
            logger.warning("Event dropped, dispatcher closed: trace_id=%s error=%s", event.trace_id, exc)
            return None

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
