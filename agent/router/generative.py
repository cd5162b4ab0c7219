from __future__ import annotations

import json
import logging
import re
import threading
import time
from collections import deque
from typing import Any, Callable, Dict

from pydantic import ValidationError

from catalog import CapabilityCatalog
from errors import GenerationError
from generation import GenerationFunction, GenerationRequest, build_route_prompt, call_generation

from .contracts import RouteCandidate, RouteExtractionV1
from .schemas import validate_route_extraction_payload

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """At most ``max_calls`` acquisitions in any ``window_seconds`` interval."""

    def __init__(self, *, max_calls: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: deque[float] = deque()
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        now = self._clock()
        with self._lock:
            while self._calls and now - self._calls[0] >= self.window_seconds:
                self._calls.popleft()
            if len(self._calls) >= self.max_calls:
                return False
            self._calls.append(now)
            return True

    def in_window(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for stamp in self._calls if now - stamp < self.window_seconds)


def _try_parse_json(raw_text: str) -> Dict[str, Any] | None:
    text = (raw_text or "").strip()
    if not text:
        return None
    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", text, flags=re.DOTALL | re.IGNORECASE)
    if fenced:
        try:
            parsed = json.loads(fenced.group(1))
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            return None

    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        parsed = json.loads(text[start : end + 1])
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        return None


def _sanitize_extraction_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(payload)
    normalized.setdefault("schema_version", "route_extraction_v1")
    if normalized.get("reason") is None:
        normalized.pop("reason", None)
    candidates = normalized.get("candidates")
    if isinstance(candidates, list):
        cleaned: list[Any] = []
        for item in candidates:
            if isinstance(item, dict):
                item = {key: value for key, value in item.items() if key in {"capability_id", "confidence"}}
                if isinstance(item.get("capability_id"), str):
                    item["capability_id"] = item["capability_id"].strip().upper()
            cleaned.append(item)
        normalized["candidates"] = cleaned
    return normalized


class GenerativeRoutePass:
    """Pass 3: asks the standard generation function to classify the utterance."""

    def __init__(
        self,
        catalog: CapabilityCatalog,
        generate: GenerationFunction | None,
        *,
        timeout_seconds: float,
        rate_limiter: SlidingWindowRateLimiter,
        max_tokens: int = 200,
        max_attempts: int = 1,
    ) -> None:
        self._catalog = catalog
        self._generate = generate
        self.timeout_seconds = timeout_seconds
        self.rate_limiter = rate_limiter
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts

    @property
    def enabled(self) -> bool:
        return self._generate is not None

    def candidates(self, utterance: str) -> tuple[list[RouteCandidate], list[str]]:
        errors: list[str] = []
        if self._generate is None:
            errors.append("generative_disabled")
            return [], errors
        if not self.rate_limiter.try_acquire():
            errors.append("generative_rate_limited")
            logger.info("Generative route pass skipped: rate_limited in_window=%d", self.rate_limiter.in_window())
            return [], errors

        request = GenerationRequest(
            prompt=build_route_prompt(utterance=utterance, capabilities=list(self._catalog)),
            max_tokens=self.max_tokens,
            tier="standard",
            purpose="route",
        )
        try:
            result = call_generation(
                self._generate,
                request,
                timeout_seconds=self.timeout_seconds,
                max_attempts=self.max_attempts,
            )
        except GenerationError as exc:
            errors.append(f"generative_error:{type(exc).__name__}")
            logger.warning("Generative route pass failed: error=%s", exc)
            return [], errors

        payload = _try_parse_json(result.text)
        if payload is None:
            errors.append("invalid_json")
            return [], errors
        payload = _sanitize_extraction_payload(payload)

        schema_errors = validate_route_extraction_payload(payload)
        if schema_errors:
            errors.append("invalid_schema")
            errors.extend([f"schema:{msg}" for msg in schema_errors[:3]])
            return [], errors

        try:
            extraction = RouteExtractionV1.model_validate(payload)
        except ValidationError as exc:
            errors.append("invalid_contract")
            errors.append(str(exc))
            return [], errors

        found: list[RouteCandidate] = []
        seen: set[str] = set()
        for item in extraction.candidates:
            if item.capability_id not in self._catalog:
                errors.append(f"unknown_capability:{item.capability_id}")
                continue
            if item.capability_id in seen:
                continue
            seen.add(item.capability_id)
            found.append(
                RouteCandidate(
                    capability_id=item.capability_id,
                    confidence=item.confidence,
                    reason_code="generative_classification",
                    source="generative",
                )
            )
        found.sort(key=lambda candidate: -candidate.confidence)
        return found, errors
