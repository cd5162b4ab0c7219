from __future__ import annotations

import logging

from config import (
    PERF_EXTERNAL_FAILURES_MAX,
    PERF_GENERATION_ATTEMPTS_MAX,
    PERF_LATENCY_MS_MAX,
    PERF_TOKENS_MAX,
)

from .contracts import PerformanceReport

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """Flags threshold breaches for one request; never blocks the response."""

    def __init__(
        self,
        *,
        latency_ms_max: int = PERF_LATENCY_MS_MAX,
        tokens_max: int = PERF_TOKENS_MAX,
        generation_attempts_max: int = PERF_GENERATION_ATTEMPTS_MAX,
        external_failures_max: int = PERF_EXTERNAL_FAILURES_MAX,
    ) -> None:
        self.latency_ms_max = latency_ms_max
        self.tokens_max = tokens_max
        self.generation_attempts_max = generation_attempts_max
        self.external_failures_max = external_failures_max

    def evaluate(
        self,
        *,
        latency_ms: int,
        token_count: int = 0,
        generation_attempts: int = 0,
        external_failures: int = 0,
    ) -> PerformanceReport:
        breaches: list[str] = []
        if latency_ms > self.latency_ms_max:
            breaches.append(f"latency_ms>{self.latency_ms_max}")
        if token_count > self.tokens_max:
            breaches.append(f"token_count>{self.tokens_max}")
        if generation_attempts > self.generation_attempts_max:
            breaches.append(f"generation_attempts>{self.generation_attempts_max}")
        if external_failures > self.external_failures_max:
            breaches.append(f"external_failures>{self.external_failures_max}")
        if breaches:
            logger.info("Performance thresholds breached: %s latency_ms=%d tokens=%d", ",".join(breaches), latency_ms, token_count)
        return PerformanceReport(
            latency_ms=max(0, int(latency_ms)),
            token_count=max(0, int(token_count)),
            generation_attempts=max(0, int(generation_attempts)),
            external_failures=max(0, int(external_failures)),
            breaches=tuple(breaches),
        )
