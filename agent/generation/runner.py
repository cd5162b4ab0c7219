from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_none

from config import GENERATION_MAX_ATTEMPTS, GENERATION_POOL_SIZE
from errors import GenerationError, GenerationTimeout

from .contracts import GenerationFunction, GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)

_POOL_LOCK = threading.Lock()
_POOL: ThreadPoolExecutor | None = None


def _shared_pool() -> ThreadPoolExecutor:
    global _POOL
    with _POOL_LOCK:
        if _POOL is None:
            _POOL = ThreadPoolExecutor(max_workers=GENERATION_POOL_SIZE, thread_name_prefix="generation")
        return _POOL


def _call_once(
    generate: GenerationFunction,
    request: GenerationRequest,
    *,
    timeout_seconds: float,
    executor: Executor,
) -> GenerationResult:
    future = executor.submit(generate, request)
    try:
        result = future.result(timeout=timeout_seconds)
    except FutureTimeoutError as exc:
        # The worker keeps running; its result is dropped.
        future.cancel()
        raise GenerationTimeout(f"{request.tier} generation timed out after {timeout_seconds}s", tier=request.tier) from exc
    except GenerationError:
        raise
    except Exception as exc:
        raise GenerationError(f"{request.tier} generation failed: {type(exc).__name__}: {exc}", tier=request.tier) from exc

    if not isinstance(result, GenerationResult):
        raise GenerationError(f"{request.tier} generation returned {type(result).__name__}", tier=request.tier)
    if not result.text.strip():
        raise GenerationError(f"{request.tier} generation returned empty text", tier=request.tier)
    return result


def call_generation(
    generate: GenerationFunction,
    request: GenerationRequest,
    *,
    timeout_seconds: float,
    max_attempts: int = GENERATION_MAX_ATTEMPTS,
    executor: Executor | None = None,
) -> GenerationResult:
    """Invoke a generation function with a hard timeout and immediate retries.

    Raises GenerationError (or GenerationTimeout) once every attempt has failed.
    """
    pool = executor or _shared_pool()
    attempts = 0
    result: GenerationResult | None = None
    for attempt in Retrying(
        stop=stop_after_attempt(max(1, int(max_attempts))),
        wait=wait_none(),
        retry=retry_if_exception_type(GenerationError),
        reraise=True,
    ):
        with attempt:
            attempts += 1
            try:
                result = _call_once(generate, request, timeout_seconds=timeout_seconds, executor=pool)
            except GenerationError as exc:
                logger.warning(
                    "Generation attempt failed: tier=%s purpose=%s attempt=%d error=%s",
                    request.tier,
                    request.purpose,
                    attempts,
                    exc,
                )
                raise

    if result is None:
        raise GenerationError(f"{request.tier} generation produced no result", tier=request.tier)
    return result.model_copy(update={"attempts": attempts})
