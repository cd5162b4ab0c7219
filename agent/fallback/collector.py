from __future__ import annotations

import hashlib
import logging
import re
import threading
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable

from config import (
    UNKNOWN_LOG_MAX_ENTRIES,
    UNKNOWN_LOG_RETENTION_DAYS,
    UNKNOWN_LOG_RETENTION_FLOOR,
    UNKNOWN_LOG_SIMILARITY_MIN,
)

from .contracts import UnknownQueryRecord

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"[a-z0-9']+")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def query_tokens(text: str) -> tuple[str, ...]:
    return tuple(sorted(set(_TOKEN_PATTERN.findall(str(text or "").lower()))))


def token_similarity(left: Iterable[str], right: Iterable[str]) -> float:
    a = set(left)
    b = set(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _record_id(utterance: str, now: datetime) -> str:
    seed = f"{utterance}|{now.isoformat()}"
    return f"unk_{hashlib.sha256(seed.encode('utf-8')).hexdigest()[:12]}"


class UnknownQueryCollector:
    """Bounded, time-boxed log of utterances no capability could handle.

    Writers hold the lock while they rebuild the record tuple; readers take the
    current tuple without locking. Expired entries are dropped on every insert.
    """

    def __init__(
        self,
        *,
        max_entries: int = UNKNOWN_LOG_MAX_ENTRIES,
        retention_days: int = UNKNOWN_LOG_RETENTION_DAYS,
        retention_floor: int = UNKNOWN_LOG_RETENTION_FLOOR,
        similarity_min: float = UNKNOWN_LOG_SIMILARITY_MIN,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.max_entries = max(1, int(max_entries))
        self.retention = timedelta(days=retention_days)
        self.retention_floor = retention_floor
        self.similarity_min = similarity_min
        self._clock = clock
        self._lock = threading.Lock()
        self._records: tuple[UnknownQueryRecord, ...] = ()

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> tuple[UnknownQueryRecord, ...]:
        return self._records

    def get(self, record_id: str) -> UnknownQueryRecord | None:
        for record in self._records:
            if record.record_id == record_id:
                return record
        return None

    def _find_match(self, records: list[UnknownQueryRecord], normalized: str, tokens: tuple[str, ...]) -> int | None:
        best_index: int | None = None
        best_score = 0.0
        for index, record in enumerate(records):
            if record.utterance.strip().lower() == normalized:
                return index
            score = token_similarity(record.tokens, tokens)
            if score >= self.similarity_min and score > best_score:
                best_index = index
                best_score = score
        return best_index

    def _expire(self, records: list[UnknownQueryRecord], now: datetime) -> list[UnknownQueryRecord]:
        kept = [
            record
            for record in records
            if now - record.last_seen <= self.retention or record.frequency >= self.retention_floor
        ]
        dropped = len(records) - len(kept)
        if dropped:
            logger.debug("Unknown query log expired entries: dropped=%d kept=%d", dropped, len(kept))
        return kept

    def record(self, utterance: str, *, suggested_capabilities: Iterable[str] = ()) -> UnknownQueryRecord:
        text = str(utterance or "").strip()
        normalized = text.lower()
        tokens = query_tokens(text)
        suggestions = tuple(dict.fromkeys(str(item) for item in suggested_capabilities if item))
        now = self._clock()

        with self._lock:
            records = self._expire(list(self._records), now)
            index = self._find_match(records, normalized, tokens)
            if index is not None:
                current = records[index]
                merged = tuple(dict.fromkeys([*current.suggested_capabilities, *suggestions]))
                updated = current.model_copy(
                    update={
                        "frequency": current.frequency + 1,
                        "last_seen": now,
                        "suggested_capabilities": merged,
                    }
                )
                records[index] = updated
            else:
                if len(records) >= self.max_entries:
                    victim = min(range(len(records)), key=lambda i: (records[i].frequency, records[i].last_seen))
                    logger.debug("Unknown query log full, evicting: record_id=%s", records[victim].record_id)
                    records.pop(victim)
                updated = UnknownQueryRecord(
                    record_id=_record_id(text, now),
                    utterance=text,
                    tokens=tokens,
                    first_seen=now,
                    last_seen=now,
                    suggested_capabilities=suggestions,
                )
                records.append(updated)
            self._records = tuple(records)

        logger.info("Unknown query recorded: record_id=%s frequency=%d", updated.record_id, updated.frequency)
        return updated

    def _update(self, record_id: str, changes: Dict[str, Any]) -> UnknownQueryRecord | None:
        with self._lock:
            records = list(self._records)
            for index, record in enumerate(records):
                if record.record_id == record_id:
                    records[index] = record.model_copy(update=changes)
                    self._records = tuple(records)
                    return records[index]
        return None

    def provide_feedback(self, record_id: str, feedback: str) -> UnknownQueryRecord | None:
        return self._update(record_id, {"feedback": str(feedback or "").strip() or None})

    def mark_resolved(self, record_id: str, capability_id: str | None = None) -> UnknownQueryRecord | None:
        return self._update(record_id, {"resolved": True, "resolved_capability": capability_id})

    def queries_needing_attention(self, *, min_frequency: int = 3, window_days: int = 7) -> list[UnknownQueryRecord]:
        cutoff = self._clock() - timedelta(days=window_days)
        pending = [
            record
            for record in self._records
            if not record.resolved
            and not record.feedback
            and record.frequency >= min_frequency
            and record.last_seen >= cutoff
        ]
        return sorted(pending, key=lambda record: (-record.frequency, record.first_seen))

    def top_queries(self, limit: int = 10) -> list[UnknownQueryRecord]:
        ranked = sorted(self._records, key=lambda record: (-record.frequency, -record.last_seen.timestamp()))
        return ranked[: max(0, limit)]

    def analytics(self) -> Dict[str, Any]:
        records = self._records
        suggested = Counter(capability for record in records for capability in record.suggested_capabilities)
        return {
            "total_records": len(records),
            "total_occurrences": sum(record.frequency for record in records),
            "resolved": sum(1 for record in records if record.resolved),
            "unresolved": sum(1 for record in records if not record.resolved),
            "with_feedback": sum(1 for record in records if record.feedback),
            "top_suggested_capabilities": [name for name, _ in suggested.most_common(5)],
        }

    def clear(self) -> None:
        with self._lock:
            self._records = ()
