from __future__ import annotations

import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from fallback import UnknownQueryCollector, query_tokens, token_similarity  # noqa: E402

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class UnknownQueryCollectorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = [START]
        self.collector = UnknownQueryCollector(
            max_entries=3,
            retention_days=30,
            retention_floor=5,
            similarity_min=0.8,
            clock=lambda: self.now[0],
        )

    def _tick(self, **delta) -> None:
        self.now[0] = self.now[0] + timedelta(**delta)

    def test_similar_queries_merge(self) -> None:
        first = self.collector.record("cancel my gym membership")
        self._tick(minutes=5)
        second = self.collector.record("cancel my gym membership please")

        self.assertEqual(first.record_id, second.record_id)
        self.assertEqual(second.frequency, 2)
        self.assertEqual(second.first_seen, START)
        self.assertEqual(second.last_seen, START + timedelta(minutes=5))
        self.assertEqual(len(self.collector), 1)

    def test_different_queries_stay_separate(self) -> None:
        self.collector.record("cancel my gym membership")
        self.collector.record("book a flight")
        self.assertEqual(len(self.collector), 2)

    def test_full_log_evicts_least_frequent_then_oldest(self) -> None:
        popular = self.collector.record("order pizza")
        self.collector.record("order pizza")
        self._tick(minutes=1)
        oldest = self.collector.record("book a flight")
        self._tick(minutes=1)
        self.collector.record("rent a car")
        self._tick(minutes=1)
        self.collector.record("walk my dog")

        self.assertEqual(len(self.collector), 3)
        self.assertIsNone(self.collector.get(oldest.record_id))
        self.assertIsNotNone(self.collector.get(popular.record_id))

    def test_stale_entries_expire_unless_frequent(self) -> None:
        rare = self.collector.record("book a flight")
        for _ in range(5):
            frequent = self.collector.record("order pizza")
        self._tick(days=31)
        self.collector.record("walk my dog")

        self.assertIsNone(self.collector.get(rare.record_id))
        self.assertEqual(self.collector.get(frequent.record_id).frequency, 5)

    def test_feedback_and_resolution(self) -> None:
        record = self.collector.record("book a flight")

        updated = self.collector.provide_feedback(record.record_id, "  travel booking  ")
        self.assertEqual(updated.feedback, "travel booking")

        resolved = self.collector.mark_resolved(record.record_id, "TRANSACTION_SEARCH")
        self.assertTrue(resolved.resolved)
        self.assertEqual(resolved.resolved_capability, "TRANSACTION_SEARCH")
        self.assertIsNone(self.collector.provide_feedback("unk_missing", "x"))

    def test_queries_needing_attention_and_analytics(self) -> None:
        for _ in range(3):
            hot = self.collector.record("order pizza", suggested_capabilities=["TOP_MERCHANTS"])
        self.collector.record("book a flight")

        attention = self.collector.queries_needing_attention(min_frequency=3)
        self.assertEqual([item.record_id for item in attention], [hot.record_id])
        self.assertEqual(self.collector.top_queries(1)[0].record_id, hot.record_id)

        stats = self.collector.analytics()
        self.assertEqual(stats["total_records"], 2)
        self.assertEqual(stats["total_occurrences"], 4)
        self.assertEqual(stats["top_suggested_capabilities"], ["TOP_MERCHANTS"])

    def test_queries_with_feedback_no_longer_need_attention(self) -> None:
        for _ in range(3):
            pizza = self.collector.record("order pizza")
        for _ in range(4):
            flight = self.collector.record("book a flight")

        self.collector.provide_feedback(flight.record_id, "travel booking is out of scope")

        attention = self.collector.queries_needing_attention(min_frequency=3)
        self.assertEqual([item.record_id for item in attention], [pizza.record_id])
        self.assertEqual(self.collector.analytics()["with_feedback"], 1)

    def test_token_helpers(self) -> None:
        self.assertEqual(query_tokens("Book a FLIGHT, book it"), ("a", "book", "flight", "it"))
        self.assertEqual(token_similarity(["a", "b"], ["a", "b"]), 1.0)
        self.assertEqual(token_similarity([], ["a"]), 0.0)


if __name__ == "__main__":
    unittest.main()
