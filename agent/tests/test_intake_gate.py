from __future__ import annotations

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from intake import apply_utterance_gate  # noqa: E402


class UtteranceGateTests(unittest.TestCase):
    def test_clean_text_passes_with_collapsed_whitespace(self) -> None:
        text, decision = apply_utterance_gate("  How's my   grocery budget? ")

        self.assertEqual(text, "How's my grocery budget?")
        self.assertEqual(decision.decision, "pass")
        self.assertIn("clean_utf8", decision.reason_codes)
        self.assertIn("normalized_nfc", decision.reason_codes)
        self.assertEqual(decision.rephrase_prompt, "")
        self.assertEqual(len(decision.input_fingerprint), 16)

    def test_empty_and_whitespace_only_are_rejected(self) -> None:
        for raw in ("", "   \t  "):
            text, decision = apply_utterance_gate(raw)
            self.assertEqual(text, "")
            self.assertEqual(decision.decision, "reject")
            self.assertIn("input_empty", decision.reason_codes)
            self.assertTrue(decision.rephrase_prompt)

    def test_non_text_is_rejected(self) -> None:
        _, decision = apply_utterance_gate(None)
        self.assertEqual(decision.decision, "reject")
        self.assertIn("input_not_text", decision.reason_codes)

    def test_over_long_input_is_rejected(self) -> None:
        _, decision = apply_utterance_gate("budget " * 400, max_chars=2000)
        self.assertEqual(decision.decision, "reject")
        self.assertIn("input_too_long", decision.reason_codes)

    def test_punctuation_only_is_rejected(self) -> None:
        _, decision = apply_utterance_gate("?!?!")
        self.assertEqual(decision.decision, "reject")
        self.assertIn("input_no_words", decision.reason_codes)

    def test_mojibake_is_repaired(self) -> None:
        garbled = "Café budget".encode("utf-8").decode("latin-1")

        text, decision = apply_utterance_gate(garbled)

        self.assertEqual(text, "Café budget")
        self.assertEqual(decision.decision, "repair")
        self.assertTrue(decision.repair_applied)
        self.assertTrue(any(code.startswith("repair_applied_") for code in decision.reason_codes))

    def test_unrecoverable_garbage_is_rejected(self) -> None:
        _, decision = apply_utterance_gate("�" * 10 + "ab")
        self.assertEqual(decision.decision, "reject")
        self.assertIn("input_garbled", decision.reason_codes)
        self.assertGreaterEqual(decision.mojibake_score, 0.45)


if __name__ == "__main__":
    unittest.main()
