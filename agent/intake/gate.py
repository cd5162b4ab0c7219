from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import Any

from .contracts import InputDecisionV1

_COMMON_MOJIBAKE_PATTERNS = (
    "Ã",
    "Â",
    "â€",
    "Æ",
)
_CONTROL_ALLOWLIST = {"\n", "\r", "\t"}
_SUPPORTED_NORMALIZATION_FORMS = {"NFC", "NFD", "NFKC", "NFKD"}
_WORD_PATTERN = re.compile(r"[A-Za-z0-9]")

REPHRASE_EMPTY = "I didn't catch a question there. Could you type what you'd like to know about your finances?"
REPHRASE_TOO_LONG = "That message is a bit long for me. Could you shorten it to a single question?"
REPHRASE_GARBLED = "Some characters in your message came through garbled. Could you rephrase it?"
REPHRASE_NO_TEXT = "I couldn't find any words in that message. Could you rephrase your question?"


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _stable_fingerprint(text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8", errors="replace")).hexdigest()
    return digest[:16]


def _safe_normalize(text: str, form: str) -> tuple[str, str]:
    normalized_form = str(form or "NFC").upper()
    if normalized_form not in _SUPPORTED_NORMALIZATION_FORMS:
        normalized_form = "NFC"
    return unicodedata.normalize(normalized_form, text), normalized_form


def _replacement_char_ratio(text: str) -> float:
    if not text:
        return 0.0
    return text.count("\ufffd") / max(1, len(text))


def _mojibake_pattern_ratio(text: str) -> float:
    if not text:
        return 0.0
    total_hits = sum(text.count(pattern) for pattern in _COMMON_MOJIBAKE_PATTERNS)
    return total_hits / max(1, len(text))


def _control_char_ratio(text: str) -> float:
    if not text:
        return 0.0
    hits = 0
    for char in text:
        if char in _CONTROL_ALLOWLIST:
            continue
        if unicodedata.category(char).startswith("C"):
            hits += 1
    return hits / max(1, len(text))


def _score_mojibake(text: str) -> tuple[float, list[str]]:
    replacement_ratio = _replacement_char_ratio(text)
    pattern_ratio = _mojibake_pattern_ratio(text)
    control_ratio = _control_char_ratio(text)

    reasons: list[str] = []
    if replacement_ratio > 0:
        reasons.append("replacement_char_detected")
    if pattern_ratio > 0:
        reasons.append("mojibake_pattern_detected")
    if control_ratio > 0:
        reasons.append("control_char_detected")
    if not reasons:
        reasons.append("clean_utf8")

    score = (replacement_ratio * 0.65) + (pattern_ratio * 2.5) + (control_ratio * 1.8)
    return _clamp01(score), reasons


def _attempt_repair(text: str, strategy: str) -> str | None:
    try:
        if strategy == "latin1_to_utf8":
            return text.encode("latin-1").decode("utf-8")
        if strategy == "cp1252_to_utf8":
            return text.encode("cp1252").decode("utf-8")
    except UnicodeError:
        return None
    return None


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _reject(
    *,
    reason: str,
    rephrase_prompt: str,
    fingerprint: str,
    score: float = 0.0,
    reason_codes: list[str] | None = None,
) -> InputDecisionV1:
    return InputDecisionV1(
        decision="reject",
        mojibake_score=_clamp01(score),
        reason_codes=sorted(set([*(reason_codes or []), reason])),
        input_fingerprint=fingerprint,
        rephrase_prompt=rephrase_prompt,
    )


def apply_utterance_gate(
    utterance: Any,
    *,
    max_chars: int = 2000,
    repair_enabled: bool = True,
    repair_score_min: float = 0.12,
    reject_score_min: float = 0.45,
    repair_min_delta: float = 0.10,
    normalization_form: str = "NFC",
) -> tuple[str, InputDecisionV1]:
    if not isinstance(utterance, str):
        fingerprint = _stable_fingerprint(repr(utterance))
        return "", _reject(reason="input_not_text", rephrase_prompt=REPHRASE_EMPTY, fingerprint=fingerprint)

    fingerprint = _stable_fingerprint(utterance)
    normalized, normalized_form = _safe_normalize(utterance, normalization_form)
    normalized = _collapse_whitespace(normalized)
    if not normalized:
        return "", _reject(reason="input_empty", rephrase_prompt=REPHRASE_EMPTY, fingerprint=fingerprint)
    if len(normalized) > max(1, int(max_chars)):
        return "", _reject(reason="input_too_long", rephrase_prompt=REPHRASE_TOO_LONG, fingerprint=fingerprint)

    score, reason_codes = _score_mojibake(normalized)
    selected_text = normalized
    selected_score = score
    selected_guess = ""
    selected_repair_applied = False

    if repair_enabled and score >= max(0.0, float(repair_score_min)):
        candidates: list[tuple[float, str, str]] = []
        for strategy in ("latin1_to_utf8", "cp1252_to_utf8"):
            repaired = _attempt_repair(normalized, strategy)
            if repaired is None:
                continue
            repaired_norm, _ = _safe_normalize(repaired, normalized_form)
            repaired_score, _ = _score_mojibake(repaired_norm)
            if score - repaired_score >= float(repair_min_delta):
                candidates.append((repaired_score, strategy, _collapse_whitespace(repaired_norm)))
        if candidates:
            candidates.sort(key=lambda item: (item[0], item[1]))
            selected_score, selected_guess, selected_text = candidates[0]
            selected_repair_applied = True
            reason_codes.append(f"repair_applied_{selected_guess}")
        else:
            reason_codes.append("repair_not_improved")

    if selected_score >= float(reject_score_min):
        return "", _reject(
            reason="input_garbled",
            rephrase_prompt=REPHRASE_GARBLED,
            fingerprint=fingerprint,
            score=selected_score,
            reason_codes=reason_codes,
        )
    if not _WORD_PATTERN.search(selected_text):
        return "", _reject(
            reason="input_no_words",
            rephrase_prompt=REPHRASE_NO_TEXT,
            fingerprint=fingerprint,
            score=selected_score,
            reason_codes=reason_codes,
        )

    decision = InputDecisionV1(
        decision="repair" if selected_repair_applied else "pass",
        mojibake_score=_clamp01(selected_score),
        repair_applied=selected_repair_applied,
        encoding_guess=selected_guess,
        reason_codes=sorted(set([*reason_codes, f"normalized_{normalized_form.lower()}"])),
        input_fingerprint=fingerprint,
    )
    return selected_text, decision
