from __future__ import annotations

import re

_CJK = r"\u4e00-\u9fff"
_STRIP_PATTERN = re.compile(rf"[^A-Za-z0-9_\s{_CJK}]")
_SPACE_PATTERN = re.compile(r"\s+")
_LATIN_WORD = re.compile(r"[A-Za-z]+")
_CJK_RUN = re.compile(rf"[{_CJK}]+")


def normalize_text(text: str) -> str:
    """Lowercases, keeps word characters, whitespace and CJK ideographs, collapses spaces."""

    stripped = _STRIP_PATTERN.sub("", text.lower())
    return _SPACE_PATTERN.sub(" ", stripped).strip()


def tokenize(text: str) -> set[str]:
    """Latin words longer than two letters, plus CJK runs and each ideograph in them."""

    tokens = {word for word in _LATIN_WORD.findall(text) if len(word) > 2}
    for phrase in _CJK_RUN.findall(text):
        tokens.add(phrase)
        tokens.update(phrase)
    return tokens


def jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    return len(left & right) / max(len(union), 1)


def text_similarity(text_a: str | None, text_b: str | None) -> float:
    if not text_a or not text_b:
        return 0.0
    if text_a == text_b:
        return 1.0

    normalized_a = normalize_text(text_a)
    normalized_b = normalize_text(text_b)
    if normalized_a == normalized_b:
        return 1.0

    tokens_a = tokenize(normalized_a)
    tokens_b = tokenize(normalized_b)
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    return jaccard(tokens_a, tokens_b)
