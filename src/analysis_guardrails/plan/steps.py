"""Heuristic step counting for the HOW field of an action.

Strategies run in a fixed order; the first one that finds at least MIN_MATCHES
steps wins. When none does, sentences are counted (capped).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

MIN_TEXT_LENGTH = 10
MIN_MATCHES = 4
SENTENCE_CAP = 15
MIN_SENTENCE_LENGTH = 10

_NUMBERED_RE = re.compile(r"\d+[\.\)]")
_SEPARATOR_RE = re.compile(r"[,;]|\.(?=\s+[A-Z])")
_BULLET_RE = re.compile(r"[-•*]\s")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


@dataclass(frozen=True)
class StepCount:
    strategy: str
    count: int


def count_numbered(text: str) -> int:
    return len(_NUMBERED_RE.findall(text))


def count_separated(text: str) -> int:
    separators = _SEPARATOR_RE.findall(text)
    return len(separators) + 1 if separators else 0


def count_bullets(text: str) -> int:
    return len(_BULLET_RE.findall(text))


def count_sentences(text: str, cap: int = SENTENCE_CAP) -> int:
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if len(s.strip()) > MIN_SENTENCE_LENGTH]
    return min(len(sentences), cap)


STRATEGIES: tuple[tuple[str, Callable[[str], int]], ...] = (
    ("numbered", count_numbered),
    ("separators", count_separated),
    ("bullets", count_bullets),
)


def count_how_steps(
    how: Optional[str],
    *,
    min_matches: int = MIN_MATCHES,
    sentence_cap: int = SENTENCE_CAP,
) -> StepCount:
    text = (how or "").strip()
    if len(text) < MIN_TEXT_LENGTH:
        return StepCount("empty", 0)

    for name, strategy in STRATEGIES:
        n = strategy(text)
        if n >= min_matches:
            return StepCount(name, n)

    return StepCount("sentences", count_sentences(text, sentence_cap))
