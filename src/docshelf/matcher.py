"""Fuzzy filename matching and match highlighting.

Scores are integers in [0, 100]; 0 means "no match". Comparison is
case-insensitive throughout.
"""

from __future__ import annotations

import re

EXACT_SCORE = 100
SUBSTRING_SCORE = 90
SUBSEQUENCE_CAP = 85
CONSECUTIVE_BONUS = 30
WORD_PREFIX_SCORE = 70
WORD_CONTAINS_SCORE = 60

_WORD_SEPARATORS = re.compile(r"[\s\-_.]+")


def score(candidate: str, query: str) -> int:
    """Score how well ``query`` matches ``candidate``.

    Rules are tried in order and the first that applies wins:
    1. Exact match (100)
    2. Contiguous substring (90)
    3. Subsequence: every query character appears in order. Scored by how
       early the last matched character sits, plus a bonus for adjacent
       matches, capped at 85.
    4. A word of the candidate starts with (70) or contains (60) the query
    5. Otherwise 0
    """
    text = candidate.lower()
    term = query.lower()

    if text == term:
        return EXACT_SCORE

    if term in text:
        return SUBSTRING_SCORE

    subsequence = _subsequence_score(text, term)
    if subsequence is not None:
        return subsequence

    for word in _WORD_SEPARATORS.split(text):
        if not word:
            continue
        if word.startswith(term):
            return WORD_PREFIX_SCORE
        if term in word:
            return WORD_CONTAINS_SCORE

    return 0


def _subsequence_score(text: str, term: str) -> int | None:
    """Score a greedy in-order match of term's characters, or None if absent."""
    matched = 0
    last_index = -1
    consecutive = 0

    for i, char in enumerate(text):
        if matched == len(term):
            break
        if char == term[matched]:
            # A match at position 0 counts as adjacent to the virtual start
            if i == last_index + 1:
                consecutive += 1
            last_index = i
            matched += 1

    if matched < len(term):
        return None

    position_score = 100 - last_index
    bonus = consecutive / len(term) * CONSECUTIVE_BONUS
    total = min(position_score + bonus, SUBSEQUENCE_CAP)
    # Long candidates can push the position score to zero or below; that is a miss
    if total <= 0:
        return 0
    # Any positive score is still a match, even below 1
    return max(1, int(total))


def highlight_segments(text: str, term: str) -> list[tuple[str, bool]]:
    """Split text into (segment, is_match) pairs around occurrences of term.

    Matching is literal and case-insensitive. A blank term yields the whole
    text as a single unmatched segment.
    """
    if not term.strip():
        return [(text, False)] if text else []

    pattern = re.compile(f"({re.escape(term)})", re.IGNORECASE)
    segments: list[tuple[str, bool]] = []
    # With one capture group, odd indices are the matched separators
    for i, part in enumerate(pattern.split(text)):
        if part:
            segments.append((part, i % 2 == 1))
    return segments
