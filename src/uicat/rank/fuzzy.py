from __future__ import annotations

from difflib import SequenceMatcher
import sys
from typing import Sequence

from uicat.models import ComponentCandidate
from uicat.rank.lexical import LexicalProfile

EPSILON = sys.float_info.epsilon


def value_distance(query: str, text: str, min_match_length: int) -> float | None:
    """Fraction of the query not covered by matching runs in ``text``.

    Both arguments are expected lower-cased. Returns ``None`` when the query is
    shorter than ``min_match_length`` or no run of that length is shared.
    """
    if not query or not text or len(query) < min_match_length:
        return None
    if query in text:
        return 0.0
    matcher = SequenceMatcher(None, query, text, autojunk=False)
    covered = sum(block.size for block in matcher.get_matching_blocks() if block.size >= min_match_length)
    if covered <= 0:
        return None
    return max(0.0, 1.0 - covered / len(query))


def _field_values(candidate: ComponentCandidate, attr: str) -> list[str]:
    value = getattr(candidate, attr)
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


class SequenceFuzzyMatcher:
    """difflib-backed fuzzy matcher; location in the field is ignored."""

    def field_distance(self, query: str, values: Sequence[str], profile: LexicalProfile) -> float | None:
        best: float | None = None
        for raw in values:
            d = value_distance(query, raw.lower(), profile.min_match_length)
            if d is None or d > profile.threshold:
                continue
            if best is None or d < best:
                best = d
        return best

    def candidate_distance(self, query: str, candidate: ComponentCandidate, profile: LexicalProfile) -> float | None:
        total_weight = sum(f.weight for f in profile.fields)
        score = 1.0
        matched = False
        for fld in profile.fields:
            d = self.field_distance(query, _field_values(candidate, fld.attr), profile)
            if d is None:
                continue
            matched = True
            score *= max(d, EPSILON) ** (fld.weight / total_weight)
        if not matched:
            return None
        return score

    def match(
        self,
        query: str,
        candidates: Sequence[ComponentCandidate],
        profile: LexicalProfile,
    ) -> list[tuple[ComponentCandidate, float]]:
        q = query.strip().lower()
        scored: list[tuple[int, float]] = []
        for idx, candidate in enumerate(candidates):
            d = self.candidate_distance(q, candidate, profile)
            if d is not None:
                scored.append((idx, d))
        scored.sort(key=lambda x: (x[1], x[0]))
        return [(candidates[idx], d) for idx, d in scored]
