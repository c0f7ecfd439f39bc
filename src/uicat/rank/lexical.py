from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from uicat.models import ComponentCandidate
from uicat.rank.rrf import LEXICAL, RankedItem


@dataclass(slots=True, frozen=True)
class LexicalField:
    attr: str
    weight: float


@dataclass(slots=True, frozen=True)
class LexicalProfile:
    name: str
    threshold: float
    min_match_length: int
    fields: tuple[LexicalField, ...]


CATALOG_FIELDS = (
    LexicalField("name", 0.36),
    LexicalField("intent", 0.27),
    LexicalField("capabilities", 0.14),
    LexicalField("synonyms", 0.12),
    LexicalField("topics", 0.07),
)

STRICT_PROFILE = LexicalProfile(
    name="strict",
    threshold=0.32,
    min_match_length=2,
    fields=CATALOG_FIELDS,
)

# Raw ids are matchable in relaxed mode so identifier fragments still surface.
RELAXED_PROFILE = LexicalProfile(
    name="relaxed",
    threshold=1.0,
    min_match_length=1,
    fields=(*CATALOG_FIELDS, LexicalField("id", 0.02)),
)


class FuzzyMatcher(Protocol):
    def match(
        self,
        query: str,
        candidates: Sequence[ComponentCandidate],
        profile: LexicalProfile,
    ) -> list[tuple[ComponentCandidate, float]]:
        """Return matching candidates best first with a distance (lower is better)."""
        ...


def rank_lexical(
    candidates: Sequence[ComponentCandidate],
    query: str,
    limit: int,
    profile: LexicalProfile,
    matcher: FuzzyMatcher | None = None,
) -> list[RankedItem]:
    if not candidates or limit <= 0:
        return []
    if matcher is None:
        from uicat.rank.fuzzy import SequenceFuzzyMatcher

        matcher = SequenceFuzzyMatcher()

    out: list[RankedItem] = []
    seen: set[str] = set()
    for candidate, distance in matcher.match(query, candidates, profile):
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        out.append(RankedItem(id=candidate.id, rank=len(out) + 1, source=LEXICAL, distance=distance))
        if len(out) >= limit:
            break
    return out
