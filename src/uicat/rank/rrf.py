"""Reciprocal rank fusion of the lexical and semantic pools.

Each id scores ``w_lexical / (k + lexical_rank) + w_semantic / (k + semantic_rank)``
over the ranks it holds. Ordering is total: score, then best single rank,
then lexical rank, then semantic rank, then id.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable, Sequence

from uicat.models import SemanticHit

LEXICAL = "lexical"
SEMANTIC = "semantic"
BOTH = "both"

DEFAULT_K = 20
DEFAULT_W_LEXICAL = 1.2
DEFAULT_W_SEMANTIC = 1.0


@dataclass(slots=True, frozen=True)
class RankedItem:
    id: str
    rank: int
    source: str
    distance: float | None = None


@dataclass(slots=True)
class FusedResult:
    id: str
    score: float
    reason: str
    lexical_rank: int | None = None
    semantic_rank: int | None = None
    lexical_score: float = 0.0
    semantic_score: float = 0.0


def dedupe_semantic(hits: Iterable[SemanticHit]) -> list[RankedItem]:
    out: list[RankedItem] = []
    seen: set[str] = set()
    for hit in hits:
        if hit.id in seen:
            continue
        seen.add(hit.id)
        out.append(RankedItem(id=hit.id, rank=int(hit.semantic_rank), source=SEMANTIC))
    return out


def _rank_map(items: Sequence[RankedItem]) -> dict[str, int]:
    ranks: dict[str, int] = {}
    for item in items:
        ranks.setdefault(item.id, item.rank)
    return ranks


def _sort_key(result: FusedResult) -> tuple[float, float, float, float, str]:
    lex = result.lexical_rank if result.lexical_rank is not None else math.inf
    sem = result.semantic_rank if result.semantic_rank is not None else math.inf
    return (-result.score, min(lex, sem), lex, sem, result.id)


def fuse_rankings(
    lexical: Sequence[RankedItem],
    semantic: Sequence[RankedItem],
    k: int = DEFAULT_K,
    w_lexical: float = DEFAULT_W_LEXICAL,
    w_semantic: float = DEFAULT_W_SEMANTIC,
) -> list[FusedResult]:
    lexical_ranks = _rank_map(lexical)
    semantic_ranks = _rank_map(semantic)

    fused: list[FusedResult] = []
    for item_id in {*lexical_ranks, *semantic_ranks}:
        lex_rank = lexical_ranks.get(item_id)
        sem_rank = semantic_ranks.get(item_id)
        lex_score = w_lexical / (k + lex_rank) if lex_rank is not None else 0.0
        sem_score = w_semantic / (k + sem_rank) if sem_rank is not None else 0.0

        if lex_rank is not None and sem_rank is not None:
            reason = BOTH
        elif lex_rank is not None:
            reason = LEXICAL
        else:
            reason = SEMANTIC

        fused.append(
            FusedResult(
                id=item_id,
                score=lex_score + sem_score,
                reason=reason,
                lexical_rank=lex_rank,
                semantic_rank=sem_rank,
                lexical_score=lex_score,
                semantic_score=sem_score,
            )
        )

    fused.sort(key=_sort_key)
    return fused
