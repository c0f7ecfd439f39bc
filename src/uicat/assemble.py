"""Result assembly: truncation, hydration and the response envelope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from uicat.filters import ComponentFilters
from uicat.models import ComponentCandidate
from uicat.output_models import (
    ComponentOutput,
    DebugOutput,
    DependencyOutput,
    ScoresOutput,
    SearchResponse,
    SearchResultOutput,
)
from uicat.rank.lexical import RELAXED_PROFILE, STRICT_PROFILE, LexicalProfile
from uicat.rank.rrf import FusedResult, RankedItem

STRICT = "strict"
RELAXED = "relaxed"
MODES = (STRICT, RELAXED)


def profile_for_mode(mode: str) -> LexicalProfile:
    return RELAXED_PROFILE if mode == RELAXED else STRICT_PROFILE


@dataclass(slots=True)
class SearchTrace:
    """Intermediate state of one search, kept for the envelope and debug output."""

    query: str
    mode: str
    limit: int
    filters: ComponentFilters
    seed_kind: str
    candidates: list[ComponentCandidate]
    lexical_pool: list[RankedItem]
    semantic_pool: list[RankedItem]
    fused: list[FusedResult]
    strict_result_count: int
    semantic_similarity: dict[str, float] = field(default_factory=dict)


def _dependencies(candidate: ComponentCandidate) -> list[DependencyOutput]:
    return [DependencyOutput(name=d.name, kind=d.kind) for d in candidate.dependencies]


def _contributions(result: FusedResult) -> list[str]:
    out: list[str] = []
    if result.lexical_rank is not None:
        out.append("lexical")
    if result.semantic_rank is not None:
        out.append("semantic")
    return out


def component_output(candidate: ComponentCandidate) -> ComponentOutput:
    return ComponentOutput(
        id=candidate.id,
        name=candidate.name,
        framework=candidate.framework,
        styling=candidate.styling,
        motion_level=candidate.motion_level,
        primitive_library=candidate.primitive_library,
        animation_library=candidate.animation_library,
        intent=candidate.intent,
        capabilities=list(candidate.capabilities),
        synonyms=list(candidate.synonyms),
        topics=list(candidate.topics),
        source_url=candidate.source_url,
        source_library=candidate.source_library,
        source_author=candidate.source_author,
        dependencies=_dependencies(candidate),
    )


def assemble_results(
    fused: Sequence[FusedResult],
    candidates: Sequence[ComponentCandidate],
    limit: int,
    debug: bool = False,
    lexical_pool: Sequence[RankedItem] = (),
    semantic_similarity: dict[str, float] | None = None,
) -> list[SearchResultOutput]:
    """Hydrate fused ids from the candidate set, best first, at most ``limit``.

    Ids outside the candidate set failed the residual filter (or no longer
    exist) and are skipped before truncation.
    """
    by_id = {c.id: c for c in candidates}
    distances = {item.id: item.distance for item in lexical_pool}
    similarity = semantic_similarity or {}

    out: list[SearchResultOutput] = []
    for result in fused:
        if len(out) >= limit:
            break
        candidate = by_id.get(result.id)
        if candidate is None:
            continue

        scores: ScoresOutput | None = None
        if debug:
            scores = ScoresOutput(
                overall=result.score,
                rrf_lexical=result.lexical_score,
                rrf_semantic=result.semantic_score,
                lexical_rank=result.lexical_rank,
                semantic_rank=result.semantic_rank,
                lexical_distance=distances.get(result.id),
                semantic_similarity=similarity.get(result.id),
                contributions=_contributions(result),
            )

        out.append(
            SearchResultOutput(
                id=candidate.id,
                name=candidate.name,
                framework=candidate.framework,
                styling=candidate.styling,
                motion_level=candidate.motion_level,
                primitive_library=candidate.primitive_library,
                animation_library=candidate.animation_library,
                intent=candidate.intent,
                capabilities=list(candidate.capabilities),
                synonyms=list(candidate.synonyms),
                topics=list(candidate.topics),
                source_url=candidate.source_url,
                dependencies=_dependencies(candidate),
                reason=result.reason,
                score=result.score,
                lexical_rank=result.lexical_rank,
                semantic_rank=result.semantic_rank,
                scores=scores,
            )
        )
    return out


def build_response(
    trace: SearchTrace,
    debug_info: DebugOutput | None = None,
) -> SearchResponse:
    results = assemble_results(
        trace.fused,
        trace.candidates,
        trace.limit,
        debug=debug_info is not None,
        lexical_pool=trace.lexical_pool,
        semantic_similarity=trace.semantic_similarity,
    )
    return SearchResponse(
        query=trace.query,
        mode=trace.mode,
        relaxed=trace.mode == RELAXED,
        strict_result_count=trace.strict_result_count,
        candidate_count=len(trace.candidates),
        result_count=len(results),
        filters=trace.filters.as_dict(),
        results=results,
        debug=debug_info,
    )
