from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class DependencyOutput(BaseModel):
    name: str
    kind: str


class ScoresOutput(BaseModel):
    overall: float
    rrf_lexical: float = 0.0
    rrf_semantic: float = 0.0
    lexical_rank: int | None = None
    semantic_rank: int | None = None
    lexical_distance: float | None = None
    semantic_similarity: float | None = None
    contributions: list[str] = []


class SearchResultOutput(BaseModel):
    id: str
    name: str
    framework: str
    styling: str
    motion_level: str
    primitive_library: str
    animation_library: str
    intent: str
    capabilities: list[str] = []
    synonyms: list[str] = []
    topics: list[str] = []
    source_url: str = ""
    dependencies: list[DependencyOutput] = []
    reason: str
    score: float
    lexical_rank: int | None = None
    semantic_rank: int | None = None
    scores: ScoresOutput | None = None


class FusionConstantsOutput(BaseModel):
    rrf_k: int
    w_lexical: float
    w_semantic: float
    lexical_pool_limit: int
    semantic_pool_limit: int


class DebugOutput(BaseModel):
    seed_query: str
    lexical_profile: str
    constants: FusionConstantsOutput
    lexical_pool_size: int
    semantic_pool_size: int
    fused_count: int


class SearchResponse(BaseModel):
    query: str
    mode: str
    relaxed: bool
    strict_result_count: int
    candidate_count: int
    result_count: int
    filters: dict[str, Any] = {}
    results: list[SearchResultOutput] = []
    debug: DebugOutput | None = None


class ComponentOutput(BaseModel):
    id: str
    name: str
    framework: str
    styling: str
    motion_level: str
    primitive_library: str
    animation_library: str
    intent: str
    capabilities: list[str] = []
    synonyms: list[str] = []
    topics: list[str] = []
    source_url: str = ""
    source_library: str | None = None
    source_author: str | None = None
    dependencies: list[DependencyOutput] = []
