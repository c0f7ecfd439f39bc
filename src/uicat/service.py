from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from uicat.assemble import MODES, RELAXED, STRICT, SearchTrace, build_response, component_output, profile_for_mode
from uicat.catalog import all_components, find_component, load_catalog_file, upsert_components
from uicat.config import AppConfig
from uicat.db import Database
from uicat.embedder import HashingEmbedder, TextEmbedder, candidate_embedding_text, text_hash
from uicat.errors import SearchValidationError
from uicat.filters import NO_FILTERS, ComponentFilters, apply_residual_filter
from uicat.output_models import DebugOutput, FusionConstantsOutput, SearchResponse
from uicat.planner import select_seed_query
from uicat.rank.fuzzy import SequenceFuzzyMatcher
from uicat.rank.lexical import STRICT_PROFILE, FuzzyMatcher, rank_lexical
from uicat.rank.rrf import dedupe_semantic, fuse_rankings
from uicat.store import CandidateStore, SqliteCandidateStore
from uicat.vectors import (
    EmbeddingEntry,
    SemanticRanker,
    VectorSemanticRanker,
    delete_embeddings,
    stored_text_hashes,
    upsert_embeddings,
)

logger = logging.getLogger(__name__)


def _validate_limit(limit: Any) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise SearchValidationError(f"limit must be a positive integer, received: {limit!r}")
    return limit


class CatalogService:
    def __init__(
        self,
        config: AppConfig,
        store: CandidateStore | None = None,
        semantic: SemanticRanker | None = None,
        matcher: FuzzyMatcher | None = None,
        embedder: TextEmbedder | None = None,
    ):
        self.config = config
        self.db = Database(config.db_path)
        self.db.initialize()
        self.embedder: TextEmbedder = embedder or HashingEmbedder(dim=config.embed.dim, model=config.embed.model)
        self.store: CandidateStore = store or SqliteCandidateStore(self.db)
        self.semantic: SemanticRanker = semantic or VectorSemanticRanker(
            self.db, self.embedder, min_similarity=config.embed.min_similarity
        )
        self.matcher: FuzzyMatcher = matcher or SequenceFuzzyMatcher()

    async def search(
        self,
        query: str,
        filters: ComponentFilters | None = None,
        limit: int | None = None,
        mode: str = STRICT,
        debug: bool = False,
    ) -> SearchResponse:
        normalized_query = query.strip() if isinstance(query, str) else ""
        if not normalized_query:
            raise SearchValidationError("Search query must be non-empty.")
        display_limit = _validate_limit(self.config.search.default_limit if limit is None else limit)
        if mode not in MODES:
            raise SearchValidationError(f"unknown search mode: {mode!r} (expected one of {', '.join(MODES)})")

        cfg = self.config.search
        filters = filters or NO_FILTERS
        seed = select_seed_query(filters)
        logger.debug("search %r mode=%s seed=%s", normalized_query, mode, seed.kind)

        raw_candidates, semantic_hits = await asyncio.gather(
            self.store.query(seed),
            self.semantic.rank(normalized_query, filters, cfg.semantic_pool_limit),
        )
        candidates = apply_residual_filter(raw_candidates, filters)

        strict_ranked = rank_lexical(
            candidates,
            normalized_query,
            max(display_limit, cfg.lexical_pool_limit),
            STRICT_PROFILE,
            self.matcher,
        )
        strict_result_count = min(len(strict_ranked), display_limit)
        if mode == RELAXED:
            lexical_pool = rank_lexical(
                candidates,
                normalized_query,
                cfg.lexical_pool_limit,
                profile_for_mode(mode),
                self.matcher,
            )
        else:
            lexical_pool = strict_ranked[: cfg.lexical_pool_limit]

        semantic_pool = dedupe_semantic(semantic_hits)[: cfg.semantic_pool_limit]
        fused = fuse_rankings(
            lexical_pool,
            semantic_pool,
            k=cfg.rrf_k,
            w_lexical=cfg.w_lexical,
            w_semantic=cfg.w_semantic,
        )
        logger.debug(
            "candidates=%d raw=%d lexical=%d semantic=%d fused=%d",
            len(candidates),
            len(raw_candidates),
            len(lexical_pool),
            len(semantic_pool),
            len(fused),
        )

        trace = SearchTrace(
            query=normalized_query,
            mode=mode,
            limit=display_limit,
            filters=filters,
            seed_kind=seed.kind,
            candidates=candidates,
            lexical_pool=lexical_pool,
            semantic_pool=semantic_pool,
            fused=fused,
            strict_result_count=strict_result_count,
            semantic_similarity={h.id: h.similarity for h in semantic_hits if h.similarity is not None},
        )
        debug_info: DebugOutput | None = None
        if debug:
            debug_info = DebugOutput(
                seed_query=seed.kind,
                lexical_profile=profile_for_mode(mode).name,
                constants=FusionConstantsOutput(
                    rrf_k=cfg.rrf_k,
                    w_lexical=cfg.w_lexical,
                    w_semantic=cfg.w_semantic,
                    lexical_pool_limit=cfg.lexical_pool_limit,
                    semantic_pool_limit=cfg.semantic_pool_limit,
                ),
                lexical_pool_size=len(lexical_pool),
                semantic_pool_size=len(semantic_pool),
                fused_count=len(fused),
            )
        return build_response(trace, debug_info)

    def search_sync(
        self,
        query: str,
        filters: ComponentFilters | None = None,
        limit: int | None = None,
        mode: str = STRICT,
        debug: bool = False,
        timeout: float | None = None,
    ) -> SearchResponse:
        timeout = self.config.search.timeout_s if timeout is None else timeout
        coro = self.search(query, filters=filters, limit=limit, mode=mode, debug=debug)
        if timeout is None:
            return asyncio.run(coro)
        return asyncio.run(asyncio.wait_for(coro, timeout=timeout))

    def import_catalog(self, path: Path, embed: bool = True) -> dict[str, Any]:
        docs = load_catalog_file(path)
        with self.db.connect() as conn:
            stats = upsert_components(conn, docs)
        out: dict[str, Any] = {
            "path": str(path),
            "scanned": stats.scanned,
            "inserted": stats.inserted,
            "updated": stats.updated,
        }
        if embed:
            out["embeddings"] = self.embed()
        return out

    def embed(self, force: bool = False) -> dict[str, Any]:
        model_id = self.embedder.model_id
        with self.db.connect() as conn:
            components = all_components(conn)
            existing = stored_text_hashes(conn, model_id)

            entries: list[EmbeddingEntry] = []
            skipped = 0
            for candidate in components:
                doc_text = candidate_embedding_text(candidate)
                digest = text_hash(doc_text)
                if not force and existing.get(candidate.id) == digest:
                    skipped += 1
                    continue
                entries.append(
                    EmbeddingEntry(
                        component_id=candidate.id,
                        model=model_id,
                        embedding=self.embedder.embed_text(doc_text),
                        text_hash=digest,
                    )
                )
            stats = upsert_embeddings(conn, entries, dim=self.embedder.dim)

            stale = conn.execute(
                "SELECT component_id FROM component_embeddings WHERE model != ? OR dim != ?",
                (model_id, self.embedder.dim),
            ).fetchall()
            removed = delete_embeddings(conn, [str(r["component_id"]) for r in stale])

        return {
            "embedded": stats.inserted + stats.updated,
            "inserted": stats.inserted,
            "updated": stats.updated,
            "unchanged": stats.unchanged + skipped,
            "removed": removed,
            "model_id": model_id,
            "dim": self.embedder.dim,
        }

    def get(self, identifier: str) -> dict[str, Any] | None:
        with self.db.connect() as conn:
            candidate = find_component(conn, identifier)
        if candidate is None:
            return None
        return component_output(candidate).model_dump()

    def status(self) -> dict[str, Any]:
        with self.db.connect() as conn:
            counts: dict[str, Any] = {
                "components": int(conn.execute("SELECT COUNT(*) AS n FROM components").fetchone()["n"]),
                "annotated": int(conn.execute("SELECT COUNT(*) AS n FROM component_search").fetchone()["n"]),
                "embeddings": int(conn.execute("SELECT COUNT(*) AS n FROM component_embeddings").fetchone()["n"]),
            }
            model = conn.execute(
                """
                SELECT model, COUNT(*) AS n
                FROM component_embeddings
                GROUP BY model
                ORDER BY n DESC
                LIMIT 1
                """
            ).fetchone()
        counts["embedding_model"] = model["model"] if model else None
        counts["db_path"] = str(self.db.path)
        return counts
