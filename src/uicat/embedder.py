from __future__ import annotations

import hashlib
import re
from typing import Iterable, Protocol

import numpy as np

from uicat.models import ComponentCandidate

TOKEN_RE = re.compile(r"[a-zA-Z0-9]+")
WS_RE = re.compile(r"\s+")


def _normalize_text(value: str) -> str:
    return WS_RE.sub(" ", value).strip()


def _normalize_list(values: Iterable[str]) -> list[str]:
    cleaned = {_normalize_text(v) for v in values}
    return sorted(v for v in cleaned if v)


def _serialize_list(values: list[str]) -> str:
    return " | ".join(values) if values else "(none)"


def build_embedding_text(
    name: str,
    intent: str,
    capabilities: Iterable[str],
    synonyms: Iterable[str],
    topics: Iterable[str],
) -> str:
    n = _normalize_text(name)
    i = _normalize_text(intent)
    return "\n".join(
        [
            f"name: {n or '(unnamed)'}",
            f"intent: {i or '(none)'}",
            f"capabilities: {_serialize_list(_normalize_list(capabilities))}",
            f"synonyms: {_serialize_list(_normalize_list(synonyms))}",
            f"topics: {_serialize_list(_normalize_list(topics))}",
        ]
    )


def candidate_embedding_text(candidate: ComponentCandidate) -> str:
    return build_embedding_text(
        candidate.name,
        candidate.intent,
        candidate.capabilities,
        candidate.synonyms,
        candidate.topics,
    )


def text_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _normalize(vec: np.ndarray) -> np.ndarray:
    n = float(np.linalg.norm(vec))
    if n <= 0:
        return vec.astype(np.float32)
    return (vec / n).astype(np.float32)


class TextEmbedder(Protocol):
    """Anything that can turn catalog text and queries into vectors of a fixed size."""

    model_id: str
    dim: int

    def embed_text(self, text: str) -> np.ndarray: ...

    def embed_query(self, query: str) -> np.ndarray: ...


class HashingEmbedder:
    """Signed feature-hashing bag of words.

    Deterministic and dependency-light; good enough to rank a small catalog by
    vocabulary overlap with the query.
    """

    def __init__(self, dim: int = 256, model: str = "hashed-bow"):
        if dim <= 0:
            raise ValueError(f"embedding dim must be positive, got {dim}")
        self.dim = dim
        self.model_id = f"{model}-{dim}"

    def embed_text(self, text: str) -> np.ndarray:
        vec = np.zeros((self.dim,), dtype=np.float32)
        tokens = TOKEN_RE.findall(text.lower())
        if not tokens:
            return vec
        for tok in tokens:
            h = hashlib.sha256(tok.encode("utf-8")).digest()
            i = int.from_bytes(h[:4], "big") % self.dim
            sign = 1.0 if (h[4] % 2 == 0) else -1.0
            vec[i] += sign
        return _normalize(vec)

    def embed_query(self, query: str) -> np.ndarray:
        return self.embed_text(query)
