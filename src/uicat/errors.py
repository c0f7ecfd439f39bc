from __future__ import annotations


class SearchValidationError(ValueError):
    """Raised for malformed search input, before any store or ranker call."""


class CatalogError(ValueError):
    """Raised when catalog documents or embeddings cannot be stored."""
