"""Storage backends for the index daemon."""

from .vector import VectorStore, quote_literal

__all__ = ["VectorStore", "quote_literal"]
