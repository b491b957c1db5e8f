from .similarity_cache import DEFAULT_MAX_ENTRIES, SimilarityCache

__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "SimilarityCache",
]
