"""docmap: fuzzy matching of reference descriptions to virtual file paths."""

from .api import auto_match, build_index, search
from .indexers.search_index import SearchIndex
from .query.learning import LearningEngine
from .schema.models import AutoMatchResult, RankedMatch, Reference, Suggestion

__version__ = "0.1.0"

__all__ = [
    "AutoMatchResult",
    "LearningEngine",
    "RankedMatch",
    "Reference",
    "SearchIndex",
    "Suggestion",
    "auto_match",
    "build_index",
    "search",
    "__version__",
]
