from .search_index import SearchIndex, build_index

__all__ = ["SearchIndex", "build_index"]
