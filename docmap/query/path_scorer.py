from __future__ import annotations

from ..storage.similarity_cache import SimilarityCache
from .similarity import string_similarity

FILE_WEIGHT = 0.8
FOLDER_BONUS_WEIGHT = 0.3
FOLDER_ONLY_WEIGHT = 0.8
# Path+filename queries: 0.7 + 0.5, deliberately not normalized to 1.0.
DELIMITED_FILE_WEIGHT = 0.7
DELIMITED_PATH_WEIGHT = 0.5


def split_path(path: str) -> tuple[str, str, list[str]]:
    """Split a virtual path into ``(file_name, path_prefix, folder_names)``.

    ``folder_names`` leaves out the file's own parent folder; only the
    ancestors above it earn a folder bonus.
    """
    parts = str(path or "").split("/")
    file_name = parts.pop() if parts else ""
    return file_name, "/".join(parts), parts[:-1]


def fuzzy_score(
    path: str,
    query: str,
    cache: SimilarityCache | None = None,
) -> float:
    """Score one candidate path against a query.

    ``folder/`` searches folders only, ``folder/file`` weighs both parts, and
    a plain query scores the file name while letting a strong folder match win.
    """
    if not query or not query.strip():
        return 0.0
    file_name, path_prefix, folder_names = split_path(path)

    if query.endswith("/"):
        return string_similarity(path_prefix, query[:-1], cache)

    if "/" in query:
        query_parts = query.split("/")
        query_file = query_parts[-1]
        query_path = "/".join(query_parts[:-1])
        file_score = string_similarity(file_name, query_file, cache)
        path_score = string_similarity(path_prefix, query_path, cache)
        return DELIMITED_FILE_WEIGHT * file_score + DELIMITED_PATH_WEIGHT * path_score

    file_score = string_similarity(file_name, query, cache)
    best_folder = 0.0
    for folder in folder_names:
        best_folder = max(best_folder, string_similarity(folder, query, cache))
    return max(
        FILE_WEIGHT * file_score + FOLDER_BONUS_WEIGHT * best_folder,
        FOLDER_ONLY_WEIGHT * best_folder,
    )
