# auto_match is not re-exported here: it depends on indexers, which imports
# the scoring modules below.
from .learning import LearningEngine
from .normalizer import clean_file_name, extract_key_terms
from .path_scorer import fuzzy_score, split_path
from .series_matcher import detect_series, find_path_template, suggest_series_matches
from .similarity import string_similarity
from .wildcard_sort import apply_wildcard_sort, has_pattern_chars, wildcard_to_regex

__all__ = [
    # similarity / normalizer
    "string_similarity",
    "clean_file_name",
    "extract_key_terms",
    # path_scorer
    "fuzzy_score",
    "split_path",
    # wildcard_sort
    "apply_wildcard_sort",
    "has_pattern_chars",
    "wildcard_to_regex",
    # learning
    "LearningEngine",
    # series_matcher
    "detect_series",
    "find_path_template",
    "suggest_series_matches",
]
