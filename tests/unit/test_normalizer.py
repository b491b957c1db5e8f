from __future__ import annotations

from docmap.query.normalizer import (
    clean_file_name,
    extract_key_terms,
    path_index_tokens,
    query_tokens,
)


def test_clean_file_name_strips_extension_and_version() -> None:
    assert clean_file_name("Contract_v2.pdf") == "contract"


def test_clean_file_name_strips_leading_prefix() -> None:
    assert clean_file_name("ABC-witness_statement.pdf") == "witness statement"


def test_clean_file_name_strips_date_stamp() -> None:
    assert clean_file_name("Notes 2024-01-15.pdf") == "notes"


def test_clean_file_name_collapses_separators() -> None:
    assert clean_file_name("site   visit__photos") == "site visit photos"
    assert clean_file_name("") == ""


def test_extract_key_terms_finds_identifiers() -> None:
    text = "Exhibit APPENDIX-2-001 and CW-12 page 1234"
    assert extract_key_terms(text) == "APPENDIX-2-001 CW-12 1234"
    assert extract_key_terms("tab A5-01") == "A5-01"


def test_extract_key_terms_is_case_sensitive() -> None:
    # Lowercase prefixes are not identifiers; falls back to the cleaned text.
    assert extract_key_terms("see cw-12") == "see cw 12"


def test_extract_key_terms_falls_back_to_clean_name() -> None:
    assert extract_key_terms("Site_Visit_Notes.docx") == "site visit notes"


def test_path_index_tokens_include_folders_and_file_words() -> None:
    tokens = path_index_tokens("contracts/legal/nda.pdf")
    assert {"contracts", "legal", "nda"} <= tokens
    assert all(len(token) > 1 for token in tokens)


def test_path_index_tokens_include_lowercased_key_terms() -> None:
    tokens = path_index_tokens("statements/CW-12 statement.pdf")
    assert "cw-12" in tokens


def test_query_tokens_dedupe_and_drop_short() -> None:
    assert query_tokens("witness statement a", "CW-12 witness") == [
        "witness",
        "statement",
        "cw-12",
    ]
