from __future__ import annotations

import math

import pytest

from docmap.config import default_config
from docmap.indexers.search_index import SearchIndex
from docmap.query.auto_match import accept_selected
from docmap.query.learning import LearningEngine, extract_pattern, extract_terms
from docmap.schema.models import RankedMatch, Reference, Suggestion


def test_extract_pattern_folds_digits_and_separators() -> None:
    assert extract_pattern("Exhibit A-12.pdf") == "exhibit a #"
    assert extract_pattern("exhibits/Exhibit A-1.pdf") == "exhibits/exhibit a #"
    assert extract_pattern("report_v2.docx") == "report v#"
    assert extract_pattern("") == ""


def test_extract_terms_drops_short_and_stop_words() -> None:
    assert extract_terms("The Master-Services_Agreement.pdf") == ["master", "services", "agreement"]
    assert extract_terms("a/b/cv.doc") == []


def test_untrained_engine_only_scales_base_score() -> None:
    engine = LearningEngine()
    score, breakdown = engine.enhance_score("Invoice", "billing/invoice.pdf", 0.5)
    assert score == pytest.approx(0.4)
    assert breakdown["pattern"] == 0.0
    assert breakdown["term"] == 0.0
    assert breakdown["base"] == 0.5


def test_confirmed_match_adds_pattern_and_term_bonus() -> None:
    engine = LearningEngine()
    engine.record_match("Exhibit A-1", "exhibits/Exhibit A-1.pdf", 0.8)
    score, breakdown = engine.enhance_score("Exhibit A-2", "exhibits/Exhibit A-2.pdf", 0.5)
    assert breakdown["pattern"] == pytest.approx(math.log(2) * 0.03)
    assert breakdown["term"] == pytest.approx(0.2 / math.sqrt(2))
    assert score == pytest.approx(0.4 + (breakdown["pattern"] + breakdown["term"]) * 0.2)
    assert score > 0.4


def test_rejection_cancels_pattern_bonus() -> None:
    engine = LearningEngine()
    engine.record_match("Exhibit A-1", "exhibits/Exhibit A-1.pdf", 0.8)
    engine.record_match("Exhibit A-3", "exhibits/Exhibit A-3.pdf", 0.6, confirmed=False)
    _, breakdown = engine.enhance_score("Exhibit A-2", "exhibits/Exhibit A-2.pdf", 0.5)
    assert breakdown["pattern"] == 0.0
    assert engine.suggestions("Exhibit A-9") == []
    stats = engine.statistics()["statistics"]
    assert stats["successful_matches"] == 1
    assert stats["failed_matches"] == 1
    assert stats["average_confidence"] == pytest.approx(0.7)


def test_suggestions_come_from_confirmed_patterns() -> None:
    engine = LearningEngine()
    engine.record_match("Exhibit A-1", "exhibits/Exhibit A-1.pdf", 0.8)
    engine.record_match("Exhibit A-2", "exhibits/Exhibit A-2.pdf", 0.8)
    assert engine.suggestions("Exhibit A-7") == [
        {"pattern": "exhibits/exhibit a #", "confidence": pytest.approx(0.2), "usage": 2}
    ]
    terms = engine.term_suggestions("Exhibit B")
    assert {row["term"] for row in terms} == {"exhibits", "exhibit"}
    assert all(row["confidence"] == pytest.approx(0.2) for row in terms)
    assert engine.top_patterns(1)[0]["count"] == 2


def test_record_confirmation_rejects_strong_alternatives() -> None:
    engine = LearningEngine()
    chosen = RankedMatch(path="a/invoice-final.pdf", score=0.9)
    shown = [
        chosen,
        RankedMatch(path="a/invoice-draft.pdf", score=0.8),
        RankedMatch(path="a/invoice-old.pdf", score=0.3),
    ]
    engine.record_confirmation("Invoice final", chosen, shown)
    stats = engine.statistics()
    assert stats["statistics"]["successful_matches"] == 1
    assert stats["statistics"]["failed_matches"] == 1
    assert stats["match_history"] == 2
    assert stats["recent_matches"][0]["path"] == "a/invoice-draft.pdf"


def test_export_load_and_reset() -> None:
    engine = LearningEngine()
    engine.record_match("Exhibit A-1", "exhibits/Exhibit A-1.pdf", 0.8)
    exported = engine.to_dict()
    assert exported["version"] == 1

    restored = LearningEngine()
    restored.load_dict(exported)
    assert restored.enhance_score("Exhibit A-2", "exhibits/Exhibit A-2.pdf", 0.5) == engine.enhance_score(
        "Exhibit A-2", "exhibits/Exhibit A-2.pdf", 0.5
    )

    restored.reset()
    assert restored.suggestions("Exhibit A-2") == []
    assert restored.statistics()["statistics"]["total_matches"] == 0


def test_weight_adapts_after_enough_successes() -> None:
    engine = LearningEngine()
    for idx in range(50):
        engine.record_match(f"Doc {idx}", f"docs/doc-{idx}.pdf", 0.9)
    assert engine.learned_weight == pytest.approx(0.2)
    for idx in range(10):
        engine.record_match(f"Doc {idx}", f"docs/doc-{idx}.pdf", 0.9)
    assert engine.learned_weight == pytest.approx(0.2 + 0.2 * (60 / 500))


def test_engine_is_off_by_default() -> None:
    cfg = default_config()
    assert LearningEngine.from_config(cfg) is None
    cfg["learning"]["enabled"] = True
    cfg["learning"]["learned_weight"] = 0.3
    engine = LearningEngine.from_config(cfg)
    assert engine is not None
    assert engine.learned_weight == pytest.approx(0.3)


def test_accept_selected_teaches_engine() -> None:
    engine = LearningEngine()
    accepted = Suggestion(
        reference=Reference(id="r1", description="Exhibit A-1"),
        suggested_path="exhibits/Exhibit A-1.pdf",
        score=0.8,
        is_selected=True,
    )
    rejected = Suggestion(
        reference=Reference(id="r2", description="Invoice"),
        suggested_path="billing/receipt.pdf",
        score=0.3,
        is_rejected=True,
    )
    assert accept_selected([accepted, rejected], learning=engine) == {"r1": "exhibits/Exhibit A-1.pdf"}
    stats = engine.statistics()["statistics"]
    assert stats["successful_matches"] == 1
    assert stats["failed_matches"] == 1
    assert engine.suggestions("Exhibit A-5")[0]["pattern"] == "exhibits/exhibit a #"


def test_search_index_reranks_with_learning() -> None:
    paths = ["a/report.pdf", "b/report.pdf"]
    plain = SearchIndex(paths)
    assert [item.path for item in plain.search("report")] == paths

    engine = LearningEngine()
    learned = SearchIndex(paths, learning=engine)
    untrained = learned.search("report")
    assert [item.score for item in untrained] == pytest.approx([item.score * 0.8 for item in plain.search("report")])

    engine.record_match("report", "b/report.pdf", 0.8)
    assert [item.path for item in learned.search("report")] == ["b/report.pdf", "a/report.pdf"]
    assert [item.path for item in plain.search("report")] == paths
    # auto-match ranking stays on the plain scores
    assert [item.path for item in learned.fuzzy_search("report")] == paths
