from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4


def _new_reference_id() -> str:
    return f"ref-{uuid4().hex[:12]}"


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Reference:
    """A description the user wants matched to one file path."""

    id: str
    description: str
    date: str | None = None
    external_ref: str | None = None
    is_generated: bool = False

    @classmethod
    def create(cls, description: str, **kwargs: Any) -> "Reference":
        return cls(id=_new_reference_id(), description=str(description or ""), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reference":
        ref_id = str(data.get("id") or "").strip() or _new_reference_id()
        external = data.get("external_ref", data.get("externalRef", data.get("reference")))
        generated = data.get("is_generated", data.get("isGenerated", False))
        return cls(
            id=ref_id,
            description=str(data.get("description") or ""),
            date=_optional_text(data.get("date")),
            external_ref=_optional_text(external),
            is_generated=bool(generated),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "date": self.date,
            "external_ref": self.external_ref,
            "is_generated": self.is_generated,
        }


@dataclass(frozen=True)
class RankedMatch:
    path: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "score": round(float(self.score), 6)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RankedMatch":
        return cls(path=str(data.get("path", "")), score=float(data.get("score", 0.0)))


@dataclass(frozen=True)
class Suggestion:
    """One auto-match proposal; ``suggested_path`` is empty when nothing qualified."""

    reference: Reference
    suggested_path: str = ""
    score: float = 0.0
    is_selected: bool = False
    is_accepted: bool = False
    is_rejected: bool = False

    @property
    def has_path(self) -> bool:
        return bool(self.suggested_path)

    def with_flags(self, **flags: bool) -> "Suggestion":
        return replace(self, **flags)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reference": self.reference.to_dict(),
            "suggested_path": self.suggested_path,
            "score": round(float(self.score), 6),
            "is_selected": self.is_selected,
            "is_accepted": self.is_accepted,
            "is_rejected": self.is_rejected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Suggestion":
        return cls(
            reference=Reference.from_dict(dict(data.get("reference") or {})),
            suggested_path=str(data.get("suggested_path") or ""),
            score=float(data.get("score", 0.0)),
            is_selected=bool(data.get("is_selected", False)),
            is_accepted=bool(data.get("is_accepted", False)),
            is_rejected=bool(data.get("is_rejected", False)),
        )


@dataclass
class AutoMatchResult:
    suggestions: list[Suggestion] = field(default_factory=list)
    total_references: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0

    @property
    def no_match(self) -> int:
        return sum(1 for item in self.suggestions if not item.has_path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "suggestions": [item.to_dict() for item in self.suggestions],
            "total_references": self.total_references,
            "high_confidence": self.high_confidence,
            "medium_confidence": self.medium_confidence,
            "low_confidence": self.low_confidence,
            "no_match": self.no_match,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AutoMatchResult":
        return cls(
            suggestions=[Suggestion.from_dict(dict(row)) for row in data.get("suggestions", [])],
            total_references=int(data.get("total_references", 0)),
            high_confidence=int(data.get("high_confidence", 0)),
            medium_confidence=int(data.get("medium_confidence", 0)),
            low_confidence=int(data.get("low_confidence", 0)),
        )
