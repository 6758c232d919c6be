from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .schema import Postmark

ORIGIN_WEIGHT = 0.4
TEMPORAL_WEIGHT = 0.3
VISUAL_WEIGHT = 0.3


def weighted_total(origin: float, temporal: float, visual: float) -> float:
    return ORIGIN_WEIGHT * origin + TEMPORAL_WEIGHT * temporal + VISUAL_WEIGHT * visual


@dataclass(frozen=True)
class Extraction:
    """Markdown transcript and the Postmark read from the same image."""

    transcript: str
    postmark: Postmark


@dataclass(frozen=True)
class SearchHit:
    url: str
    title: str | None = None
    snippet: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "title": self.title, "snippet": self.snippet}


@dataclass(frozen=True)
class TriangulationResult:
    candidate_url: str | None = None
    queries: tuple[str, ...] = ()
    search_hits: tuple[tuple[SearchHit, ...], ...] = ()

    @classmethod
    def empty(cls) -> "TriangulationResult":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate_url": self.candidate_url,
            "queries": list(self.queries),
            "search_hits": [[hit.to_dict() for hit in hits] for hits in self.search_hits],
        }


@dataclass(frozen=True)
class AuditResult:
    """
    Three sub-scores plus the evidence gathered while computing them.

    total_score is derived on every access so it can never drift from the
    sub-scores.
    """

    origin_score: int
    temporal_score: float
    visual_score: float
    audit_log: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if type(self.origin_score) is not int or self.origin_score not in (0, 1):
            raise ValueError("origin_score must be the int 0 or 1")
        for name in ("temporal_score", "visual_score"):
            value = getattr(self, name)
            if not (0.0 <= float(value) <= 1.0):
                raise ValueError(f"{name} must be between 0 and 1")
        if not self.audit_log:
            raise ValueError("audit_log must contain at least one entry")

    @property
    def total_score(self) -> float:
        return weighted_total(self.origin_score, self.temporal_score, self.visual_score)

    @classmethod
    def skipped(cls, reason: str) -> "AuditResult":
        return cls(origin_score=0, temporal_score=0.0, visual_score=0.0, audit_log=(reason,))

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin_score": self.origin_score,
            "temporal_score": self.temporal_score,
            "visual_score": self.visual_score,
            "total_score": self.total_score,
            "audit_log": list(self.audit_log),
        }


@dataclass(frozen=True)
class PostcardReport:
    transcript: str
    postmark: Postmark
    triangulation: TriangulationResult
    audit: AuditResult
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "transcript": self.transcript,
            "postmark": self.postmark.model_dump(mode="json"),
            "triangulation": self.triangulation.to_dict(),
            "audit": self.audit.to_dict(),
            "timestamp": self.timestamp,
        }
