"""Data models for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar

from src.pipeline_config import (
    IdentificationConfidence,
    IdentificationMethod,
    SourceType,
    TalkRatioMethod,
)


@dataclass
class RawSentence:
    """One utterance as delivered by the transcript provider."""

    speaker_name: str | None = None
    text: str | None = None
    start_time: float | None = None
    end_time: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawSentence:
        return cls(
            speaker_name=data.get("speaker_name"),
            text=data.get("text"),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
        )

    @property
    def has_timestamps(self) -> bool:
        return self.start_time is not None and self.end_time is not None


@dataclass
class TalkRatio:
    rep_percent: int
    prospect_percent: int
    rep_word_count: int
    prospect_word_count: int
    total_words: int
    calculation_method: TalkRatioMethod


@dataclass
class RepIdentity:
    """The rep as configured on the account and as they appear in the transcript."""

    name: str
    email: str
    transcript_speaker_name: str
    company: str


@dataclass
class Participants:
    rep: RepIdentity
    prospects: list[str]
    identification_method: IdentificationMethod
    identification_confidence: IdentificationConfidence
    total_participants: int


@dataclass
class CleanedTranscript:
    """Tagged, filler-free transcript plus talk-ratio and participant metadata."""

    sentences_text: str
    sentence_count: int
    talk_ratio: TalkRatio
    duration_minutes: float
    participants: Participants

    def to_dict(self) -> dict[str, Any]:
        """Plain-JSON view for downstream consumers (enum members become strings)."""
        data = asdict(self)
        data["talk_ratio"]["calculation_method"] = self.talk_ratio.calculation_method.value
        data["participants"]["identification_method"] = (
            self.participants.identification_method.value
        )
        data["participants"]["identification_confidence"] = (
            self.participants.identification_confidence.value
        )
        return data


@dataclass
class Chunk:
    """A chunk ready for embedding and storage."""

    content: str
    chunk_index: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RepProfile:
    """Account details of the user who owns a transcript."""

    name: str = ""
    email: str = ""
    company: str = ""


@dataclass
class TranscriptSource:
    """A scored call transcript."""

    kind: ClassVar[SourceType] = SourceType.TRANSCRIPT

    id: str
    user_id: str
    title: str | None = None
    summary: str | None = None
    score: float | None = None
    duration: float | None = None
    created_at: str | None = None
    participants: list[str] = field(default_factory=list)
    what_worked: list[Any] = field(default_factory=list)
    improvement_areas: list[Any] = field(default_factory=list)
    risk_alerts: list[Any] = field(default_factory=list)
    deal_signal: str | None = None
    sentences: list[RawSentence] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> TranscriptSource:
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            title=row.get("title"),
            summary=row.get("ai_summary"),
            score=row.get("ai_overall_score"),
            duration=row.get("duration"),
            created_at=row.get("created_at"),
            participants=list(row.get("participants") or []),
            what_worked=list(row.get("ai_what_worked") or []),
            improvement_areas=list(row.get("ai_improvement_areas") or []),
            risk_alerts=list(row.get("ai_deal_risk_alerts") or []),
            deal_signal=row.get("ai_deal_signal"),
            sentences=[
                RawSentence.from_dict(s) for s in (row.get("sentences") or []) if isinstance(s, dict)
            ],
        )


@dataclass
class CompanySource:
    """A prospect company profile."""

    kind: ClassVar[SourceType] = SourceType.COMPANY

    id: str
    user_id: str
    name: str | None = None
    domain: str | None = None
    goal: str | None = None
    pain_points: list[str] = field(default_factory=list)
    contacts: list[dict[str, Any]] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    risk_summary: list[str] = field(default_factory=list)
    relationship: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any], user_id: str) -> CompanySource:
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or user_id),
            name=row.get("company_name"),
            domain=row.get("domain"),
            goal=row.get("company_goal_objective"),
            pain_points=list(row.get("pain_points") or []),
            contacts=[c for c in (row.get("company_contacts") or []) if isinstance(c, dict)],
            recommendations=list(row.get("ai_recommendations") or []),
            risk_summary=list(row.get("risk_summary") or []),
            relationship=list(row.get("ai_relationship") or []),
        )


SourceDocument = TranscriptSource | CompanySource
