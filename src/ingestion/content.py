"""Textual representations of workspace documents, as fed to the chunker."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from src.config import settings
from src.ingestion.cleaning import clean_transcript
from src.ingestion.models import CompanySource, RepProfile, SourceDocument, TranscriptSource


def _format_item(item: Any) -> str | None:
    if isinstance(item, str):
        return f"- {item}"
    if item is not None:
        return f"- {json.dumps(item, default=str)}"
    return None


def _section(parts: list[str], heading: str, items: list[Any]) -> None:
    lines = [line for line in (_format_item(i) for i in items) if line]
    if lines:
        parts.append(f"\n## {heading}")
        parts.extend(lines)


def _format_date(value: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


def conversation_excerpt(lines: list[str], max_lines: int) -> list[str]:
    """First *max_lines* tagged lines, with a note on how many were left out."""
    excerpt = lines[:max_lines]
    if len(lines) > max_lines:
        excerpt.append(f"... and {len(lines) - max_lines} more exchanges")
    return excerpt


def prepare_transcript_content(
    transcript: TranscriptSource,
    rep: RepProfile | None = None,
    max_conversation_lines: int | None = None,
) -> str:
    """Render a transcript as labelled markdown-ish sections.

    The conversation section uses the normalised, speaker-tagged transcript.
    """
    parts: list[str] = [f"# {transcript.title or 'Untitled Call'}"]

    if transcript.score is not None:
        parts.append(f"Score: {transcript.score}/100")
    if transcript.duration:
        parts.append(f"Duration: {round(transcript.duration)} minutes")
    if transcript.created_at:
        parts.append(f"Date: {_format_date(transcript.created_at)}")
    if transcript.participants:
        parts.append(f"\nParticipants: {', '.join(transcript.participants)}")

    if transcript.summary:
        parts.append(f"\n## Summary\n{transcript.summary}")

    _section(parts, "What Worked", transcript.what_worked)
    _section(parts, "Areas for Improvement", transcript.improvement_areas)
    if transcript.deal_signal:
        parts.append(f"\n## Deal Signal\n{transcript.deal_signal}")
    _section(parts, "Deal Risk Alerts", transcript.risk_alerts)

    if transcript.sentences:
        rep = rep or RepProfile()
        cleaned = clean_transcript(
            transcript.sentences,
            rep_name=rep.name,
            rep_email=rep.email,
            company_name=rep.company,
            duration_minutes=transcript.duration,
        )
        if cleaned.sentences_text:
            limit = max_conversation_lines or settings.conversation_excerpt_lines
            parts.append("\n## Conversation")
            parts.extend(conversation_excerpt(cleaned.sentences_text.split("\n"), limit))

    return "\n".join(parts)


def prepare_company_content(company: CompanySource) -> str:
    """Render a company profile as labelled sections."""
    parts: list[str] = [f"# {company.name or 'Unknown Company'}"]

    if company.domain:
        parts.append(f"Domain: {company.domain}")
    if company.goal:
        parts.append(f"\n## Goal/Objective\n{company.goal}")

    _section(parts, "Pain Points", company.pain_points)

    contacts = [
        " - ".join(str(c[k]) for k in ("name", "title", "email") if c.get(k))
        for c in company.contacts
    ]
    _section(parts, "Contacts", [c for c in contacts if c])

    _section(parts, "AI Recommendations", company.recommendations)
    _section(parts, "Risk Summary", company.risk_summary)
    _section(parts, "Relationship Insights", company.relationship)

    return "\n".join(parts)


def chunk_metadata(source: SourceDocument) -> dict[str, Any]:
    """Metadata stored alongside every chunk of *source*."""
    if isinstance(source, TranscriptSource):
        return {"title": source.title, "score": source.score, "date": source.created_at}
    return {"company_name": source.name, "domain": source.domain}


def prepare_content(source: SourceDocument, rep: RepProfile | None = None) -> str:
    if isinstance(source, TranscriptSource):
        return prepare_transcript_content(source, rep)
    return prepare_company_content(source)
