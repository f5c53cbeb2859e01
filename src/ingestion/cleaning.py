"""Transcript normalisation: speaker identification, filler removal and tagging.

Turns raw provider sentences into ``[REP]`` / ``[PROSPECT]`` tagged lines plus
talk-ratio, duration and participant metadata. Everything here is pure; the
output feeds both the embedding pipeline and the coaching-report generator.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from src.ingestion.models import (
    CleanedTranscript,
    Participants,
    RawSentence,
    RepIdentity,
    TalkRatio,
)
from src.pipeline_config import (
    IdentificationConfidence,
    IdentificationMethod,
    TalkRatioMethod,
)

# Whole-sentence pleasantries and hesitations. Anchored: only matches when the
# entire sentence is the filler phrase.
FILLER_SENTENCE_RE = re.compile(
    r"^(?:um+|uh+|hmm+|hello|hi|hey|thanks|thank you|can you hear me|yeah|yep|okay|ok"
    r"|sure|right|got it|mm-hmm|mhm|uh-huh)[.!?]?$",
    re.IGNORECASE,
)

# Inline fillers stripped from inside a sentence, together with the comma and
# spacing that follow them.
INLINE_FILLER_RE = re.compile(
    r"\b(?:um+|uh+)\b,?\s*"
    r"|\b(?:like|you know|basically|actually|literally|I mean),\s*"
    r"|\b(?:sort of|kind of)\b\s*",
    re.IGNORECASE,
)

WHITESPACE_RE = re.compile(r"\s{2,}")

MIN_WORD_COUNT = 3

# Rough pace of natural conversation, used when nothing better is known.
SENTENCES_PER_MINUTE = 6


def _normalise_speaker(name: str | None) -> str:
    return (name or "").strip().lower()


def _word_count(text: str) -> int:
    return len(text.split())


def clean_sentence_text(text: str) -> str:
    """Strip inline fillers and collapse the whitespace they leave behind."""
    cleaned = INLINE_FILLER_RE.sub("", text)
    return WHITESPACE_RE.sub(" ", cleaned).strip()


def is_filler_sentence(text: str) -> bool:
    return bool(FILLER_SENTENCE_RE.match(text.strip()))


def build_rep_name_variants(rep_name: str, rep_email: str) -> list[str]:
    """Lowercased name variants used for fuzzy speaker matching.

    ``("John Smith", "jsmith@acme.com")`` gives
    ``["john smith", "john", "smith", "jsmith"]``.
    """
    variants: list[str] = []

    normalised = rep_name.strip().lower()
    if normalised:
        variants.append(normalised)
        for part in normalised.split():
            if part not in variants:
                variants.append(part)

    local_part, at, _ = rep_email.partition("@")
    local_part = local_part.strip().lower()
    if at and local_part and local_part not in variants:
        variants.append(local_part)

    return variants


def identify_rep_speaker(
    sentences: list[RawSentence],
    rep_name: str,
    rep_email: str,
    company_name: str,
) -> tuple[str, IdentificationMethod, IdentificationConfidence]:
    """Pick the normalised speaker name that belongs to the rep.

    Tries a name match, then a company match, then falls back to whoever
    spoke first.
    """
    speakers = list(
        dict.fromkeys(
            _normalise_speaker(s.speaker_name) for s in sentences if _normalise_speaker(s.speaker_name)
        )
    )

    variants = build_rep_name_variants(rep_name, rep_email)
    for speaker in speakers:
        for variant in variants:
            if speaker == variant or variant in speaker or speaker in variant:
                return speaker, IdentificationMethod.NAME_MATCH, IdentificationConfidence.HIGH

    company_words = company_name.strip().lower().split()
    if company_words:
        company_first_word = company_words[0]
        for speaker in speakers:
            if company_first_word in speaker:
                return (
                    speaker,
                    IdentificationMethod.COMPANY_MATCH,
                    IdentificationConfidence.MEDIUM,
                )

    first_speaker = speakers[0] if speakers else ""
    return first_speaker, IdentificationMethod.FIRST_SPEAKER, IdentificationConfidence.LOW


def calculate_talk_ratio(sentences: list[RawSentence], rep_speaker: str) -> TalkRatio:
    """Split talk time (or words, without timestamps) between rep and prospects."""
    time_based = bool(sentences) and all(s.has_timestamps for s in sentences)

    rep_value = prospect_value = 0.0
    rep_words = prospect_words = 0

    for sentence in sentences:
        is_rep = _normalise_speaker(sentence.speaker_name) == rep_speaker
        words = _word_count(sentence.text or "")
        if time_based:
            elapsed = max(0.0, float(sentence.end_time) - float(sentence.start_time))  # type: ignore[arg-type]
        else:
            elapsed = float(words)

        if is_rep:
            rep_words += words
            rep_value += elapsed
        else:
            prospect_words += words
            prospect_value += elapsed

    total = rep_value + prospect_value
    if total > 0:
        rep_percent = round(rep_value / total * 100)
        prospect_percent = 100 - rep_percent
    else:
        rep_percent = prospect_percent = 50

    return TalkRatio(
        rep_percent=rep_percent,
        prospect_percent=prospect_percent,
        rep_word_count=rep_words,
        prospect_word_count=prospect_words,
        total_words=rep_words + prospect_words,
        calculation_method=TalkRatioMethod.TIME_BASED if time_based else TalkRatioMethod.WORD_BASED,
    )


def calculate_duration(sentences: list[RawSentence], provided: float | None = None) -> float:
    """Call duration in minutes."""
    if provided is not None and provided > 0:
        return provided

    starts = [s.start_time for s in sentences if s.start_time is not None]
    ends = [s.end_time for s in sentences if s.end_time is not None]
    if starts and ends and max(ends) > min(starts):
        return round((max(ends) - min(starts)) / 60, 1)

    return max(1, round(len(sentences) / SENTENCES_PER_MINUTE, 1))


def _coerce_sentences(
    sentences: Iterable[RawSentence | Mapping[str, Any]],
) -> list[RawSentence]:
    return [s if isinstance(s, RawSentence) else RawSentence.from_dict(dict(s)) for s in sentences]


def clean_transcript(
    sentences: Iterable[RawSentence | Mapping[str, Any]],
    rep_name: str,
    rep_email: str,
    company_name: str = "",
    duration_minutes: float | None = None,
) -> CleanedTranscript:
    """Clean and tag a raw transcript for downstream analysis.

    Args:
        sentences: Provider sentences (``RawSentence`` or dicts with
            ``speaker_name``, ``text``, ``start_time``, ``end_time``).
        rep_name: The rep's display name, e.g. ``"Jane Doe"``.
        rep_email: The rep's email address.
        company_name: The rep's company, used as a second identification signal.
        duration_minutes: Call duration if already known.

    Returns:
        A :class:`CleanedTranscript`. Sentence order is preserved.
    """
    raw = _coerce_sentences(sentences)

    rep_speaker, method, confidence = identify_rep_speaker(raw, rep_name, rep_email, company_name)

    # Talk ratio runs on the uncleaned transcript so it reflects actual speaking behaviour.
    talk_ratio = calculate_talk_ratio(raw, rep_speaker)
    duration = calculate_duration(raw, duration_minutes)

    tagged_lines: list[str] = []
    prospects: list[str] = []

    for sentence in raw:
        text = (sentence.text or "").strip()
        if not text or is_filler_sentence(text):
            continue

        cleaned = clean_sentence_text(text)
        if _word_count(cleaned) < MIN_WORD_COUNT:
            continue

        is_rep = _normalise_speaker(sentence.speaker_name) == rep_speaker
        display_name = (sentence.speaker_name or "").strip() or "Unknown"
        if not is_rep and display_name not in prospects:
            prospects.append(display_name)

        tag = "REP" if is_rep else "PROSPECT"
        tagged_lines.append(f"[{tag}] {display_name}: {cleaned}")

    rep_display = next(
        (
            s.speaker_name.strip()
            for s in raw
            if s.speaker_name and _normalise_speaker(s.speaker_name) == rep_speaker
        ),
        rep_name,
    )

    return CleanedTranscript(
        sentences_text="\n".join(tagged_lines),
        sentence_count=len(tagged_lines),
        talk_ratio=talk_ratio,
        duration_minutes=duration,
        participants=Participants(
            rep=RepIdentity(
                name=rep_name,
                email=rep_email,
                transcript_speaker_name=rep_display,
                company=company_name,
            ),
            prospects=prospects,
            identification_method=method,
            identification_confidence=confidence,
            total_participants=1 + len(prospects),
        ),
    )
