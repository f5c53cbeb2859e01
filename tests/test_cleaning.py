"""Tests for transcript normalisation: speaker tagging, fillers and talk ratio."""

from __future__ import annotations

import pytest

from src.ingestion.cleaning import (
    build_rep_name_variants,
    calculate_duration,
    calculate_talk_ratio,
    clean_sentence_text,
    clean_transcript,
    identify_rep_speaker,
    is_filler_sentence,
)
from src.ingestion.models import RawSentence
from src.pipeline_config import IdentificationConfidence, IdentificationMethod, TalkRatioMethod


def _s(speaker: str | None, text: str, start: float | None = None, end: float | None = None) -> RawSentence:
    return RawSentence(speaker_name=speaker, text=text, start_time=start, end_time=end)


class TestCleanTranscript:
    def test_basic_call(self) -> None:
        sentences = [
            {"speaker_name": "Jane Doe", "text": "Hi, um, how are you?"},
            {"speaker_name": "Bob", "text": "Good, tell me about pricing."},
        ]
        result = clean_transcript(sentences, "Jane Doe", "jane@acme.com")

        assert result.participants.identification_method is IdentificationMethod.NAME_MATCH
        assert result.participants.identification_confidence is IdentificationConfidence.HIGH
        assert result.sentences_text.split("\n") == [
            "[REP] Jane Doe: Hi, how are you?",
            "[PROSPECT] Bob: Good, tell me about pricing.",
        ]
        assert result.participants.prospects == ["Bob"]
        assert result.participants.total_participants == 2
        assert result.sentence_count == 2

    def test_preserves_order_and_drops_fillers(self) -> None:
        sentences = [
            _s("Jane", "Okay."),
            _s("Bob", "We need a better onboarding flow."),
            _s("Jane", "Yeah"),
            _s("Jane", "Let me show you how that works."),
            _s("Bob", "Thanks!"),
        ]
        result = clean_transcript(sentences, "Jane", "")
        lines = result.sentences_text.split("\n")

        assert lines == [
            "[PROSPECT] Bob: We need a better onboarding flow.",
            "[REP] Jane: Let me show you how that works.",
        ]

    def test_short_sentences_dropped_after_cleaning(self) -> None:
        result = clean_transcript([_s("Bob", "Um, sure thing")], "Jane", "")
        assert result.sentences_text == ""
        assert result.sentence_count == 0

    def test_missing_speaker_is_unknown_prospect(self) -> None:
        result = clean_transcript(
            [_s("Jane", "Welcome to the call everyone."), _s(None, "Glad to be here today.")],
            "Jane",
            "",
        )
        assert "[PROSPECT] Unknown: Glad to be here today." in result.sentences_text
        assert result.participants.prospects == ["Unknown"]

    def test_rep_display_name_from_transcript(self) -> None:
        result = clean_transcript(
            [_s("jane d.", "Here is the agenda for today.")],
            "Jane Doe",
            "jane@acme.com",
        )
        assert result.participants.rep.transcript_speaker_name == "jane d."
        assert result.participants.rep.name == "Jane Doe"

    def test_to_dict_serialises_enums(self) -> None:
        data = clean_transcript([_s("Jane", "Here is the agenda for today.")], "Jane", "").to_dict()
        assert data["talk_ratio"]["calculation_method"] == "word_based"
        assert data["participants"]["identification_method"] == "name_match"
        assert data["participants"]["identification_confidence"] == "high"


class TestFillers:
    @pytest.mark.parametrize("text", ["um", "Yeah.", "hello!", "Thanks", "ok", "Mm-hmm", "got it?"])
    def test_whole_sentence_fillers(self, text: str) -> None:
        assert is_filler_sentence(text)

    @pytest.mark.parametrize("text", ["yeah that works", "Thanks for the demo", "ok so pricing"])
    def test_filler_match_is_anchored(self, text: str) -> None:
        assert not is_filler_sentence(text)

    def test_inline_fillers_removed(self) -> None:
        assert clean_sentence_text("So, you know, we sort of need it") == "So, we need it"
        assert clean_sentence_text("Uh we, basically, ship weekly") == "we, ship weekly"

    def test_leading_filler_with_comma_removed(self) -> None:
        assert clean_sentence_text("Um, tell me about pricing and timeline.") == "tell me about pricing and timeline."

        result = clean_transcript(
            [_s("Jane", "Thanks for joining the call."), _s("Bob", "Um, tell me about pricing and timeline.")],
            "Jane",
            "",
        )
        assert "[PROSPECT] Bob: tell me about pricing and timeline." in result.sentences_text.split("\n")

    def test_whitespace_collapsed(self) -> None:
        assert clean_sentence_text("um   we  can   do that") == "we can do that"


class TestIdentifyRep:
    def test_name_variants(self) -> None:
        assert build_rep_name_variants("John Smith", "jsmith@acme.com") == [
            "john smith",
            "john",
            "smith",
            "jsmith",
        ]

    def test_name_match_beats_company_match(self) -> None:
        sentences = [_s("Acme Support", "hello there"), _s("John", "hi there")]
        speaker, method, confidence = identify_rep_speaker(
            sentences, "John Smith", "", "Acme Corp"
        )
        assert speaker == "john"
        assert method is IdentificationMethod.NAME_MATCH
        assert confidence is IdentificationConfidence.HIGH

    def test_email_local_part_matches(self) -> None:
        speaker, method, _ = identify_rep_speaker(
            [_s("Prospect", "hi"), _s("jsmith", "hello")], "", "jsmith@acme.com", ""
        )
        assert speaker == "jsmith"
        assert method is IdentificationMethod.NAME_MATCH

    def test_company_match(self) -> None:
        speaker, method, confidence = identify_rep_speaker(
            [_s("Prospect", "hi"), _s("Acme Sales Team", "hello")], "Zed", "", "Acme Corp"
        )
        assert speaker == "acme sales team"
        assert method is IdentificationMethod.COMPANY_MATCH
        assert confidence is IdentificationConfidence.MEDIUM

    def test_first_speaker_fallback(self) -> None:
        speaker, method, confidence = identify_rep_speaker(
            [_s("Speaker 1", "hi"), _s("Speaker 2", "hello")], "", "", ""
        )
        assert speaker == "speaker 1"
        assert method is IdentificationMethod.FIRST_SPEAKER
        assert confidence is IdentificationConfidence.LOW

    def test_no_speakers(self) -> None:
        speaker, method, _ = identify_rep_speaker([_s(None, "hi")], "Jane", "", "")
        assert speaker == ""
        assert method is IdentificationMethod.FIRST_SPEAKER


class TestTalkRatio:
    def test_time_based_when_all_timestamps(self) -> None:
        ratio = calculate_talk_ratio(
            [_s("Jane", "a b c", 0, 30), _s("Bob", "d e", 30, 40)],
            "jane",
        )
        assert ratio.calculation_method is TalkRatioMethod.TIME_BASED
        assert ratio.rep_percent == 75
        assert ratio.prospect_percent == 25
        assert ratio.rep_word_count == 3
        assert ratio.total_words == 5

    def test_word_based_when_any_timestamp_missing(self) -> None:
        ratio = calculate_talk_ratio(
            [_s("Jane", "one two three", 0, 30), _s("Bob", "four", None, None)],
            "jane",
        )
        assert ratio.calculation_method is TalkRatioMethod.WORD_BASED
        assert ratio.rep_percent == 75
        assert ratio.prospect_percent == 25

    def test_percentages_always_sum_to_100(self) -> None:
        ratio = calculate_talk_ratio(
            [_s("Jane", "a"), _s("Bob", "b"), _s("Carl", "c")],
            "jane",
        )
        assert ratio.rep_percent == 33
        assert ratio.rep_percent + ratio.prospect_percent == 100

    def test_empty_is_even_split(self) -> None:
        ratio = calculate_talk_ratio([], "jane")
        assert (ratio.rep_percent, ratio.prospect_percent) == (50, 50)
        assert ratio.total_words == 0


class TestDuration:
    def test_provided_value_wins(self) -> None:
        assert calculate_duration([_s("a", "b", 0, 600)], provided=42) == 42

    def test_from_timestamps(self) -> None:
        assert calculate_duration([_s("a", "b", 10, 70), _s("c", "d", 70, 190)]) == 3.0

    def test_estimate_from_sentence_count(self) -> None:
        assert calculate_duration([_s("a", "b")] * 30) == 5.0

    def test_estimate_has_one_minute_floor(self) -> None:
        assert calculate_duration([_s("a", "b")]) == 1
