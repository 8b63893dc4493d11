from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from deck_mcp.session import (
    GeminiTranscriptParser,
    Tool,
    TranscriptParseError,
    get_parser,
)
from deck_mcp.session.parser import parse_timestamp


def write_chat(path: Path, messages: list[dict], **fields) -> Path:
    payload = {
        "sessionId": "4d8fcb4d-5c1f-4d4e-9a7e-0123456789ab",
        "projectHash": "abc",
        "startTime": "2025-03-01T09:00:00.000Z",
        "lastUpdated": "2025-03-01T09:45:30.500Z",
        "messages": messages,
    }
    payload.update(fields)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def turn(tokens_in: int, tokens_out: int, model: str = "gemini-2.5-pro") -> dict:
    return {
        "type": "gemini",
        "content": "ok",
        "model": model,
        "tokens": {"input": tokens_in, "output": tokens_out, "cached": 0, "total": tokens_in + tokens_out},
    }


def test_parse_analytics_accumulates_agent_turns(tmp_path: Path) -> None:
    path = write_chat(
        tmp_path / "session.json",
        [
            {"type": "user", "content": "hi", "tokens": {"input": 999, "output": 999}},
            turn(10, 1, model="gemini-2.5-flash"),
            {"type": "info", "content": "tool call"},
            turn(20, 2),
            turn(30, 3),
        ],
    )

    analytics = GeminiTranscriptParser().parse_analytics(path)

    assert analytics.input_tokens == 60
    assert analytics.output_tokens == 6
    assert analytics.total_turns == 3
    assert analytics.current_context_tokens == 30
    assert analytics.model == "gemini-2.5-pro"
    assert analytics.source_path == path
    assert analytics.fingerprint is None


def test_parse_analytics_reads_session_times(tmp_path: Path) -> None:
    path = write_chat(tmp_path / "session.json", [])

    analytics = GeminiTranscriptParser().parse_analytics(path)

    assert analytics.start_time == datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert analytics.duration == timedelta(minutes=45, seconds=30, milliseconds=500)
    assert analytics.total_turns == 0


def test_parse_analytics_keeps_previous_model_when_turn_has_none(tmp_path: Path) -> None:
    path = write_chat(
        tmp_path / "session.json",
        [turn(5, 5, model="gemini-2.0-flash"), {"type": "gemini", "tokens": None, "model": None}],
    )

    analytics = GeminiTranscriptParser().parse_analytics(path)

    assert analytics.model == "gemini-2.0-flash"
    assert analytics.total_turns == 2
    assert analytics.current_context_tokens == 0


def test_parse_analytics_tolerates_missing_fields(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"messages": None}), encoding="utf-8")

    analytics = GeminiTranscriptParser().parse_analytics(path)

    assert analytics.start_time is None
    assert analytics.duration == timedelta(0)


@pytest.mark.parametrize("content", ["{broken", "[]", '{"messages": "nope"}'])
def test_malformed_transcript_raises_parse_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "session.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(TranscriptParseError):
        GeminiTranscriptParser().parse_analytics(path)


def test_unreadable_transcript_raises_parse_error(tmp_path: Path) -> None:
    with pytest.raises(TranscriptParseError):
        GeminiTranscriptParser().parse_analytics(tmp_path / "missing.json")


def test_parse_info_counts_all_messages(tmp_path: Path) -> None:
    path = write_chat(tmp_path / "session-x.json", [{"type": "user"}, turn(1, 1)])

    info = GeminiTranscriptParser().parse_info(path)

    assert info.session_id == "4d8fcb4d-5c1f-4d4e-9a7e-0123456789ab"
    assert info.message_count == 2
    assert info.filename == "session-x.json"
    assert info.last_updated == datetime(2025, 3, 1, 9, 45, 30, 500000, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2025-03-01T09:00:00Z", datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)),
        ("2025-03-01T09:00:00.250Z", datetime(2025, 3, 1, 9, 0, 0, 250000, tzinfo=timezone.utc)),
        (
            "2025-03-01T11:00:00+02:00",
            datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc),
        ),
        ("yesterday", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_timestamp(value, expected) -> None:
    assert parse_timestamp(value) == expected


def test_get_parser() -> None:
    assert isinstance(get_parser(Tool.GEMINI), GeminiTranscriptParser)
    assert isinstance(get_parser("gemini"), GeminiTranscriptParser)
    assert get_parser(Tool.SHELL) is None
    assert get_parser(Tool.CLAUDE) is None


def test_null_fields_read_as_zero_values(tmp_path: Path) -> None:
    path = write_chat(
        tmp_path / "session.json",
        [
            {"type": None, "tokens": {"input": 50, "output": 5}},
            {"type": "gemini", "model": "gemini-2.5-pro", "tokens": {"input": 8, "output": None}},
            {"type": "gemini", "tokens": {"input": None, "output": 2}},
        ],
        sessionId=None,
    )
    parser = GeminiTranscriptParser()

    analytics = parser.parse_analytics(path)
    info = parser.parse_info(path)

    assert analytics.input_tokens == 8
    assert analytics.output_tokens == 2
    assert analytics.total_turns == 2
    assert analytics.current_context_tokens == 0
    assert info.session_id == ""
    assert info.message_count == 3
