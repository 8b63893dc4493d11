"""Transcript parsers that turn agent session logs into analytics."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import SessionAnalytics, SessionInfo, Tool

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
)


class TranscriptParseError(ValueError):
    """Raised when a transcript cannot be read or decoded."""


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp, falling back to the millisecond form."""

    if not value:
        return None
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


class GeminiTokens(BaseModel):
    model_config = ConfigDict(extra="ignore")

    input: int = 0
    output: int = 0

    @field_validator("input", "output", mode="before")
    @classmethod
    def _null_count(cls, value: Any):
        return 0 if value is None else value


class GeminiMessage(BaseModel):
    """One entry of a Gemini CLI chat transcript."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    model: str | None = None
    tokens: GeminiTokens = Field(default_factory=GeminiTokens)

    @field_validator("type", mode="before")
    @classmethod
    def _null_type(cls, value: Any):
        return "" if value is None else value

    @field_validator("tokens", mode="before")
    @classmethod
    def _default_tokens(cls, value: Any):
        return {} if value is None else value


class GeminiTranscript(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    session_id: str = Field(default="", alias="sessionId")
    start_time: str | None = Field(default=None, alias="startTime")
    last_updated: str | None = Field(default=None, alias="lastUpdated")
    messages: list[GeminiMessage] = Field(default_factory=list)

    @field_validator("session_id", mode="before")
    @classmethod
    def _null_session_id(cls, value: Any):
        return "" if value is None else value

    @field_validator("messages", mode="before")
    @classmethod
    def _default_messages(cls, value: Any):
        return [] if value is None else value


class TranscriptParser(ABC):
    """Parser for one tool's transcript format."""

    tool: ClassVar[Tool]

    @abstractmethod
    def parse_analytics(self, path: Path) -> SessionAnalytics:
        """Build a fresh analytics snapshot from the whole transcript."""

    @abstractmethod
    def parse_info(self, path: Path) -> SessionInfo:
        """Read session metadata without aggregating turns."""


class GeminiTranscriptParser(TranscriptParser):
    """Parser for Gemini CLI ``session-*.json`` chat files."""

    tool = Tool.GEMINI
    agent_message_type = "gemini"

    def _load(self, path: Path) -> GeminiTranscript:
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise TranscriptParseError(f"Failed to read transcript {path}: {exc}") from exc
        try:
            return GeminiTranscript.model_validate_json(raw)
        except ValidationError as exc:
            raise TranscriptParseError(f"Failed to parse transcript {path}: {exc}") from exc

    def parse_analytics(self, path: Path) -> SessionAnalytics:
        transcript = self._load(path)
        analytics = SessionAnalytics(
            start_time=parse_timestamp(transcript.start_time),
            last_active=parse_timestamp(transcript.last_updated),
            source_path=path,
        )
        if analytics.start_time is not None and analytics.last_active is not None:
            analytics.duration = analytics.last_active - analytics.start_time

        for message in transcript.messages:
            if message.type != self.agent_message_type:
                continue
            analytics.input_tokens += message.tokens.input
            analytics.output_tokens += message.tokens.output
            analytics.total_turns += 1
            if message.model:
                analytics.model = message.model
            # The latest turn's input count covers the whole history sent to the model.
            analytics.current_context_tokens = message.tokens.input

        logger.debug(
            "Parsed transcript analytics",
            extra={"path": str(path), "turns": analytics.total_turns},
        )
        return analytics

    def parse_info(self, path: Path) -> SessionInfo:
        transcript = self._load(path)
        return SessionInfo(
            session_id=transcript.session_id,
            filename=path.name,
            start_time=parse_timestamp(transcript.start_time),
            last_updated=parse_timestamp(transcript.last_updated),
            message_count=len(transcript.messages),
        )


_PARSERS: dict[Tool, type[TranscriptParser]] = {
    Tool.GEMINI: GeminiTranscriptParser,
}


def get_parser(tool: Tool | str) -> TranscriptParser | None:
    """Return the parser for ``tool``, or None when it writes no supported transcript."""

    parser_cls = _PARSERS.get(Tool(tool))
    return parser_cls() if parser_cls is not None else None


__all__ = [
    "GeminiTranscript",
    "GeminiTranscriptParser",
    "TranscriptParseError",
    "TranscriptParser",
    "get_parser",
    "parse_timestamp",
]
