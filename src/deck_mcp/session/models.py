"""Data models for tracked agent sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any


class Tool(str, Enum):
    """Agent tools an instance can host."""

    SHELL = "shell"
    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENCODE = "opencode"
    CODEX = "codex"


class InstanceStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Launch conventions for one tool."""

    command: str | None
    yolo_flag: str | None = None
    model_flag: str | None = None
    resume_flag: str | None = None
    yolo_env_var: str | None = None
    session_env_var: str | None = None

    @property
    def supports_yolo(self) -> bool:
        return self.yolo_flag is not None and self.yolo_env_var is not None


TOOL_SPECS: dict[Tool, ToolSpec] = {
    Tool.SHELL: ToolSpec(command=None),
    Tool.CLAUDE: ToolSpec(command="claude", model_flag="--model", resume_flag="--resume"),
    Tool.GEMINI: ToolSpec(
        command="gemini",
        yolo_flag="--yolo",
        model_flag="--model",
        resume_flag="--resume",
        yolo_env_var="GEMINI_YOLO_MODE",
        session_env_var="GEMINI_SESSION_ID",
    ),
    Tool.OPENCODE: ToolSpec(command="opencode"),
    Tool.CODEX: ToolSpec(command="codex", model_flag="--model"),
}


@dataclass(slots=True)
class SessionAnalytics:
    """Usage analytics derived from one transcript parse."""

    start_time: datetime | None = None
    last_active: datetime | None = None
    duration: timedelta = field(default_factory=timedelta)
    input_tokens: int = 0
    output_tokens: int = 0
    total_turns: int = 0
    model: str = ""
    current_context_tokens: int = 0
    fingerprint: int | None = None
    source_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "last_active": self.last_active.isoformat() if self.last_active else None,
            "duration_seconds": self.duration.total_seconds(),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_turns": self.total_turns,
            "model": self.model,
            "current_context_tokens": self.current_context_tokens,
            "source_path": str(self.source_path) if self.source_path else None,
        }


@dataclass(slots=True)
class SessionInfo:
    session_id: str
    filename: str
    start_time: datetime | None
    last_updated: datetime | None
    message_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "filename": self.filename,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "message_count": self.message_count,
        }


__all__ = [
    "InstanceStatus",
    "SessionAnalytics",
    "SessionInfo",
    "TOOL_SPECS",
    "Tool",
    "ToolSpec",
]
