from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable

import pytest

from deck_mcp.session import hash_project_path


TranscriptWriter = Callable[..., Path]

_SETTINGS_ENV = (
    "TMUX_PATH",
    "DECK_SESSION_PREFIX",
    "DECK_GEMINI_CONFIG_DIR",
    "DECK_GEMINI_YOLO_MODE",
    "DECK_MODEL_CACHE_TTL",
    "DECK_LOG_LEVEL",
    "GOOGLE_API_KEY",
    "GEMINI_MODELS_OVERRIDE",
)


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def write_transcript(tmp_path: Path) -> TranscriptWriter:
    """Write a Gemini chat file under ``<tmp>/gemini/tmp/<hash>/chats``."""

    root = tmp_path / "gemini"

    def _write(
        workdir: Path,
        session_id: str,
        messages: list[dict[str, Any]] | None = None,
        *,
        stamp: str = "2025-01-01T10-00",
        start_time: str = "2025-01-01T10:00:00.000Z",
        last_updated: str = "2025-01-01T10:30:00.000Z",
        project_hash: str | None = None,
        mtime_ns: int | None = None,
        raw: str | None = None,
    ) -> Path:
        chats = root / "tmp" / (project_hash or hash_project_path(workdir)) / "chats"
        chats.mkdir(parents=True, exist_ok=True)
        path = chats / f"session-{stamp}-{session_id[:8]}.json"
        if raw is None:
            raw = json.dumps(
                {
                    "sessionId": session_id,
                    "projectHash": project_hash or hash_project_path(workdir),
                    "startTime": start_time,
                    "lastUpdated": last_updated,
                    "messages": messages or [],
                }
            )
        path.write_text(raw, encoding="utf-8")
        if mtime_ns is not None:
            os.utime(path, ns=(mtime_ns, mtime_ns))
        return path

    _write.root = root  # type: ignore[attr-defined]
    return _write
