from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from deck_mcp import __version__
from deck_mcp.catalog import ModelCatalog
from deck_mcp.config import DeckSettings
from deck_mcp.server import build_analytics_cache, configure_logging, create_server
from deck_mcp.session import Tool
from deck_mcp.tmux import FakeTmuxAdapter


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> DeckSettings:
    monkeypatch.setenv("DECK_GEMINI_CONFIG_DIR", str(tmp_path / "gemini"))
    monkeypatch.setenv("DECK_GEMINI_YOLO_MODE", "true")
    return DeckSettings()


def test_status_snapshot_summarizes_instances(tmp_path: Path, settings: DeckSettings) -> None:
    adapter = FakeTmuxAdapter()
    server = create_server(settings, tmux_adapter=adapter, catalog=ModelCatalog(settings))
    registry = server.registry  # type: ignore[attr-defined]

    registry.create("alpha", tmp_path, "gemini")
    registry.create("beta", tmp_path, "claude")

    payload = json.loads(server.status_snapshot())  # type: ignore[attr-defined]

    assert payload["server_version"] == __version__
    assert payload["tmux"]["available"] is True
    assert payload["tmux"]["session_prefix"] == "deck_"
    assert payload["gemini"]["yolo_default"] is True
    assert payload["gemini"]["api_key_configured"] is False
    assert payload["instances"]["count"] == 2
    assert payload["instances"]["status_counts"] == {"running": 2}
    assert payload["instances"]["tool_counts"] == {"gemini": 1, "claude": 1}
    assert payload["instances"]["yolo_enabled"] == ["alpha"]
    assert [item["name"] for item in payload["instances"]["preview"]] == ["alpha", "beta"]
    assert "deck_alpha" in adapter.sessions


def test_server_without_tmux(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, settings: DeckSettings) -> None:
    monkeypatch.setenv("TMUX_PATH", str(tmp_path / "no-tmux"))
    settings = DeckSettings()

    server = create_server(settings)

    assert server.registry is None  # type: ignore[attr-defined]
    metadata = server.tmux_metadata  # type: ignore[attr-defined]
    assert metadata["available"] is False
    assert "not found" in metadata["error"]

    payload = json.loads(server.status_snapshot())  # type: ignore[attr-defined]
    assert payload["instances"]["count"] == 0


def test_server_reports_tmux_version(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, settings: DeckSettings) -> None:
    script = tmp_path / "tmux"
    script.write_text("#!/bin/sh\necho 'tmux 3.4'\n", encoding="utf-8")
    script.chmod(0o755)
    monkeypatch.setenv("TMUX_PATH", str(script))

    server = create_server(DeckSettings())

    assert server.tmux_metadata == {  # type: ignore[attr-defined]
        "available": True,
        "version": "tmux 3.4",
        "error": None,
    }
    assert server.registry is not None  # type: ignore[attr-defined]


def test_build_analytics_cache_wires_gemini(settings: DeckSettings) -> None:
    cache = build_analytics_cache(settings)

    assert cache.supports(Tool.GEMINI)
    assert not cache.supports(Tool.CLAUDE)
    assert cache.locator_for(Tool.GEMINI).root == settings.gemini_config_dir


def test_configure_logging_sets_level(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))

    configure_logging("DEBUG")

    assert captured["level"] == logging.DEBUG
