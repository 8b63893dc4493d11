from __future__ import annotations

from pathlib import Path

import pytest

from deck_mcp.tmux import (
    FakeTmuxAdapter,
    SessionCreateError,
    TmuxAdapter,
    TmuxError,
    TmuxNotFoundError,
    tmux_session_name,
)
from deck_mcp.tmux.utils import sanitize_environment


def write_fake_tmux(tmp_path: Path, body: str) -> tuple[Path, Path]:
    """Create a tmux stand-in that logs its arguments, then runs ``body``."""

    log = tmp_path / "tmux.log"
    script = tmp_path / "tmux"
    script.write_text(
        "#!/bin/sh\n"
        f"echo \"$@\" >> '{log}'\n"
        f"{body}\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    return script, log


def logged_calls(log: Path) -> list[str]:
    if not log.exists():
        return []
    return log.read_text(encoding="utf-8").splitlines()


def test_tmux_not_found(tmp_path: Path) -> None:
    with pytest.raises(TmuxNotFoundError):
        TmuxAdapter(tmp_path / "missing")


def test_create_passes_workdir_environment_and_command(tmp_path: Path) -> None:
    script, log = write_fake_tmux(
        tmp_path,
        'case "$1" in has-session) exit 1 ;; *) exit 0 ;; esac',
    )
    adapter = TmuxAdapter(script)

    adapter.create(
        "deck_alpha",
        tmp_path,
        "gemini --yolo",
        environment={"GEMINI_YOLO_MODE": "true"},
    )

    calls = logged_calls(log)
    assert calls[0] == "has-session -t =deck_alpha"
    assert calls[1] == (
        f"new-session -d -s deck_alpha -c {tmp_path} -e GEMINI_YOLO_MODE=true gemini --yolo"
    )


def test_create_rejects_existing_session(tmp_path: Path) -> None:
    script, log = write_fake_tmux(tmp_path, "exit 0")
    adapter = TmuxAdapter(script)

    with pytest.raises(SessionCreateError):
        adapter.create("deck_alpha", tmp_path, "")

    assert not any(call.startswith("new-session") for call in logged_calls(log))


def test_create_reports_tmux_failure(tmp_path: Path) -> None:
    script, _ = write_fake_tmux(
        tmp_path,
        'case "$1" in has-session) exit 1 ;; *) echo "no server" >&2; exit 1 ;; esac',
    )
    adapter = TmuxAdapter(script)

    with pytest.raises(SessionCreateError, match="no server"):
        adapter.create("deck_alpha", tmp_path, "")


def test_kill_absent_session_is_noop(tmp_path: Path) -> None:
    script, log = write_fake_tmux(tmp_path, "exit 1")
    adapter = TmuxAdapter(script)

    adapter.kill("deck_gone")

    assert logged_calls(log) == ["has-session -t =deck_gone"]


def test_get_env_parses_value(tmp_path: Path) -> None:
    script, _ = write_fake_tmux(tmp_path, 'echo "$4=true"')
    adapter = TmuxAdapter(script)

    assert adapter.get_env("deck_alpha", "GEMINI_YOLO_MODE") == "true"


def test_get_env_unknown_variable_returns_none(tmp_path: Path) -> None:
    script, _ = write_fake_tmux(tmp_path, 'echo "unknown variable: $4" >&2; exit 1')
    adapter = TmuxAdapter(script)

    assert adapter.get_env("deck_alpha", "GEMINI_YOLO_MODE") is None


def test_get_env_removed_variable_returns_none(tmp_path: Path) -> None:
    script, _ = write_fake_tmux(tmp_path, 'echo "-$4"')
    adapter = TmuxAdapter(script)

    assert adapter.get_env("deck_alpha", "GEMINI_YOLO_MODE") is None


def test_get_env_missing_session_raises(tmp_path: Path) -> None:
    script, _ = write_fake_tmux(tmp_path, 'echo "can\'t find session: deck_alpha" >&2; exit 1')
    adapter = TmuxAdapter(script)

    with pytest.raises(TmuxError):
        adapter.get_env("deck_alpha", "GEMINI_YOLO_MODE")


def test_set_env_invokes_set_environment(tmp_path: Path) -> None:
    script, log = write_fake_tmux(tmp_path, "exit 0")
    adapter = TmuxAdapter(script)

    adapter.set_env("deck_alpha", "GEMINI_YOLO_MODE", "false")

    assert logged_calls(log) == ["set-environment -t =deck_alpha GEMINI_YOLO_MODE false"]


def test_fake_adapter_records_invocations(tmp_path: Path) -> None:
    fake = FakeTmuxAdapter()
    fake.create("deck_alpha", tmp_path, "claude", environment={"A": "1"})
    fake.set_env("deck_alpha", "B", "2")

    assert fake.get_env("deck_alpha", "A") == "1"
    assert fake.sessions["deck_alpha"].environment == {"A": "1", "B": "2"}
    assert ("new-session", "deck_alpha", "claude") in fake.invocations

    fake.kill("deck_alpha")
    fake.kill("deck_alpha")
    assert not fake.has_session("deck_alpha")


def test_tmux_session_name_replaces_unsafe_characters() -> None:
    assert tmux_session_name("my.project:1", "deck_") == "deck_my-project-1"
    assert tmux_session_name("...", "deck_") == "deck_session"


def test_sanitize_environment_strips_tmux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,1,0")
    monkeypatch.setenv("PYTHONPATH", "value")
    env = sanitize_environment({"EXTRA": "1"})
    assert "TMUX" not in env
    assert "PYTHONPATH" not in env
    assert env["EXTRA"] == "1"
