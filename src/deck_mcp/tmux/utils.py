"""Utility helpers for the tmux adapter."""

from __future__ import annotations

import os
import re
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
    "TMUX",
    "TMUX_PANE",
}

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for tmux client invocations."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update(additional)
    return env


def tmux_session_name(name: str, prefix: str = "") -> str:
    """Build a tmux-safe session name; tmux rejects '.' and ':' in targets."""

    slug = _UNSAFE_NAME_CHARS.sub("-", name.strip()).strip("-")
    return f"{prefix}{slug or 'session'}"
