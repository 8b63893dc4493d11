"""Locate agent transcripts on disk."""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Callable

from .errors import InstanceValidationError
from .models import SessionInfo

logger = logging.getLogger(__name__)

SESSION_ID_PREFIX_LENGTH = 8


def is_valid_session_id(session_id: str | None) -> bool:
    """True when ``session_id`` is long enough to name a transcript file."""

    return bool(session_id) and len(session_id) >= SESSION_ID_PREFIX_LENGTH


def hash_project_path(project_path: Path | str) -> str:
    """Return the SHA-256 hex digest of the absolute, symlink-resolved path.

    Falls back to the absolute path when symlinks cannot be resolved.
    """

    absolute = os.path.abspath(os.fspath(project_path))
    try:
        resolved = str(Path(absolute).resolve(strict=True))
    except OSError:
        resolved = absolute
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()


def find_newest_file(directory: Path, pattern: str) -> Path | None:
    """Return the most recently modified file in ``directory`` matching ``pattern``."""

    newest: Path | None = None
    newest_mtime = -1
    for candidate in directory.glob(pattern):
        try:
            mtime = candidate.stat().st_mtime_ns
        except OSError:
            continue
        if mtime > newest_mtime:
            newest, newest_mtime = candidate, mtime
    return newest


class SessionLogLocator:
    """Resolve a working directory and session id to a transcript file.

    Layout: ``<root>/tmp/<project-hash>/chats/session-<timestamp>-<id8>.json``.
    """

    def __init__(
        self,
        root: Path,
        *,
        chats_dirname: str = "chats",
        info_reader: Callable[[Path], SessionInfo] | None = None,
    ) -> None:
        self._root = Path(root).expanduser()
        self._chats_dirname = chats_dirname
        self._info_reader = info_reader

    @property
    def root(self) -> Path:
        return self._root

    @property
    def projects_dir(self) -> Path:
        return self._root / "tmp"

    def sessions_dir(self, workdir: Path | str) -> Path:
        return self.projects_dir / hash_project_path(workdir) / self._chats_dirname

    @staticmethod
    def session_pattern(session_id: str) -> str:
        if not is_valid_session_id(session_id):
            raise InstanceValidationError(
                f"Session id must be at least {SESSION_ID_PREFIX_LENGTH} characters: {session_id!r}"
            )
        return f"session-*-{session_id[:SESSION_ID_PREFIX_LENGTH]}.json"

    def locate(self, workdir: Path | str, session_id: str) -> Path | None:
        """Find the transcript for ``session_id``; None when nothing matches anywhere."""

        pattern = self.session_pattern(session_id)
        found = find_newest_file(self.sessions_dir(workdir), pattern)
        if found is not None:
            return found

        found = self._scan_all_projects(pattern)
        if found is not None:
            logger.info(
                "Transcript found outside the expected project directory",
                extra={"workdir": str(workdir), "session_id": session_id, "path": str(found)},
            )
        return found

    def _scan_all_projects(self, pattern: str) -> Path | None:
        # Slow path: every historical project hash is searched.
        try:
            projects = [entry for entry in self.projects_dir.iterdir() if entry.is_dir()]
        except OSError:
            return None

        newest: Path | None = None
        newest_mtime = -1
        for project in projects:
            candidate = find_newest_file(project / self._chats_dirname, pattern)
            if candidate is None:
                continue
            try:
                mtime = candidate.stat().st_mtime_ns
            except OSError:
                continue
            if mtime > newest_mtime:
                newest, newest_mtime = candidate, mtime
        return newest

    def list_sessions(self, workdir: Path | str) -> list[SessionInfo]:
        """Return metadata for every transcript of a project, most recent first."""

        if self._info_reader is None:
            raise RuntimeError("SessionLogLocator was created without an info reader")

        sessions: list[SessionInfo] = []
        for path in sorted(self.sessions_dir(workdir).glob("session-*.json")):
            try:
                sessions.append(self._info_reader(path))
            except ValueError as exc:
                logger.debug("Skipping unreadable transcript", extra={"path": str(path), "error": str(exc)})

        sessions.sort(
            key=lambda info: info.last_updated.timestamp() if info.last_updated else float("-inf"),
            reverse=True,
        )
        return sessions


__all__ = [
    "SESSION_ID_PREFIX_LENGTH",
    "SessionLogLocator",
    "find_newest_file",
    "hash_project_path",
    "is_valid_session_id",
]
