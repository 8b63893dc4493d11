"""Blocking adapter around the tmux CLI."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Protocol

from .utils import sanitize_environment

logger = logging.getLogger(__name__)


class TmuxError(RuntimeError):
    """Base class for tmux adapter errors."""


class TmuxNotFoundError(TmuxError):
    """Raised when the tmux executable cannot be located."""


class SessionCreateError(TmuxError):
    """Raised when a tmux session cannot be created."""


class SessionAdapter(Protocol):
    """Protocol for the session operations instances rely on."""

    def has_session(self, name: str) -> bool:
        ...

    def create(
        self,
        name: str,
        workdir: Path,
        command: str,
        *,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        ...

    def kill(self, name: str) -> None:
        ...

    def get_env(self, name: str, key: str) -> str | None:
        ...

    def set_env(self, name: str, key: str, value: str) -> None:
        ...


@dataclass(slots=True)
class TmuxExecutionResult:
    """Holds the outcome of a tmux CLI invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _target(name: str) -> str:
    # "=" forces an exact session-name match instead of tmux's prefix matching.
    return f"={name}"


class TmuxAdapter:
    """Drive tmux sessions and their session-scoped environment."""

    def __init__(self, executable: Path | None = None) -> None:
        self._executable_path = self._resolve_executable(executable)

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise TmuxNotFoundError(f"tmux executable not found at {candidate}")

        binary = shutil.which("tmux")
        if binary is None:
            raise TmuxNotFoundError("tmux executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    def version(self) -> TmuxExecutionResult:
        return self._invoke("-V")

    def has_session(self, name: str) -> bool:
        return self._invoke("has-session", "-t", _target(name)).ok

    def create(
        self,
        name: str,
        workdir: Path,
        command: str,
        *,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        """Start a detached session named ``name`` running ``command`` in ``workdir``."""

        try:
            if self.has_session(name):
                raise SessionCreateError(f"tmux session '{name}' already exists")

            args: list[str] = ["new-session", "-d", "-s", name, "-c", str(workdir)]
            for key, value in sorted((environment or {}).items()):
                args.extend(["-e", f"{key}={value}"])
            if command:
                args.append(command)
            result = self._invoke(*args)
        except SessionCreateError:
            raise
        except TmuxError as exc:
            raise SessionCreateError(f"Failed to create tmux session '{name}': {exc}") from exc

        if not result.ok:
            raise SessionCreateError(
                f"Failed to create tmux session '{name}': "
                f"{result.stderr.strip() or f'exit code {result.returncode}'}"
            )
        logger.debug("Created tmux session", extra={"session": name, "workdir": str(workdir)})

    def kill(self, name: str) -> None:
        """Kill a session; killing an absent session is a no-op."""

        if not self.has_session(name):
            return
        result = self._invoke("kill-session", "-t", _target(name))
        if not result.ok and self.has_session(name):
            raise TmuxError(
                f"Failed to kill tmux session '{name}': {result.stderr.strip()}"
            )
        logger.debug("Killed tmux session", extra={"session": name})

    def get_env(self, name: str, key: str) -> str | None:
        """Read a session-scoped variable; None when it is unset or removed."""

        result = self._invoke("show-environment", "-t", _target(name), key)
        if not result.ok:
            if "unknown variable" in result.stderr:
                return None
            raise TmuxError(
                f"Failed to read {key} from tmux session '{name}': {result.stderr.strip()}"
            )

        line = result.stdout.strip()
        if line.startswith("-"):
            return None
        prefix = f"{key}="
        if not line.startswith(prefix):
            return None
        return line[len(prefix):]

    def set_env(self, name: str, key: str, value: str) -> None:
        result = self._invoke("set-environment", "-t", _target(name), key, value)
        if not result.ok:
            raise TmuxError(
                f"Failed to set {key} on tmux session '{name}': {result.stderr.strip()}"
            )

    def _invoke(self, *args: str) -> TmuxExecutionResult:
        cmd = [str(self._executable_path), *args]
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                env=sanitize_environment(),
                check=False,
            )
        except OSError as exc:
            raise TmuxError(f"Failed to execute {cmd[0]}: {exc}") from exc
        return TmuxExecutionResult(
            args=tuple(cmd),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


@dataclass(slots=True)
class FakeSession:
    workdir: Path
    command: str
    environment: dict[str, str] = field(default_factory=dict)


class FakeTmuxAdapter:
    """Test double that keeps tmux sessions in memory."""

    def __init__(self) -> None:
        self.sessions: dict[str, FakeSession] = {}
        self._invocations: list[tuple[str, ...]] = []

    def has_session(self, name: str) -> bool:
        self._invocations.append(("has-session", name))
        return name in self.sessions

    def create(
        self,
        name: str,
        workdir: Path,
        command: str,
        *,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        self._invocations.append(("new-session", name, command))
        if name in self.sessions:
            raise SessionCreateError(f"tmux session '{name}' already exists")
        self.sessions[name] = FakeSession(
            workdir=Path(workdir), command=command, environment=dict(environment or {})
        )

    def kill(self, name: str) -> None:
        self._invocations.append(("kill-session", name))
        self.sessions.pop(name, None)

    def get_env(self, name: str, key: str) -> str | None:
        self._invocations.append(("show-environment", name, key))
        session = self.sessions.get(name)
        if session is None:
            raise TmuxError(f"can't find session: {name}")
        return session.environment.get(key)

    def set_env(self, name: str, key: str, value: str) -> None:
        self._invocations.append(("set-environment", name, key, value))
        session = self.sessions.get(name)
        if session is None:
            raise TmuxError(f"can't find session: {name}")
        session.environment[key] = value

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations


__all__ = [
    "FakeTmuxAdapter",
    "SessionAdapter",
    "SessionCreateError",
    "TmuxAdapter",
    "TmuxError",
    "TmuxExecutionResult",
    "TmuxNotFoundError",
]
