"""A single tracked agent session hosted in tmux."""

from __future__ import annotations

import logging
import shlex
import threading
from pathlib import Path
from typing import Any

from ..tmux import SessionAdapter, TmuxError, tmux_session_name
from .errors import InstanceStateError, InstanceValidationError
from .locator import SESSION_ID_PREFIX_LENGTH, is_valid_session_id
from .models import TOOL_SPECS, InstanceStatus, SessionAnalytics, Tool, ToolSpec

logger = logging.getLogger(__name__)


def _render_bool(value: bool) -> str:
    return "true" if value else "false"


class Instance:
    """One agent session: lifecycle, YOLO mode flag and launch command.

    ``yolo_mode`` is tri-state. ``None`` means the value has not been
    determined yet; the first :meth:`refresh` against a live session collapses
    it to a concrete boolean read from the tmux environment.
    """

    def __init__(
        self,
        name: str,
        workdir: Path | str,
        tool: Tool | str = Tool.SHELL,
        *,
        adapter: SessionAdapter,
        yolo_mode: bool | None = None,
        agent_session_id: str | None = None,
        model: str | None = None,
        session_prefix: str = "",
    ) -> None:
        self._name = name
        self._adapter = adapter
        self.workdir = Path(workdir)
        self.tool = Tool(tool)
        self.tmux_session = tmux_session_name(name, session_prefix)
        self.yolo_mode = yolo_mode
        self.agent_session_id = agent_session_id
        self.model = model
        self.status = InstanceStatus.CREATED
        self.analytics: SessionAnalytics | None = None
        self.analytics_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Instance(name={self._name!r}, tool={self.tool.value!r}, status={self.status.value!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def spec(self) -> ToolSpec:
        return TOOL_SPECS[self.tool]

    def build_command(self) -> tuple[str, dict[str, str]]:
        """Return the launch command and the session environment that goes with it."""

        spec = self.spec
        environment: dict[str, str] = {}
        if spec.command is None:
            return "", environment

        argv = [spec.command]
        if self.agent_session_id and spec.resume_flag:
            argv.extend([spec.resume_flag, self.agent_session_id])
        if self.model and spec.model_flag:
            argv.extend([spec.model_flag, self.model])
        if spec.supports_yolo and self.yolo_mode is not None:
            if self.yolo_mode:
                argv.append(spec.yolo_flag)
            environment[spec.yolo_env_var] = _render_bool(self.yolo_mode)
        if self.agent_session_id and spec.session_env_var:
            environment[spec.session_env_var] = self.agent_session_id
        return shlex.join(argv), environment

    def start(self) -> None:
        if self.status is InstanceStatus.RUNNING:
            raise InstanceStateError(f"Instance '{self._name}' is already running")
        self._launch()

    def kill(self) -> None:
        self._adapter.kill(self.tmux_session)
        self.status = InstanceStatus.STOPPED
        logger.info("Stopped instance", extra={"instance": self._name})

    def restart(self) -> None:
        """Re-launch the session with a freshly built command."""

        self._adapter.kill(self.tmux_session)
        self.status = InstanceStatus.STOPPED
        self._launch()

    def is_alive(self) -> bool:
        if self.status is InstanceStatus.RUNNING and not self._adapter.has_session(self.tmux_session):
            logger.info(
                "tmux session disappeared; marking instance stopped",
                extra={"instance": self._name, "session": self.tmux_session},
            )
            self.status = InstanceStatus.STOPPED
        return self.status is InstanceStatus.RUNNING

    def set_yolo_mode(self, enabled: bool) -> None:
        """Update the flag and push it to the tmux environment.

        The in-memory value changes even when the tmux write fails; the
        :class:`TmuxError` is re-raised so the caller can report it.
        """

        spec = self._require_yolo_support()
        self.yolo_mode = enabled
        if self.status is not InstanceStatus.RUNNING:
            return
        self._adapter.set_env(self.tmux_session, spec.yolo_env_var, _render_bool(enabled))

    def toggle_yolo_mode(self, *, restart: bool = True) -> bool:
        """Flip the flag; a running instance restarts even if the tmux write failed."""

        enabled = not bool(self.yolo_mode)
        try:
            self.set_yolo_mode(enabled)
        except TmuxError:
            if restart and self.status is InstanceStatus.RUNNING:
                self.restart()
            raise
        if restart and self.status is InstanceStatus.RUNNING:
            self.restart()
        return enabled

    def set_model(self, model: str) -> None:
        model = model.strip()
        if not model:
            raise InstanceValidationError("Model name must not be empty")
        if self.spec.model_flag is None:
            raise InstanceValidationError(f"Tool '{self.tool.value}' does not accept a model")
        self.model = model
        if self.status is InstanceStatus.RUNNING:
            self.restart()

    def refresh(self) -> None:
        """Reconcile status, YOLO mode and session id with the tmux session."""

        if not self.is_alive():
            return

        spec = self.spec
        if spec.supports_yolo and self.yolo_mode is None:
            try:
                value = self._adapter.get_env(self.tmux_session, spec.yolo_env_var)
            except TmuxError as exc:
                logger.warning(
                    "Failed to read YOLO mode from tmux; treating as disabled",
                    extra={"instance": self._name, "error": str(exc)},
                )
                value = None
            self.yolo_mode = value == "true"

        if spec.session_env_var and not self.agent_session_id:
            try:
                session_id = self._adapter.get_env(self.tmux_session, spec.session_env_var)
            except TmuxError as exc:
                logger.debug(
                    "Failed to read agent session id from tmux",
                    extra={"instance": self._name, "error": str(exc)},
                )
                session_id = None
            if is_valid_session_id(session_id):
                self.agent_session_id = session_id
            elif session_id:
                logger.warning(
                    "Ignoring agent session id shorter than %d characters",
                    SESSION_ID_PREFIX_LENGTH,
                    extra={"instance": self._name, "session_id": session_id},
                )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self._name,
            "workdir": str(self.workdir),
            "tool": self.tool.value,
            "tmux_session": self.tmux_session,
            "status": self.status.value,
            "yolo_mode": self.yolo_mode,
            "agent_session_id": self.agent_session_id,
            "model": self.model,
            "analytics": self.analytics.to_dict() if self.analytics else None,
        }

    def _require_yolo_support(self) -> ToolSpec:
        spec = self.spec
        if not spec.supports_yolo:
            raise InstanceValidationError(
                f"Tool '{self.tool.value}' does not support YOLO mode"
            )
        return spec

    def _launch(self) -> None:
        command, environment = self.build_command()
        self._adapter.create(self.tmux_session, self.workdir, command, environment=environment)
        self.status = InstanceStatus.RUNNING
        logger.info(
            "Started instance",
            extra={
                "instance": self._name,
                "session": self.tmux_session,
                "tool": self.tool.value,
                "yolo_mode": self.yolo_mode,
            },
        )


__all__ = ["Instance"]
