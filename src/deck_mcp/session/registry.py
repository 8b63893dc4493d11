"""Registry owning every tracked instance."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from ..tmux import SessionAdapter
from .analytics import AnalyticsCache
from .errors import DuplicateInstanceError, InstanceNotFoundError, InstanceValidationError
from .instance import Instance
from .locator import SESSION_ID_PREFIX_LENGTH, is_valid_session_id
from .models import TOOL_SPECS, InstanceStatus, Tool

logger = logging.getLogger(__name__)


class InstanceRegistry:
    """Create, look up and drop :class:`Instance` records."""

    def __init__(
        self,
        adapter: SessionAdapter,
        *,
        analytics: AnalyticsCache | None = None,
        session_prefix: str = "",
        default_yolo_mode: bool = False,
    ) -> None:
        self._adapter = adapter
        self._analytics = analytics
        self._session_prefix = session_prefix
        self._default_yolo_mode = default_yolo_mode
        self._instances: dict[str, Instance] = {}
        self._lock = threading.Lock()

    @property
    def analytics(self) -> AnalyticsCache | None:
        return self._analytics

    def create(
        self,
        name: str,
        workdir: Path | str,
        tool: Tool | str = Tool.SHELL,
        *,
        yolo_mode: bool | None = None,
        model: str | None = None,
        start: bool = True,
    ) -> Instance:
        """Register a new instance and, unless ``start`` is False, launch it.

        Tools that support YOLO mode fall back to the global default when no
        explicit value is given. A failed launch leaves nothing registered.
        """

        tool = self._validate_tool(tool)
        instance = self._build(name, workdir, tool, model=model)
        if TOOL_SPECS[tool].supports_yolo:
            instance.yolo_mode = self._default_yolo_mode if yolo_mode is None else yolo_mode
        elif yolo_mode:
            raise InstanceValidationError(f"Tool '{tool.value}' does not support YOLO mode")

        with self._lock:
            self._ensure_unique(instance)
            if start:
                instance.start()
            self._instances[instance.name] = instance

        logger.info(
            "Registered instance",
            extra={"instance": instance.name, "tool": tool.value, "started": start},
        )
        return instance

    def attach(
        self,
        name: str,
        workdir: Path | str,
        tool: Tool | str = Tool.SHELL,
        *,
        agent_session_id: str | None = None,
        model: str | None = None,
    ) -> Instance:
        """Track a tmux session that outlived a previous run of the application.

        The YOLO flag starts unset and is recovered from the tmux environment.
        An empty ``agent_session_id`` counts as unknown.
        """

        tool = self._validate_tool(tool)
        agent_session_id = agent_session_id or None
        if agent_session_id is not None and not is_valid_session_id(agent_session_id):
            raise InstanceValidationError(
                f"Session id must be at least {SESSION_ID_PREFIX_LENGTH} characters: {agent_session_id!r}"
            )
        instance = self._build(name, workdir, tool, model=model)
        instance.agent_session_id = agent_session_id

        with self._lock:
            self._ensure_unique(instance)
            live = self._adapter.has_session(instance.tmux_session)
            instance.status = InstanceStatus.RUNNING if live else InstanceStatus.STOPPED
            self._instances[instance.name] = instance

        instance.refresh()
        logger.info(
            "Attached instance",
            extra={"instance": instance.name, "live": live, "yolo_mode": instance.yolo_mode},
        )
        return instance

    def get(self, name: str) -> Instance:
        with self._lock:
            try:
                return self._instances[name]
            except KeyError:
                raise InstanceNotFoundError(name) from None

    def list_instances(self) -> list[Instance]:
        with self._lock:
            return list(self._instances.values())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._instances

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def remove(self, name: str) -> Instance:
        """Kill the instance's session and drop the record."""

        instance = self.get(name)
        instance.kill()
        with self._lock:
            self._instances.pop(name, None)
        logger.info("Removed instance", extra={"instance": name})
        return instance

    def restart(self, name: str) -> Instance:
        instance = self.get(name)
        instance.restart()
        return instance

    def refresh(self, name: str) -> Instance:
        """Reconcile an instance with tmux, then refresh its analytics.

        :class:`~deck_mcp.session.parser.TranscriptParseError` propagates with
        the previous analytics snapshot intact.
        """

        instance = self.get(name)
        instance.refresh()
        if self._analytics is not None:
            self._analytics.refresh(instance)
        return instance

    def _build(
        self,
        name: str,
        workdir: Path | str,
        tool: Tool,
        *,
        model: str | None,
    ) -> Instance:
        name = (name or "").strip()
        if not name:
            raise InstanceValidationError("Instance name must not be empty")
        if not workdir or not str(workdir).strip():
            raise InstanceValidationError("Working directory must not be empty")
        path = Path(workdir).expanduser().absolute()
        if not path.is_dir():
            raise InstanceValidationError(f"Working directory does not exist: {path}")

        return Instance(
            name,
            path,
            tool,
            adapter=self._adapter,
            model=model,
            session_prefix=self._session_prefix,
        )

    @staticmethod
    def _validate_tool(tool: Tool | str) -> Tool:
        try:
            return Tool(tool)
        except ValueError:
            valid = ", ".join(item.value for item in Tool)
            raise InstanceValidationError(f"Unknown tool '{tool}'. Must be one of: {valid}") from None

    def _ensure_unique(self, instance: Instance) -> None:
        if instance.name in self._instances:
            raise DuplicateInstanceError(f"Instance '{instance.name}' already exists")
        for existing in self._instances.values():
            if existing.tmux_session == instance.tmux_session:
                raise DuplicateInstanceError(
                    f"Instance '{instance.name}' maps to tmux session "
                    f"'{instance.tmux_session}' already used by '{existing.name}'"
                )


__all__ = ["InstanceRegistry"]
