"""Tool registration for Deck MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..catalog import ModelCatalog
from ..session import (
    Instance,
    InstanceRegistry,
    InstanceValidationError,
    Tool,
    TranscriptParseError,
)
from ..tmux import TmuxError


@dataclass(slots=True)
class ToolHandles:
    create_instance: Any
    attach_instance: Any
    list_instances: Any
    instance_status: Any
    kill_instance: Any
    restart_instance: Any
    set_yolo_mode: Any
    toggle_yolo_mode: Any
    set_model: Any
    refresh_analytics: Any
    list_transcripts: Any
    list_models: Any


def _refresh_analytics(registry: InstanceRegistry, instance: Instance) -> dict[str, Any]:
    """Refresh analytics and fold parse failures into the payload."""

    payload: dict[str, Any] = {"analytics_updated": False, "analytics_error": None}
    cache = registry.analytics
    if cache is None:
        return payload
    try:
        payload["analytics_updated"] = cache.refresh(instance)
    except TranscriptParseError as exc:
        payload["analytics_error"] = str(exc)
    return payload


def register_tools(
    server: FastMCP,
    *,
    registry: InstanceRegistry | None,
    catalog: ModelCatalog,
) -> ToolHandles:
    """Register Deck's MCP tools on the server."""

    def _require_registry() -> InstanceRegistry:
        if registry is None:
            raise RuntimeError("tmux is unavailable; install tmux or set TMUX_PATH to manage instances")
        return registry

    def _create_instance(
        name: str,
        workdir: str,
        tool: str = Tool.SHELL.value,
        *,
        yolo_mode: bool | None = None,
        model: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Create an instance and launch it in a new tmux session."""

        instance = _require_registry().create(
            name, workdir, tool, yolo_mode=yolo_mode, model=model
        )
        _emit_log(
            context,
            "info",
            "Created instance",
            extra={"instance": instance.name, "tool": instance.tool.value},
        )
        return instance.to_dict()

    def _attach_instance(
        name: str,
        workdir: str,
        tool: str = Tool.SHELL.value,
        *,
        agent_session_id: str | None = None,
        model: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Track an existing tmux session and recover its YOLO mode."""

        reg = _require_registry()
        instance = reg.attach(
            name, workdir, tool, agent_session_id=agent_session_id, model=model
        )
        result = instance.to_dict()
        result.update(_refresh_analytics(reg, instance))
        if result["analytics_updated"]:
            result["analytics"] = instance.analytics.to_dict() if instance.analytics else None
        _emit_log(
            context,
            "info",
            "Attached instance",
            extra={"instance": instance.name, "status": instance.status.value},
        )
        return result

    def _list_instances(context: Context | None = None) -> list[dict[str, Any]]:
        """List tracked instances without touching tmux."""

        instances = [instance.to_dict() for instance in _require_registry().list_instances()]
        _emit_log(context, "debug", "Listing instances", extra={"count": len(instances)})
        return instances

    def _instance_status(name: str, context: Context | None = None) -> dict[str, Any]:
        """Reconcile an instance with tmux and its transcript, then report it."""

        reg = _require_registry()
        instance = reg.get(name)
        instance.refresh()
        analytics = _refresh_analytics(reg, instance)
        result = instance.to_dict()
        result.update(analytics)
        if analytics["analytics_error"]:
            _emit_log(
                context,
                "warning",
                "Analytics refresh failed",
                extra={"instance": name, "error": analytics["analytics_error"]},
            )
        return result

    def _kill_instance(name: str, context: Context | None = None) -> dict[str, Any]:
        """Kill the tmux session and stop tracking the instance."""

        instance = _require_registry().remove(name)
        _emit_log(context, "warning", "Killed instance", extra={"instance": name})
        return {"name": instance.name, "status": instance.status.value, "removed": True}

    def _restart_instance(name: str, context: Context | None = None) -> dict[str, Any]:
        instance = _require_registry().restart(name)
        _emit_log(context, "info", "Restarted instance", extra={"instance": name})
        return instance.to_dict()

    def _set_yolo_mode(
        name: str,
        enabled: bool,
        *,
        restart: bool = False,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Set YOLO mode; tmux persistence failures are reported, not raised."""

        instance = _require_registry().get(name)
        persist_error: str | None = None
        try:
            instance.set_yolo_mode(enabled)
        except TmuxError as exc:
            persist_error = str(exc)
            _emit_log(
                context,
                "warning",
                "YOLO mode not persisted to tmux",
                extra={"instance": name, "error": persist_error},
            )
        if restart and instance.is_alive():
            instance.restart()
        result = instance.to_dict()
        result["persist_error"] = persist_error
        return result

    def _toggle_yolo_mode(name: str, context: Context | None = None) -> dict[str, Any]:
        """Flip YOLO mode and restart so the agent picks up the new value."""

        instance = _require_registry().get(name)
        persist_error: str | None = None
        try:
            instance.toggle_yolo_mode(restart=True)
        except TmuxError as exc:
            persist_error = str(exc)
        _emit_log(
            context,
            "info" if persist_error is None else "warning",
            "Toggled YOLO mode",
            extra={"instance": name, "yolo_mode": instance.yolo_mode, "error": persist_error},
        )
        result = instance.to_dict()
        result["persist_error"] = persist_error
        return result

    def _set_model(name: str, model: str, context: Context | None = None) -> dict[str, Any]:
        """Select a model for the instance and restart it if running."""

        instance = _require_registry().get(name)
        instance.set_model(model)
        _emit_log(context, "info", "Changed model", extra={"instance": name, "model": model})
        return instance.to_dict()

    def _refresh_analytics_tool(name: str, context: Context | None = None) -> dict[str, Any]:
        reg = _require_registry()
        instance = reg.get(name)
        result = _refresh_analytics(reg, instance)
        result["analytics"] = instance.analytics.to_dict() if instance.analytics else None
        result["name"] = name
        return result

    def _list_transcripts(
        workdir: str,
        tool: str = Tool.GEMINI.value,
        *,
        limit: int | None = None,
        context: Context | None = None,
    ) -> list[dict[str, Any]]:
        """List transcripts recorded for a project directory, newest first."""

        reg = _require_registry()
        cache = reg.analytics
        locator = cache.locator_for(Tool(tool)) if cache is not None else None
        if locator is None:
            raise InstanceValidationError(f"Tool '{tool}' has no transcript support")
        sessions = [info.to_dict() for info in locator.list_sessions(workdir)]
        if limit is not None and limit > 0:
            sessions = sessions[:limit]
        _emit_log(
            context,
            "debug",
            "Listing transcripts",
            extra={"workdir": workdir, "count": len(sessions)},
        )
        return sessions

    def _list_models(context: Context | None = None) -> list[str]:
        """List Gemini models available for selection."""

        models = catalog.available_models()
        _emit_log(context, "debug", "Listing models", extra={"count": len(models)})
        return models

    tool_create = server.tool(
        name="create_instance",
        description=(
            "Create an agent instance in a new tmux session. Tool is one of shell, claude, "
            "gemini, opencode, codex; gemini instances default YOLO mode to the global setting."
        ),
    )(_create_instance)

    tool_attach = server.tool(
        name="attach_instance",
        description="Track a tmux session left by a previous run and recover its YOLO mode.",
    )(_attach_instance)

    tool_list = server.tool(
        name="list_instances",
        description="List tracked instances with status, YOLO mode, and cached analytics.",
    )(_list_instances)

    tool_status = server.tool(
        name="instance_status",
        description="Reconcile one instance with tmux and its transcript, then report it.",
    )(_instance_status)

    tool_kill = server.tool(
        name="kill_instance",
        description="Kill an instance's tmux session and remove it from the registry.",
        annotations={"destructiveHint": True},
    )(_kill_instance)

    tool_restart = server.tool(
        name="restart_instance",
        description="Restart an instance with a freshly built launch command.",
    )(_restart_instance)

    tool_set_yolo = server.tool(
        name="set_yolo_mode",
        description="Set YOLO (auto-approve) mode; optionally restart to apply it to the agent.",
    )(_set_yolo_mode)

    tool_toggle_yolo = server.tool(
        name="toggle_yolo_mode",
        description="Toggle YOLO mode and restart the instance with the new value.",
    )(_toggle_yolo_mode)

    tool_set_model = server.tool(
        name="set_model",
        description="Select the model an instance runs with; running instances restart.",
    )(_set_model)

    tool_refresh = server.tool(
        name="refresh_analytics",
        description="Re-read token usage from the instance transcript if it changed.",
    )(_refresh_analytics_tool)

    tool_transcripts = server.tool(
        name="list_transcripts",
        description="List agent transcripts recorded for a project directory.",
    )(_list_transcripts)

    tool_models = server.tool(
        name="list_models",
        description="List Gemini models available for selection.",
    )(_list_models)

    return ToolHandles(
        create_instance=tool_create,
        attach_instance=tool_attach,
        list_instances=tool_list,
        instance_status=tool_status,
        kill_instance=tool_kill,
        restart_instance=tool_restart,
        set_yolo_mode=tool_set_yolo,
        toggle_yolo_mode=tool_toggle_yolo,
        set_model=tool_set_model,
        refresh_analytics=tool_refresh,
        list_transcripts=tool_transcripts,
        list_models=tool_models,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
