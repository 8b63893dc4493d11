"""FastMCP server bootstrap for Deck."""

from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastmcp import FastMCP

from . import __version__
from .catalog import ModelCatalog
from .config import DeckSettings, get_settings
from .session import (
    AnalyticsCache,
    GeminiTranscriptParser,
    InstanceRegistry,
    SessionLogLocator,
    Tool,
)
from .tmux import SessionAdapter, TmuxAdapter, TmuxNotFoundError
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the Deck server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_analytics_cache(settings: DeckSettings) -> AnalyticsCache:
    """Wire the transcript locators and parsers for every tool with analytics."""

    gemini_parser = GeminiTranscriptParser()
    gemini_locator = SessionLogLocator(
        settings.gemini_config_dir,
        info_reader=gemini_parser.parse_info,
    )
    return AnalyticsCache(
        locators={Tool.GEMINI: gemini_locator},
        parsers={Tool.GEMINI: gemini_parser},
    )


def create_server(
    settings: Optional[DeckSettings] = None,
    tmux_adapter: SessionAdapter | None = None,
    catalog: ModelCatalog | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with baseline resources."""

    settings = settings or get_settings()

    tmux_metadata = {
        "available": False,
        "version": None,
        "error": None,
    }

    if tmux_adapter is None:
        try:
            adapter = TmuxAdapter(Path(settings.tmux_path) if settings.tmux_path else None)
            tmux_adapter = adapter
            tmux_metadata["available"] = True
            version_result = adapter.version()
            if version_result.ok:
                tmux_metadata["version"] = version_result.stdout.strip()
            else:
                tmux_metadata["error"] = (
                    version_result.stderr.strip() or "tmux -V failed with a non-zero exit code"
                )
        except TmuxNotFoundError as exc:
            tmux_metadata["error"] = str(exc)
    else:
        tmux_metadata["available"] = True

    analytics = build_analytics_cache(settings)
    registry: InstanceRegistry | None = None
    if tmux_adapter is not None:
        registry = InstanceRegistry(
            tmux_adapter,
            analytics=analytics,
            session_prefix=settings.session_prefix,
            default_yolo_mode=settings.gemini_yolo_default,
        )
    catalog = catalog or ModelCatalog(settings)

    server = FastMCP(
        name="Deck MCP",
        instructions=(
            "Deck tracks AI coding agents running in tmux sessions. Use the provided tools "
            "to create, attach, restart, and kill instances, toggle YOLO mode, and read "
            "token usage from agent transcripts."
        ),
    )

    handles = register_tools(
        server,
        registry=registry,
        catalog=catalog,
    )

    def status_snapshot() -> str:
        """Return a JSON string summarizing basic runtime state."""

        instances = registry.list_instances() if registry is not None else []
        status_counts = Counter(instance.status.value for instance in instances)
        tool_counts = Counter(instance.tool.value for instance in instances)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "tmux": {
                "path": settings.tmux_path,
                "session_prefix": settings.session_prefix,
                **tmux_metadata,
            },
            "gemini": {
                "config_dir": str(settings.gemini_config_dir),
                "yolo_default": settings.gemini_yolo_default,
                "api_key_configured": bool(settings.google_api_key),
                "models_override": bool(settings.gemini_models_override),
            },
            "instances": {
                "count": len(instances),
                "status_counts": dict(status_counts),
                "tool_counts": dict(tool_counts),
                "yolo_enabled": sorted(
                    instance.name for instance in instances if instance.yolo_mode
                ),
                "preview": [instance.to_dict() for instance in instances[-5:]],
            },
        }
        return json.dumps(payload)

    server.resource(
        "resource://deck/status",
        name="deck_status",
        description="Provides the current runtime status for the Deck MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )(status_snapshot)

    setattr(server, "registry", registry)
    setattr(server, "analytics_cache", analytics)
    setattr(server, "model_catalog", catalog)
    setattr(server, "tmux_adapter", tmux_adapter)
    setattr(server, "tmux_metadata", tmux_metadata)
    setattr(server, "status_snapshot", status_snapshot)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the Deck MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching Deck MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "tmux_available": getattr(server, "tmux_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
