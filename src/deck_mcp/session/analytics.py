"""mtime-gated analytics refresh in front of the transcript parsers."""

from __future__ import annotations

import logging
from typing import Mapping

from .instance import Instance
from .locator import SessionLogLocator
from .models import Tool
from .parser import TranscriptParseError, TranscriptParser

logger = logging.getLogger(__name__)


class AnalyticsCache:
    """Re-parse a transcript only when its modification time changed.

    A matching fingerprint (``st_mtime_ns``) is taken as proof the file is
    unchanged; a write landing on the exact same timestamp goes unnoticed.
    """

    def __init__(
        self,
        locators: Mapping[Tool, SessionLogLocator],
        parsers: Mapping[Tool, TranscriptParser],
    ) -> None:
        self._locators = dict(locators)
        self._parsers = dict(parsers)

    def supports(self, tool: Tool) -> bool:
        return tool in self._locators and tool in self._parsers

    def locator_for(self, tool: Tool) -> SessionLogLocator | None:
        return self._locators.get(tool)

    def refresh(self, instance: Instance) -> bool:
        """Update ``instance.analytics``; return True when a new snapshot was stored.

        On :class:`TranscriptParseError` the previous snapshot is left in place
        and the error propagates.
        """

        if not self.supports(instance.tool) or not instance.agent_session_id:
            return False
        locator = self._locators[instance.tool]
        parser = self._parsers[instance.tool]

        with instance.analytics_lock:
            path = locator.locate(instance.workdir, instance.agent_session_id)
            if path is None:
                logger.debug(
                    "No transcript found; analytics unavailable",
                    extra={"instance": instance.name, "session_id": instance.agent_session_id},
                )
                return False

            try:
                mtime = path.stat().st_mtime_ns
            except OSError as exc:
                raise TranscriptParseError(f"Failed to stat transcript {path}: {exc}") from exc

            current = instance.analytics
            if current is not None and current.fingerprint == mtime:
                return False

            try:
                snapshot = parser.parse_analytics(path)
            except TranscriptParseError:
                logger.warning(
                    "Transcript parse failed; keeping previous analytics",
                    extra={"instance": instance.name, "path": str(path)},
                )
                raise

            snapshot.fingerprint = mtime
            instance.analytics = snapshot
            return True


__all__ = ["AnalyticsCache"]
