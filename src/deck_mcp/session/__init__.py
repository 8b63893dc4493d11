"""Instance lifecycle, transcript location and analytics."""

from .analytics import AnalyticsCache
from .errors import (
    DuplicateInstanceError,
    InstanceNotFoundError,
    InstanceStateError,
    InstanceValidationError,
)
from .instance import Instance
from .locator import SessionLogLocator, find_newest_file, hash_project_path, is_valid_session_id
from .models import TOOL_SPECS, InstanceStatus, SessionAnalytics, SessionInfo, Tool, ToolSpec
from .parser import GeminiTranscriptParser, TranscriptParseError, TranscriptParser, get_parser
from .registry import InstanceRegistry

__all__ = [
    "AnalyticsCache",
    "DuplicateInstanceError",
    "GeminiTranscriptParser",
    "Instance",
    "InstanceNotFoundError",
    "InstanceRegistry",
    "InstanceStateError",
    "InstanceStatus",
    "InstanceValidationError",
    "SessionAnalytics",
    "SessionInfo",
    "SessionLogLocator",
    "TOOL_SPECS",
    "Tool",
    "ToolSpec",
    "TranscriptParseError",
    "TranscriptParser",
    "find_newest_file",
    "get_parser",
    "hash_project_path",
    "is_valid_session_id",
]
