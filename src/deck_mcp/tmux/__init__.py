"""tmux session orchestration utilities."""

from .adapter import (
    FakeTmuxAdapter,
    SessionAdapter,
    SessionCreateError,
    TmuxAdapter,
    TmuxError,
    TmuxExecutionResult,
    TmuxNotFoundError,
)
from .utils import tmux_session_name

__all__ = [
    "FakeTmuxAdapter",
    "SessionAdapter",
    "SessionCreateError",
    "TmuxAdapter",
    "TmuxError",
    "TmuxExecutionResult",
    "TmuxNotFoundError",
    "tmux_session_name",
]
