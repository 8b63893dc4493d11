"""Errors raised by instance and registry operations."""

from __future__ import annotations


class InstanceValidationError(ValueError):
    """Raised when a request is rejected before any I/O is attempted."""


class InstanceStateError(RuntimeError):
    """Raised when an operation does not apply to the instance's current status."""


class DuplicateInstanceError(InstanceValidationError):
    """Raised when an instance name or tmux session name is already tracked."""


class InstanceNotFoundError(KeyError):
    """Raised when the registry has no instance with the requested name."""

    def __str__(self) -> str:
        return f"Instance '{self.args[0]}' not found" if self.args else "Instance not found"


__all__ = [
    "DuplicateInstanceError",
    "InstanceNotFoundError",
    "InstanceStateError",
    "InstanceValidationError",
]
