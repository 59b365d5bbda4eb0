"""Data models for ssh-runas."""

from ssh_runas.models.result import ExecutionResult

__all__ = [
    "ExecutionResult",
]
