"""Services for ssh-runas."""

from ssh_runas.services.connection import (
    AsyncSSHSessionFactory,
    SessionError,
    SSHCommandHandle,
    SSHSession,
)
from ssh_runas.services.lock import LockGuard, LockHeld
from ssh_runas.services.relay import StreamRelay
from ssh_runas.services.runner import (
    Cancelled,
    CommandOrchestrator,
    RunState,
    run_command,
)

__all__ = [
    "AsyncSSHSessionFactory",
    "Cancelled",
    "CommandOrchestrator",
    "LockGuard",
    "LockHeld",
    "RunState",
    "SessionError",
    "SSHCommandHandle",
    "SSHSession",
    "StreamRelay",
    "run_command",
]
