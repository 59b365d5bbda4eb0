"""Command execution result model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ExecutionResult:
    """Terminal status of one remote command.

    The server reports either an exit status (normal termination) or the
    name of the signal that killed the command (ABRT, ALRM, FPE, HUP, ILL,
    INT, KILL, PIPE, QUIT, SEGV, TERM, USR1, USR2 per RFC 4254 6.10).
    """

    exit_code: int | None = None
    exit_signal: str | None = None

    @property
    def is_ambiguous(self) -> bool:
        """Neither an exit code nor an exit signal was reported."""
        return self.exit_code is None and self.exit_signal is None

    @property
    def succeeded(self) -> bool:
        """Command exited normally with status 0."""
        return self.exit_code == 0 and self.exit_signal is None

    def describe(self) -> str:
        """Human readable summary for log messages."""
        if self.exit_signal is not None:
            return f"signal {self.exit_signal}"
        if self.exit_code is not None:
            return f"exit code {self.exit_code}"
        return "no exit code or signal"
