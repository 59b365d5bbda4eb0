"""Tests for ExecutionResult."""

from ssh_runas.models import ExecutionResult


def test_exit_code_result() -> None:
    """Exit code 0 without signal is success."""
    result = ExecutionResult(exit_code=0)

    assert result.succeeded
    assert not result.is_ambiguous
    assert result.describe() == "exit code 0"


def test_signal_result() -> None:
    """Signal termination is neither success nor ambiguous."""
    result = ExecutionResult(exit_signal="SEGV")

    assert not result.succeeded
    assert not result.is_ambiguous
    assert result.describe() == "signal SEGV"


def test_ambiguous_result() -> None:
    """Both fields absent is flagged."""
    result = ExecutionResult()

    assert result.is_ambiguous
    assert not result.succeeded
    assert result.describe() == "no exit code or signal"
