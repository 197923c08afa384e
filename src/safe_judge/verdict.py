from __future__ import annotations

from enum import Enum

from .execution.types import ExecutionOutcome


class Verdict(str, Enum):
    """Final classification of a test case or a whole submission."""

    ACCEPTED = "Accepted"
    WRONG_ANSWER = "WrongAnswer"
    COMPILATION_ERROR = "CompilationError"
    RUNTIME_ERROR = "RuntimeError"
    TIME_LIMIT_EXCEEDED = "TimeLimitExceeded"
    MEMORY_LIMIT_EXCEEDED = "MemoryLimitExceeded"
    SYSTEM_ERROR = "SystemError"


# Verdicts whose callback payload carries sanitized diagnostics.
VERDICTS_WITH_DETAILS = frozenset({Verdict.COMPILATION_ERROR, Verdict.RUNTIME_ERROR})


def classify(outcome: ExecutionOutcome, passed: bool) -> Verdict:
    """Classify one execution outcome; the first matching rule wins.

    Compilation failure, then timeout, then memory, then nonzero exit, then
    the comparison result. A run that timed out is never Accepted or
    WrongAnswer, whatever it printed.

    Example:
        ```python
        assert classify(ExecutionOutcome("2", "", 0), passed=True) is Verdict.ACCEPTED
        ```
    """
    if outcome.indicates_compilation_failure:
        return Verdict.COMPILATION_ERROR
    if outcome.timed_out:
        return Verdict.TIME_LIMIT_EXCEEDED
    if outcome.memory_exceeded:
        return Verdict.MEMORY_LIMIT_EXCEEDED
    if outcome.exit_code != 0:
        return Verdict.RUNTIME_ERROR
    if not passed:
        return Verdict.WRONG_ANSWER
    return Verdict.ACCEPTED
