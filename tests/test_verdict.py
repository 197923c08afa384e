import signal

from safe_judge.execution.types import ExecutionOutcome, compilation_failure
from safe_judge.verdict import Verdict, classify


def test_accepted_when_clean_and_matching() -> None:
    assert classify(ExecutionOutcome("2\n", "", 0), passed=True) is Verdict.ACCEPTED


def test_wrong_answer_when_clean_but_mismatched() -> None:
    assert classify(ExecutionOutcome("3\n", "", 0), passed=False) is Verdict.WRONG_ANSWER


def test_compilation_failure_wins_over_everything() -> None:
    outcome = compilation_failure("main.cpp:1:1: error")
    assert classify(outcome, passed=True) is Verdict.COMPILATION_ERROR


def test_compilation_prefix_printed_by_the_program_is_not_a_compile_error() -> None:
    outcome = ExecutionOutcome("2\n", "Compilation Failed:\nerror", 0)
    assert not outcome.indicates_compilation_failure
    assert classify(outcome, passed=True) is Verdict.ACCEPTED


def test_timeout_dominates_correct_output() -> None:
    outcome = ExecutionOutcome("2\n", "", -9, termination_signal=signal.SIGKILL, timed_out=True)
    assert classify(outcome, passed=True) is Verdict.TIME_LIMIT_EXCEEDED
    assert classify(outcome, passed=False) is Verdict.TIME_LIMIT_EXCEEDED


def test_timeout_before_memory() -> None:
    outcome = ExecutionOutcome("", "", -9, timed_out=True, memory_exceeded=True)
    assert classify(outcome, passed=False) is Verdict.TIME_LIMIT_EXCEEDED


def test_memory_before_runtime_error() -> None:
    outcome = ExecutionOutcome("", "MemoryError", 1, memory_exceeded=True)
    assert classify(outcome, passed=False) is Verdict.MEMORY_LIMIT_EXCEEDED


def test_nonzero_exit_is_runtime_error_even_with_matching_output() -> None:
    assert classify(ExecutionOutcome("2\n", "boom", 3), passed=True) is Verdict.RUNTIME_ERROR


def test_verdict_values_are_wire_strings() -> None:
    assert Verdict.WRONG_ANSWER.value == "WrongAnswer"
    assert Verdict.SYSTEM_ERROR == "SystemError"
