from __future__ import annotations

import signal
from dataclasses import dataclass, field
from pathlib import Path

COMPILATION_FAILED_PREFIX = "Compilation Failed:\n"


@dataclass(frozen=True, slots=True)
class ExecutionLimits:
    """Wall-clock and memory bounds for one program run.

    Example:
        ```python
        limits = ExecutionLimits(time_limit_ms=1000, memory_limit_mb=128)
        ```
    """

    time_limit_ms: int
    memory_limit_mb: int

    @property
    def time_limit_seconds(self) -> float:
        """Return the wall-clock bound in seconds.

        Example:
            ```python
            assert ExecutionLimits(1500, 64).time_limit_seconds == 1.5
            ```
        """
        return self.time_limit_ms / 1000


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Raw facts about one (program, input) execution. Never mutated.

    Example:
        ```python
        out = ExecutionOutcome(stdout="2\\n", stderr="", exit_code=0)
        ```
    """

    stdout: str
    stderr: str
    exit_code: int
    termination_signal: signal.Signals | None = None
    timed_out: bool = False
    memory_exceeded: bool = False
    compile_failed: bool = False
    elapsed_ms: float = 0.0

    @property
    def indicates_compilation_failure(self) -> bool:
        """Report whether this outcome stands for a failed compile step.

        Example:
            ```python
            assert compilation_failure("error").indicates_compilation_failure
            ```
        """
        return self.compile_failed


def compilation_failure(diagnostic: str, exit_code: int = 1) -> ExecutionOutcome:
    """Build the synthetic outcome carrying a compiler diagnostic verbatim.

    Example:
        ```python
        outcome = compilation_failure("main.cpp:1:1: error: expected ';'")
        ```
    """
    return ExecutionOutcome(
        stdout="",
        stderr=f"{COMPILATION_FAILED_PREFIX}{diagnostic}",
        exit_code=exit_code or 1,
        compile_failed=True,
    )


@dataclass(frozen=True, slots=True)
class BuildProduct:
    """What a toolchain's compile step leaves behind for the run step.

    `entry` is the binary, the source file, or the Java class name,
    depending on the toolchain; `classpath` is set for JVM programs only.

    Example:
        ```python
        build = BuildProduct(language="cpp", entry=Path("/tmp/w/3f2a.out"))
        ```
    """

    language: str
    entry: Path | str
    source_path: Path
    classpath: Path | None = None
    compile_failure: ExecutionOutcome | None = field(default=None)

    @property
    def ok(self) -> bool:
        """Report whether the program is ready to run.

        Example:
            ```python
            if build.ok:
                ...
            ```
        """
        return self.compile_failure is None
