from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .artifacts import ArtifactArena
from .comparison import OutputComparator, get_comparator
from .execution.executor import SandboxExecutor
from .execution.types import BuildProduct
from .sanitizer import sanitize_error
from .settings import JudgeSettings
from .submission import Submission, SubmissionResult, TestCase, TestCaseResult
from .verdict import VERDICTS_WITH_DETAILS, Verdict, classify

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    """Lifecycle of one submission; `current_case` tracks Executing(i)."""

    RECEIVED = "received"
    PREPARING = "preparing"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class SubmissionRun:
    """Mutable bookkeeping of one submission moving through its states.

    The arena owns the source artifact and every build artifact; it is
    released exactly once, when the run reaches Completed or Failed.

    Example:
        ```python
        run = orchestrator.prepare(submission)
        assert run.state is SubmissionState.PREPARING
        ```
    """

    submission: Submission
    arena: ArtifactArena
    source_path: Path
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: SubmissionState = SubmissionState.RECEIVED
    current_case: int = 0
    build: BuildProduct | None = None


class SubmissionOrchestrator:
    """Drive submissions through the sequential, early-exit test loop.

    Example:
        ```python
        orchestrator = SubmissionOrchestrator(SandboxExecutor(settings), settings)
        result = asyncio.run(orchestrator.grade(submission))
        ```
    """

    def __init__(
        self,
        executor: SandboxExecutor,
        settings: JudgeSettings,
        comparator: OutputComparator | None = None,
    ) -> None:
        """Bind the executor, settings and comparison strategy.

        Example:
            ```python
            orchestrator = SubmissionOrchestrator(executor, settings, get_comparator("structural"))
            ```
        """
        self.executor = executor
        self.settings = settings
        self.comparator = comparator if comparator is not None else get_comparator(settings.comparison)

    def prepare(self, submission: Submission) -> SubmissionRun:
        """Resolve the toolchain and materialize the source artifact.

        Raises `UnsupportedLanguageError` before any artifact exists. If the
        source cannot be materialized, the arena is released before the
        error propagates.

        Example:
            ```python
            run = orchestrator.prepare(submission)
            ```
        """
        self.executor.toolchain_for(submission.language)
        arena = ArtifactArena(self.executor.workspace, owner="submission")
        try:
            if submission.source_upload is not None:
                source_path = self.executor.adopt_upload(submission.language, submission.source_upload, arena)
            else:
                source_path = self.executor.materialize_source(
                    submission.language, submission.source_code or "", arena
                )
        except BaseException:
            arena.release()
            raise
        run = SubmissionRun(submission=submission, arena=arena, source_path=source_path)
        arena.owner = f"submission:{run.run_id}"
        run.state = SubmissionState.PREPARING
        logger.debug("Submission %s prepared (%s, %d cases)", run.run_id, submission.language, len(submission.test_cases))
        return run

    async def execute(self, run: SubmissionRun) -> SubmissionResult:
        """Run every test case in order, stopping at the first failure.

        Faults that are not the program's own (missing toolchain,
        filesystem errors, unexpected exceptions) end the run in Failed with
        a SystemError result. Submission artifacts are released on every path.

        Example:
            ```python
            result = await orchestrator.execute(orchestrator.prepare(submission))
            ```
        """
        try:
            result = await self._execute_cases(run)
        except Exception as exc:
            logger.exception("Submission %s failed at case %d", run.run_id, run.current_case)
            run.state = SubmissionState.FAILED
            return SubmissionResult(
                overall_verdict=Verdict.SYSTEM_ERROR,
                error_message=self._sanitize(str(exc) or type(exc).__name__, run),
            )
        finally:
            run.arena.release()
        run.state = SubmissionState.COMPLETED
        logger.info(
            "Submission %s completed: %s after %d case(s)",
            run.run_id,
            result.overall_verdict.value,
            len(result.results),
        )
        return result

    async def grade(self, submission: Submission) -> SubmissionResult:
        """Prepare and execute a submission in one call.

        Example:
            ```python
            result = await orchestrator.grade(submission)
            ```
        """
        return await self.execute(self.prepare(submission))

    async def _execute_cases(self, run: SubmissionRun) -> SubmissionResult:
        """Compile once, then run cases sequentially with early exit.

        Example:
            ```python
            result = await self._execute_cases(run)
            ```
        """
        submission = run.submission
        run.state = SubmissionState.EXECUTING
        run.build = await self.executor.prepare(submission.language, run.source_path, run.arena)

        results: list[TestCaseResult] = []
        for index, case in enumerate(submission.test_cases, start=1):
            run.current_case = index
            case_result = await self._run_case(run, run.build, index, case)
            results.append(case_result)
            if not case_result.passed:
                break

        last = results[-1]
        overall = last.verdict if not last.passed else Verdict.ACCEPTED
        details = last.sanitized_error_text if overall in VERDICTS_WITH_DETAILS else None
        return SubmissionResult(results=results, overall_verdict=overall, error_details=details)

    async def _run_case(
        self,
        run: SubmissionRun,
        build: BuildProduct,
        index: int,
        case: TestCase,
    ) -> TestCaseResult:
        """Execute one case inside its own arena and classify it.

        Example:
            ```python
            case_result = await self._run_case(run, build, 1, case)
            ```
        """
        with ArtifactArena(self.executor.workspace, owner=f"{run.run_id}:case-{index}") as arena:
            input_path = arena.write_text(case.input, suffix="_input.txt")
            output_path = arena.new_path("_output.txt")
            outcome = await self.executor.run(build, input_path, run.submission.limits, output_path)

        matched = not outcome.indicates_compilation_failure and self.comparator.compare(
            case.expected_output, outcome.stdout
        )
        verdict = classify(outcome, matched)
        passed = verdict is Verdict.ACCEPTED
        error_text = self._sanitize(outcome.stderr, run) if outcome.stderr else None
        logger.debug("Submission %s case %d: %s", run.run_id, index, verdict.value)
        return TestCaseResult(
            index=index,
            verdict=verdict,
            passed=passed,
            sanitized_error_text=error_text,
            outcome=outcome,
        )

    def _sanitize(self, text: str, run: SubmissionRun) -> str:
        """Strip workspace paths from text about to leave the system.

        Example:
            ```python
            clean = self._sanitize(outcome.stderr, run)
            ```
        """
        source = run.build.source_path if run.build is not None else run.source_path
        return sanitize_error(
            text,
            source,
            workspace=self.executor.workspace,
            marker=self.settings.workspace_marker,
            placeholder=self.settings.error_placeholder,
        )
