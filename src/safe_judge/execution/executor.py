from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ..artifacts import ArtifactArena
from ..errors import MissingClassDeclarationError
from ..settings import JudgeSettings
from .capabilities import SandboxCapabilities, preflight_validate_capabilities
from .toolchains import Toolchain, build_toolchains, canonical_language
from .types import BuildProduct, ExecutionLimits, ExecutionOutcome, compilation_failure

logger = logging.getLogger(__name__)


class SandboxExecutor:
    """Compile-if-needed and run untrusted programs in child processes.

    Every call maps onto one toolchain picked by language lookup. Artifacts
    created here are registered in the arena the caller passes in, so their
    lifetime is the caller's operation.

    Example:
        ```python
        executor = SandboxExecutor(JudgeSettings())
        outcome = asyncio.run(executor.execute("python", source, input_path, ExecutionLimits(1000, 128)))
        ```
    """

    def __init__(
        self,
        settings: JudgeSettings,
        toolchains: dict[str, Toolchain] | None = None,
    ) -> None:
        """Resolve the workspace and toolchain table once.

        Example:
            ```python
            executor = SandboxExecutor(JudgeSettings(workspace_dir="/tmp/judge"))
            ```
        """
        self.settings = settings
        self.workspace = settings.workspace_path()
        self.capabilities: SandboxCapabilities = preflight_validate_capabilities()
        self._toolchains = toolchains if toolchains is not None else build_toolchains(settings)

    def toolchain_for(self, language: str) -> Toolchain:
        """Look up the toolchain for a language name or alias.

        Example:
            ```python
            toolchain = executor.toolchain_for("c++")
            ```
        """
        return self._toolchains[canonical_language(language)]

    def materialize_source(self, language: str, source_code: str, arena: ArtifactArena) -> Path:
        """Write inline source text to a uniquely named artifact.

        Example:
            ```python
            source = executor.materialize_source("python", "print(2)", arena)
            ```
        """
        return arena.write_text(source_code, suffix=self.toolchain_for(language).source_suffix)

    def adopt_upload(self, language: str, upload_path: Path, arena: ArtifactArena) -> Path:
        """Move a previously uploaded source file into the workspace.

        The moved file gets a fresh unique name and belongs to `arena` from
        then on.

        Example:
            ```python
            source = executor.adopt_upload("cpp", Path("/srv/uploads/main.cpp"), arena)
            ```
        """
        target = arena.new_path(self.toolchain_for(language).source_suffix)
        shutil.move(str(upload_path), target)
        return target

    async def prepare(self, language: str, source_path: Path, arena: ArtifactArena) -> BuildProduct:
        """Compile once for a whole submission.

        A Java source without a type declaration becomes a compile failure
        carrying the structured message; no process is spawned for it.

        Example:
            ```python
            build = await executor.prepare("java", source, arena)
            ```
        """
        toolchain = self.toolchain_for(language)
        try:
            return await toolchain.compile_if_needed(source_path, arena)
        except MissingClassDeclarationError as exc:
            logger.debug("Rejected %s before compile: %s", source_path, exc.reason)
            return BuildProduct(
                toolchain.language,
                source_path,
                source_path,
                compile_failure=compilation_failure(str(exc)),
            )

    async def run(
        self,
        build: BuildProduct,
        input_path: Path | None,
        limits: ExecutionLimits,
        output_path: Path | None = None,
    ) -> ExecutionOutcome:
        """Run a prepared build against one input artifact.

        When `output_path` is given the captured stdout is persisted there.

        Example:
            ```python
            outcome = await executor.run(build, input_path, ExecutionLimits(1000, 128))
            ```
        """
        outcome = await self._toolchains[build.language].run(build, input_path, limits)
        if output_path is not None:
            output_path.write_text(outcome.stdout, encoding="utf-8")
        return outcome

    async def execute(
        self,
        language: str,
        source_path: Path,
        input_path: Path | None,
        limits: ExecutionLimits,
    ) -> ExecutionOutcome:
        """Compile and run one program on one input; delete the build afterwards.

        Example:
            ```python
            outcome = await executor.execute("cpp", source, input_path, ExecutionLimits(1000, 128))
            ```
        """
        with ArtifactArena(self.workspace, owner=f"execute:{source_path.name}") as arena:
            build = await self.prepare(language, source_path, arena)
            return await self.run(build, input_path, limits)
