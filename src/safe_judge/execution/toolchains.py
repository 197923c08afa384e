from __future__ import annotations

import logging
import re
import signal
from pathlib import Path

from ..artifacts import ArtifactArena
from ..errors import MissingClassDeclarationError, UnsupportedLanguageError
from ..settings import JudgeSettings
from .process import ProcessResult, run_process
from .types import BuildProduct, ExecutionLimits, ExecutionOutcome, compilation_failure

logger = logging.getLogger(__name__)

LANGUAGE_ALIASES = {
    "c": "c",
    "cpp": "cpp",
    "c++": "cpp",
    "java": "java",
    "python": "python",
    "py": "python",
    "javascript": "javascript",
    "js": "javascript",
    "node": "javascript",
}

_PUBLIC_TYPE = re.compile(
    r"\bpublic\s+(?:(?:abstract|final|static|sealed|strictfp)\s+)*"
    r"(?:class|interface|enum|record)\s+([A-Za-z_$][\w$]*)"
)
_ANY_CLASS = re.compile(r"\bclass\s+([A-Za-z_$][\w$]*)")
_SIGKILL = getattr(signal, "SIGKILL", None)


def canonical_language(language: str) -> str:
    """Map a requested language name or alias onto its toolchain key.

    Example:
        ```python
        assert canonical_language("C++") == "cpp"
        ```
    """
    key = LANGUAGE_ALIASES.get((language or "").strip().lower())
    if key is None:
        raise UnsupportedLanguageError(f"Unsupported language: {language}")
    return key


def find_java_class_name(source: str) -> str:
    """Return the declared type name a Java source file must be named after.

    The first public type wins; otherwise the first class declaration.

    Example:
        ```python
        assert find_java_class_name("public class Main {}") == "Main"
        ```
    """
    match = _PUBLIC_TYPE.search(source) or _ANY_CLASS.search(source)
    if match is None:
        raise MissingClassDeclarationError()
    return match.group(1)


class Toolchain:
    """Shared compile-if-needed + run contract of every language variant.

    Subclasses provide `compile_if_needed` and `run_command`; the run step,
    the memory bound and the out-of-memory heuristic live here.

    Example:
        ```python
        build = await toolchain.compile_if_needed(source_path, arena)
        outcome = await toolchain.run(build, input_path, ExecutionLimits(1000, 128))
        ```
    """

    language = ""
    source_suffix = ""
    # VM runtimes reserve far more address space than they use; they get heap flags instead.
    address_space_cap = True
    oom_patterns: tuple[str, ...] = ()

    def __init__(self, settings: JudgeSettings) -> None:
        """Bind the toolchain to the process settings.

        Example:
            ```python
            toolchain = Interpreted.python(JudgeSettings())
            ```
        """
        self._settings = settings

    @property
    def max_output_bytes(self) -> int:
        """Return the per-stream capture cap in bytes.

        Example:
            ```python
            cap = toolchain.max_output_bytes
            ```
        """
        return self._settings.max_output_kb * 1024

    async def compile_if_needed(self, source_path: Path, arena: ArtifactArena) -> BuildProduct:
        """Produce a runnable build, or a build carrying the compile failure.

        Example:
            ```python
            build = await toolchain.compile_if_needed(source_path, arena)
            ```
        """
        raise NotImplementedError

    def run_command(self, build: BuildProduct, limits: ExecutionLimits) -> list[str]:
        """Return the argv that runs a successful build.

        Example:
            ```python
            argv = toolchain.run_command(build, limits)
            ```
        """
        raise NotImplementedError

    async def run(
        self,
        build: BuildProduct,
        input_path: Path | None,
        limits: ExecutionLimits,
    ) -> ExecutionOutcome:
        """Run a build once against one input under the given limits.

        Example:
            ```python
            outcome = await toolchain.run(build, input_path, ExecutionLimits(1000, 128))
            ```
        """
        if build.compile_failure is not None:
            return build.compile_failure
        result = await run_process(
            self.run_command(build, limits),
            time_limit_seconds=limits.time_limit_seconds,
            max_output_bytes=self.max_output_bytes,
            stdin_path=input_path,
            memory_limit_mb=limits.memory_limit_mb if self.address_space_cap else None,
            cwd=build.source_path.parent,
        )
        memory_exceeded = self.memory_exceeded(result)
        logger.debug(
            "%s run finished: exit=%s signal=%s timed_out=%s memory_exceeded=%s elapsed=%.1fms stderr=%r",
            self.language,
            result.returncode,
            result.termination_signal,
            result.timed_out,
            memory_exceeded,
            result.elapsed_ms,
            result.stderr[:2000],
        )
        return ExecutionOutcome(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.returncode,
            termination_signal=result.termination_signal,
            timed_out=result.timed_out,
            memory_exceeded=memory_exceeded,
            elapsed_ms=result.elapsed_ms,
        )

    def memory_exceeded(self, result: ProcessResult) -> bool:
        """Attribute a termination to the memory bound.

        A SIGKILL that our own timer did not send, or a runtime-specific
        out-of-memory message in the stderr of a failing run, counts as
        exceeding memory.

        Example:
            ```python
            assert Interpreted.python(settings).memory_exceeded(ProcessResult("", "MemoryError", 1, False, 5.0))
            ```
        """
        if result.timed_out:
            return False
        if _SIGKILL is not None and result.termination_signal == _SIGKILL:
            return True
        if result.returncode == 0:
            return False
        return any(pattern in result.stderr for pattern in self.oom_patterns)

    async def _compile(self, argv: list[str], cwd: Path) -> ExecutionOutcome | None:
        """Run a compiler; return a compile-failure outcome, or None on success.

        Example:
            ```python
            failure = await self._compile(["g++", "main.cpp", "-o", "main.out"], workspace)
            ```
        """
        timeout = self._settings.compile_timeout_seconds
        result = await run_process(
            argv,
            time_limit_seconds=timeout,
            max_output_bytes=self.max_output_bytes,
            cwd=cwd,
        )
        if result.timed_out:
            return compilation_failure(f"Compilation timed out after {timeout}s")
        if result.returncode != 0:
            logger.debug("%s compile failed (exit %s): %s", self.language, result.returncode, result.stderr)
            return compilation_failure(result.stderr or result.stdout, result.returncode)
        return None


class CompiledNative(Toolchain):
    """C and C++: native compiler to a workspace binary, then run the binary.

    Example:
        ```python
        toolchain = CompiledNative.cpp(JudgeSettings())
        ```
    """

    oom_patterns = ("std::bad_alloc", "Cannot allocate memory", "out of memory")

    def __init__(
        self,
        settings: JudgeSettings,
        *,
        language: str,
        compiler: str,
        flags: tuple[str, ...],
        source_suffix: str,
    ) -> None:
        """Configure a native compiler variant.

        Example:
            ```python
            toolchain = CompiledNative(settings, language="c", compiler="gcc", flags=("-O2",), source_suffix=".c")
            ```
        """
        super().__init__(settings)
        self.language = language
        self.compiler = compiler
        self.flags = flags
        self.source_suffix = source_suffix

    @classmethod
    def c(cls, settings: JudgeSettings) -> "CompiledNative":
        """Build the C variant.

        Example:
            ```python
            toolchain = CompiledNative.c(JudgeSettings())
            ```
        """
        return cls(settings, language="c", compiler=settings.toolchains["c"], flags=("-O2",), source_suffix=".c")

    @classmethod
    def cpp(cls, settings: JudgeSettings) -> "CompiledNative":
        """Build the C++ variant.

        Example:
            ```python
            toolchain = CompiledNative.cpp(JudgeSettings())
            ```
        """
        return cls(
            settings,
            language="cpp",
            compiler=settings.toolchains["cpp"],
            flags=("-O2", "-std=gnu++17"),
            source_suffix=".cpp",
        )

    async def compile_if_needed(self, source_path: Path, arena: ArtifactArena) -> BuildProduct:
        """Compile the source into a fresh binary owned by `arena`.

        Example:
            ```python
            build = await CompiledNative.cpp(settings).compile_if_needed(source_path, arena)
            ```
        """
        binary = arena.new_path(".out")
        argv = [self.compiler, *self.flags, str(source_path), "-o", str(binary)]
        failure = await self._compile(argv, source_path.parent)
        if failure is not None:
            return BuildProduct(self.language, binary, source_path, compile_failure=failure)
        binary.chmod(0o755)
        return BuildProduct(self.language, binary, source_path)

    def run_command(self, build: BuildProduct, limits: ExecutionLimits) -> list[str]:
        """Run the compiled binary directly.

        Example:
            ```python
            argv = toolchain.run_command(build, limits)
            ```
        """
        return [str(build.entry)]


class CompiledOnVM(Toolchain):
    """Java: rename the source after its declared type, javac, then run on the JVM.

    Example:
        ```python
        toolchain = CompiledOnVM.java(JudgeSettings())
        ```
    """

    language = "java"
    source_suffix = ".java"
    address_space_cap = False
    oom_patterns = ("java.lang.OutOfMemoryError", "Could not reserve enough space")

    def __init__(self, settings: JudgeSettings, *, compiler: str, runtime: str) -> None:
        """Configure compiler and runtime executables.

        Example:
            ```python
            toolchain = CompiledOnVM(settings, compiler="javac", runtime="java")
            ```
        """
        super().__init__(settings)
        self.compiler = compiler
        self.runtime = runtime

    @classmethod
    def java(cls, settings: JudgeSettings) -> "CompiledOnVM":
        """Build the Java variant.

        Example:
            ```python
            toolchain = CompiledOnVM.java(JudgeSettings())
            ```
        """
        return cls(settings, compiler=settings.toolchains["javac"], runtime=settings.toolchains["java"])

    async def compile_if_needed(self, source_path: Path, arena: ArtifactArena) -> BuildProduct:
        """Move the source into a private build directory as `<Type>.java` and compile it.

        Each compilation gets its own directory, so two submissions that
        both declare `Main` never collide in the shared workspace.

        Example:
            ```python
            build = await CompiledOnVM.java(settings).compile_if_needed(source_path, arena)
            ```
        """
        class_name = find_java_class_name(source_path.read_text(encoding="utf-8"))
        build_dir = arena.new_directory()
        renamed = arena.adopt(build_dir / f"{class_name}.java")
        source_path.replace(renamed)
        argv = [self.compiler, "-encoding", "UTF-8", "-d", str(build_dir), str(renamed)]
        failure = await self._compile(argv, build_dir)
        return BuildProduct(
            self.language,
            class_name,
            renamed,
            classpath=build_dir,
            compile_failure=failure,
        )

    def run_command(self, build: BuildProduct, limits: ExecutionLimits) -> list[str]:
        """Run the declared type with the build directory as classpath.

        Example:
            ```python
            argv = toolchain.run_command(build, limits)
            ```
        """
        return [
            self.runtime,
            f"-Xmx{limits.memory_limit_mb}m",
            "-cp",
            str(build.classpath),
            str(build.entry),
        ]


class Interpreted(Toolchain):
    """Python and JavaScript: no compile step, the interpreter runs the source.

    Example:
        ```python
        toolchain = Interpreted.python(JudgeSettings())
        ```
    """

    def __init__(
        self,
        settings: JudgeSettings,
        *,
        language: str,
        interpreter: str,
        source_suffix: str,
        oom_patterns: tuple[str, ...],
        heap_flag: str | None = None,
    ) -> None:
        """Configure an interpreter variant.

        `heap_flag` is a format string taking `mb`; when set it replaces the
        address-space cap as the memory bound.

        Example:
            ```python
            toolchain = Interpreted(settings, language="python", interpreter="python3", source_suffix=".py", oom_patterns=("MemoryError",))
            ```
        """
        super().__init__(settings)
        self.language = language
        self.interpreter = interpreter
        self.source_suffix = source_suffix
        self.oom_patterns = oom_patterns
        self.heap_flag = heap_flag
        self.address_space_cap = heap_flag is None

    @classmethod
    def python(cls, settings: JudgeSettings) -> "Interpreted":
        """Build the Python variant.

        Example:
            ```python
            toolchain = Interpreted.python(JudgeSettings())
            ```
        """
        return cls(
            settings,
            language="python",
            interpreter=settings.toolchains["python"],
            source_suffix=".py",
            oom_patterns=("MemoryError",),
        )

    @classmethod
    def javascript(cls, settings: JudgeSettings) -> "Interpreted":
        """Build the Node.js variant.

        Example:
            ```python
            toolchain = Interpreted.javascript(JudgeSettings())
            ```
        """
        return cls(
            settings,
            language="javascript",
            interpreter=settings.toolchains["javascript"],
            source_suffix=".js",
            oom_patterns=(
                "JavaScript heap out of memory",
                "Fatal process out of memory",
                "Allocation failed",
            ),
            heap_flag="--max-old-space-size={mb}",
        )

    async def compile_if_needed(self, source_path: Path, arena: ArtifactArena) -> BuildProduct:
        """Return the source itself as the runnable build.

        Example:
            ```python
            build = await Interpreted.python(settings).compile_if_needed(source_path, arena)
            ```
        """
        return BuildProduct(self.language, source_path, source_path)

    def run_command(self, build: BuildProduct, limits: ExecutionLimits) -> list[str]:
        """Run the interpreter against the source file.

        Example:
            ```python
            argv = toolchain.run_command(build, limits)
            ```
        """
        argv = [self.interpreter]
        if self.heap_flag:
            argv.append(self.heap_flag.format(mb=limits.memory_limit_mb))
        argv.append(str(build.entry))
        return argv


def build_toolchains(settings: JudgeSettings) -> dict[str, Toolchain]:
    """Build the language lookup table from settings.

    Example:
        ```python
        toolchains = build_toolchains(JudgeSettings())
        ```
    """
    return {
        "c": CompiledNative.c(settings),
        "cpp": CompiledNative.cpp(settings),
        "java": CompiledOnVM.java(settings),
        "python": Interpreted.python(settings),
        "javascript": Interpreted.javascript(settings),
    }
