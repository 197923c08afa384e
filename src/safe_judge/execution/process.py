from __future__ import annotations

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import IO, Sequence

from ..errors import ToolchainUnavailableError
from .capabilities import SandboxCapabilities, capabilities_for_platform, set_address_space_limit

_READ_CHUNK = 64 * 1024


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Captured streams and exit facts of one child process.

    Example:
        ```python
        result = ProcessResult(stdout="", stderr="", returncode=-9, timed_out=True, elapsed_ms=1000.4)
        ```
    """

    stdout: str
    stderr: str
    returncode: int
    timed_out: bool
    elapsed_ms: float

    @property
    def termination_signal(self) -> signal.Signals | None:
        """Return the signal that ended the process, if any.

        Example:
            ```python
            assert ProcessResult("", "", -9, True, 1.0).termination_signal == signal.SIGKILL
            ```
        """
        if self.returncode >= 0:
            return None
        try:
            return signal.Signals(-self.returncode)
        except ValueError:
            return None


def _limit_child(memory_limit_mb: int) -> None:
    """Apply the address-space cap in the forked child before exec.

    Example:
        ```python
        preexec = partial(_limit_child, 128)
        ```
    """
    set_address_space_limit(memory_limit_mb)


def _kill(process: asyncio.subprocess.Process, caps: SandboxCapabilities) -> None:
    """Forcibly terminate a child and, where possible, its whole process group.

    Example:
        ```python
        _kill(process, capabilities_for_platform())
        ```
    """
    try:
        if caps.supports_process_group_kill:
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


async def _drain(stream: asyncio.StreamReader | None, limit: int) -> bytes:
    """Read a stream to EOF, keeping at most `limit` bytes.

    Reading continues past the cap so the child never blocks on a full pipe.

    Example:
        ```python
        data = await _drain(process.stdout, 1024 * 1024)
        ```
    """
    if stream is None:
        return b""
    kept = bytearray()
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return bytes(kept)
        room = limit - len(kept)
        if room > 0:
            kept.extend(chunk[:room])


async def run_process(
    argv: Sequence[str],
    *,
    time_limit_seconds: float,
    max_output_bytes: int,
    stdin_path: Path | None = None,
    memory_limit_mb: int | None = None,
    cwd: Path | None = None,
) -> ProcessResult:
    """Spawn one child and wait for it under a wall-clock bound.

    An independent timer armed for `time_limit_seconds` kills the child
    with SIGKILL on expiry; the result is then marked `timed_out` whatever
    output was captured. When `memory_limit_mb` is given and the platform
    enforces RLIMIT_AS, the cap is applied in the child before exec.
    A missing or unstartable executable raises `ToolchainUnavailableError`.

    Example:
        ```python
        result = await run_process(["python3", "main.py"], time_limit_seconds=1, max_output_bytes=65536)
        ```
    """
    caps = capabilities_for_platform()
    preexec = None
    if memory_limit_mb is not None and caps.supports_memory_limit:
        preexec = partial(_limit_child, memory_limit_mb)

    stdin_handle: IO[bytes] | None = stdin_path.open("rb") if stdin_path is not None else None
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=stdin_handle if stdin_handle is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
            preexec_fn=preexec,
            start_new_session=caps.supports_process_group_kill,
        )
    except OSError as exc:
        raise ToolchainUnavailableError(f"{argv[0]} not found or failed to start: {exc}") from exc
    finally:
        if stdin_handle is not None:
            stdin_handle.close()

    started = time.monotonic()
    timed_out = False

    def _on_deadline() -> None:
        """Kill the child when the wall-clock bound expires.

        Example:
            ```python
            loop.call_later(1.0, _on_deadline)
            ```
        """
        nonlocal timed_out
        if process.returncode is None:
            timed_out = True
        # Also reaps stragglers that still hold the pipes after the child exited.
        _kill(process, caps)

    timer = asyncio.get_running_loop().call_later(time_limit_seconds, _on_deadline)
    try:
        stdout, stderr = await asyncio.gather(
            _drain(process.stdout, max_output_bytes),
            _drain(process.stderr, max_output_bytes),
        )
        returncode = await process.wait()
    finally:
        timer.cancel()
        if process.returncode is None:
            _kill(process, caps)

    return ProcessResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        returncode=returncode,
        timed_out=timed_out,
        elapsed_ms=(time.monotonic() - started) * 1000,
    )
