from __future__ import annotations

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from typing import Any

from ..settings import JudgeSettings

logger = logging.getLogger(__name__)

_resource: Any
try:
    import resource as _resource_module  # POSIX only
    _resource = _resource_module
except ImportError:  # pragma: no cover - platform specific
    _resource = None


@dataclass(frozen=True, slots=True)
class SandboxCapabilities:
    """Capability flags the current platform offers the sandbox.

    Example:
        ```python
        caps = SandboxCapabilities(True, True, True)
        ```
    """

    supports_memory_limit: bool
    supports_timeout: bool
    supports_process_group_kill: bool


@dataclass(frozen=True, slots=True)
class ToolchainStatus:
    """Availability of one language's executables on this host.

    Example:
        ```python
        status = ToolchainStatus("cpp", ("g++",), True)
        ```
    """

    language: str
    executables: tuple[str, ...]
    available: bool


def capabilities_for_platform(platform: str | None = None) -> SandboxCapabilities:
    """Return capability flags for a platform name (defaults to the running one).

    The address-space cap is only enforced by Linux; other POSIX systems
    expose RLIMIT_AS without honouring it, so they report no memory support.

    Example:
        ```python
        caps = capabilities_for_platform("linux")
        ```
    """
    name = platform or sys.platform
    has_rlimit = _resource is not None and hasattr(_resource, "RLIMIT_AS")
    posix = name != "win32" and hasattr(os, "killpg")
    return SandboxCapabilities(
        supports_memory_limit=has_rlimit and name.startswith("linux"),
        supports_timeout=True,
        supports_process_group_kill=posix,
    )


_WARNED_MEMORY_GAP = False


def preflight_validate_capabilities() -> SandboxCapabilities:
    """Log capability gaps once and return the current platform's flags.

    Example:
        ```python
        caps = preflight_validate_capabilities()
        ```
    """
    global _WARNED_MEMORY_GAP
    caps = capabilities_for_platform()
    if not caps.supports_memory_limit and not _WARNED_MEMORY_GAP:
        _WARNED_MEMORY_GAP = True
        logger.warning(
            "Address-space limits are not enforced on %s; MemoryLimitExceeded is "
            "only reachable through interpreter heap flags here",
            sys.platform,
        )
    return caps


def toolchain_report(settings: JudgeSettings) -> list[ToolchainStatus]:
    """Report which language toolchains are installed.

    Example:
        ```python
        for status in toolchain_report(JudgeSettings()):
            print(status.language, status.available)
        ```
    """
    tools = settings.toolchains
    needed = {
        "c": (tools["c"],),
        "cpp": (tools["cpp"],),
        "java": (tools["javac"], tools["java"]),
        "python": (tools["python"],),
        "javascript": (tools["javascript"],),
    }
    return [
        ToolchainStatus(
            language=language,
            executables=executables,
            available=all(shutil.which(exe) is not None for exe in executables),
        )
        for language, executables in needed.items()
    ]


def set_address_space_limit(memory_limit_mb: int) -> list[str]:
    """Cap the calling process's virtual address space; used in the child before exec.

    Returns the reasons the limit could not be applied, empty on success.

    Example:
        ```python
        errors = set_address_space_limit(128)
        ```
    """
    errors: list[str] = []
    if _resource is None:
        errors.append("RLIMIT limits unavailable on this platform")
        return errors

    mem_bytes = int(memory_limit_mb) * 1024 * 1024

    try:
        _, current_hard = _resource.getrlimit(_resource.RLIMIT_AS)
        if current_hard in (-1, _resource.RLIM_INFINITY):
            target_hard = mem_bytes
        else:
            target_hard = min(mem_bytes, current_hard)
        target_soft = min(mem_bytes, target_hard)
        _resource.setrlimit(_resource.RLIMIT_AS, (target_soft, target_hard))
    except (ValueError, OSError) as exc:
        errors.append(f"RLIMIT_AS not applied: {exc}")

    return errors
