from .capabilities import (
    SandboxCapabilities,
    ToolchainStatus,
    capabilities_for_platform,
    preflight_validate_capabilities,
    toolchain_report,
)
from .executor import SandboxExecutor
from .toolchains import (
    LANGUAGE_ALIASES,
    CompiledNative,
    CompiledOnVM,
    Interpreted,
    Toolchain,
    build_toolchains,
    canonical_language,
    find_java_class_name,
)
from .types import BuildProduct, ExecutionLimits, ExecutionOutcome, compilation_failure

__all__ = [
    "BuildProduct",
    "CompiledNative",
    "CompiledOnVM",
    "ExecutionLimits",
    "ExecutionOutcome",
    "Interpreted",
    "LANGUAGE_ALIASES",
    "SandboxCapabilities",
    "SandboxExecutor",
    "Toolchain",
    "ToolchainStatus",
    "build_toolchains",
    "canonical_language",
    "capabilities_for_platform",
    "compilation_failure",
    "find_java_class_name",
    "preflight_validate_capabilities",
    "toolchain_report",
]
