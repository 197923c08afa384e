from .artifacts import ArtifactArena
from .catalog import HttpProblemCatalog
from .comparison import NormalizedTextComparator, StructuralComparator, compare_output, get_comparator, normalize_text
from .delivery import CallbackNotifier, build_callback_payload, build_fault_payload
from .errors import (
    CatalogUnavailableError,
    InputValidationError,
    JudgeError,
    MissingClassDeclarationError,
    ProblemNotFoundError,
    ToolchainUnavailableError,
    UnsupportedLanguageError,
)
from .execution import ExecutionLimits, ExecutionOutcome, SandboxExecutor
from .orchestrator import SubmissionOrchestrator, SubmissionState
from .sanitizer import sanitize_error
from .service import JudgeService
from .settings import JudgeSettings
from .submission import Submission, SubmissionResult, TestCase, TestCaseResult
from .verdict import Verdict, classify

__all__ = [
    "ArtifactArena",
    "CallbackNotifier",
    "CatalogUnavailableError",
    "ExecutionLimits",
    "ExecutionOutcome",
    "HttpProblemCatalog",
    "InputValidationError",
    "JudgeError",
    "JudgeService",
    "JudgeSettings",
    "MissingClassDeclarationError",
    "NormalizedTextComparator",
    "ProblemNotFoundError",
    "SandboxExecutor",
    "StructuralComparator",
    "Submission",
    "SubmissionOrchestrator",
    "SubmissionResult",
    "SubmissionState",
    "TestCase",
    "TestCaseResult",
    "ToolchainUnavailableError",
    "UnsupportedLanguageError",
    "Verdict",
    "build_callback_payload",
    "build_fault_payload",
    "classify",
    "compare_output",
    "get_comparator",
    "normalize_text",
    "sanitize_error",
]
