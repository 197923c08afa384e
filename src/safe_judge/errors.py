from __future__ import annotations


class JudgeError(Exception):
    """Base class for every error raised by safe-judge.

    Example:
        ```python
        raise JudgeError("something went wrong")
        ```
    """


class InputValidationError(JudgeError, ValueError):
    """Missing or malformed request fields, raised before any artifact exists.

    Example:
        ```python
        raise InputValidationError("Missing fields: language")
        ```
    """

    status_code = 400


class UnsupportedLanguageError(InputValidationError):
    """Requested language has no registered toolchain.

    Example:
        ```python
        raise UnsupportedLanguageError("Unsupported language: cobol")
        ```
    """


class MissingClassDeclarationError(JudgeError):
    """Java source has no type declaration to name the source file after.

    Example:
        ```python
        raise MissingClassDeclarationError()
        ```
    """

    reason = "no_class_declaration"

    def __init__(self, message: str = "Could not find a class declaration in the Java source.") -> None:
        """Store the structured failure message.

        Example:
            ```python
            exc = MissingClassDeclarationError()
            ```
        """
        super().__init__(message)


class ToolchainUnavailableError(JudgeError):
    """Compiler or interpreter is missing or could not be started.

    Example:
        ```python
        raise ToolchainUnavailableError("g++ not found or failed to start")
        ```
    """


class ProblemNotFoundError(JudgeError):
    """Problem catalog has no problem with the requested id.

    Example:
        ```python
        raise ProblemNotFoundError("Problem 'abc' not found")
        ```
    """

    status_code = 404


class CatalogUnavailableError(JudgeError):
    """Problem catalog could not be reached or answered with an error.

    Example:
        ```python
        raise CatalogUnavailableError("Cannot connect to backend service")
        ```
    """

    status_code = 502
