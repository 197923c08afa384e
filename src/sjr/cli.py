from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.pretty import Pretty
from rich.table import Table
from rich_argparse import RawTextRichHelpFormatter
from safe_judge import JudgeError, JudgeService, JudgeSettings, Submission, Verdict
from safe_judge.execution import capabilities_for_platform, toolchain_report

_CONSOLE = Console(no_color=False)

_VERDICT_STYLES = {
    Verdict.ACCEPTED: "bold green",
    Verdict.WRONG_ANSWER: "bold red",
    Verdict.COMPILATION_ERROR: "bold yellow",
    Verdict.RUNTIME_ERROR: "bold red",
    Verdict.TIME_LIMIT_EXCEEDED: "bold magenta",
    Verdict.MEMORY_LIMIT_EXCEEDED: "bold magenta",
    Verdict.SYSTEM_ERROR: "bold white on red",
}


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="sjr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def _add_limit_flags(command: argparse.ArgumentParser) -> None:
    """Attach the per-run limit overrides to a subcommand.

    Example:
        ```python
        _add_limit_flags(run_cmd)
        ```
    """
    command.add_argument(
        "--time-limit-ms",
        type=int,
        help="Wall-clock limit per run in milliseconds (default: from settings).",
    )
    command.add_argument(
        "--memory-limit-mb",
        type=int,
        help="Memory limit per run in megabytes (default: from settings).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for local judging.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="sjr",
        description=(
            "safe-judge-runner CLI\n"
            "Compile and run untrusted programs under time and memory limits,\n"
            "grade submissions and inspect what this host can enforce."
        ),
        epilog=(
            "Quick Examples:\n"
            "  sjr run main.cpp --language cpp --input in.txt\n"
            "  sjr grade submission.json\n"
            "  sjr samples solution.py --language py --problem-id 65f0c2\n"
            "  sjr capabilities\n\n"
            "Settings:\n"
            "  sjr --config judge.toml grade submission.json"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a settings TOML with [judge] and [toolchains] tables.\n"
            "Defaults to the bundled settings."
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG, including raw unsanitized diagnostics.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Run one program on custom input.",
        description=(
            "Compile (if needed) and run a source file once.\n"
            "Uses the interactive limits unless overridden."
        ),
        epilog=(
            "Examples:\n"
            "  sjr run main.c --language c\n"
            "  sjr run Main.java --language java --input in.txt --time-limit-ms 2000"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("source", help="Source file to run.")
    run_cmd.add_argument("--language", "-l", required=True, help="c, cpp, java, python or javascript.")
    run_cmd.add_argument("--input", "-i", help="File fed to the program's standard input.")
    _add_limit_flags(run_cmd)

    grade_cmd = sub.add_parser(
        "grade",
        help="Grade a submission JSON synchronously.",
        description=(
            "Grade a submission described by a JSON file with language,\n"
            "sourceCode, testCases, timeLimit and memoryLimit.\n"
            "Exits 0 on Accepted, 1 on any other verdict."
        ),
        epilog=(
            "Example:\n"
            "  sjr grade submission.json"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    grade_cmd.add_argument("submission", help="Submission JSON file.")

    samples_cmd = sub.add_parser(
        "samples",
        help="Run a source file against a problem's sample cases.",
        description=(
            "Fetch a problem from the catalog and run its sample cases,\n"
            "stopping at the first failure."
        ),
        epilog=(
            "Example:\n"
            "  sjr samples main.cpp --language cpp --problem-id 65f0c2 --catalog-url http://localhost:5000"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    samples_cmd.add_argument("source", help="Source file to run.")
    samples_cmd.add_argument("--language", "-l", required=True, help="c, cpp, java, python or javascript.")
    samples_cmd.add_argument("--problem-id", required=True, help="Problem identifier in the catalog.")
    samples_cmd.add_argument("--catalog-url", help="Catalog base URL (default: from settings).")
    _add_limit_flags(samples_cmd)

    sub.add_parser(
        "capabilities",
        help="Show enforced limits and installed toolchains.",
        description=(
            "Show which sandbox limits this platform enforces and\n"
            "which language toolchains are on PATH."
        ),
        epilog=(
            "Example:\n"
            "  sjr capabilities"
        ),
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def _configure_logging(verbose: bool) -> None:
    """Route library logging through Rich.

    Example:
        ```python
        _configure_logging(verbose=True)
        ```
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def build_settings(args: argparse.Namespace) -> JudgeSettings:
    """Load settings and apply per-command overrides.

    Example:
        ```python
        settings = build_settings(args)
        ```
    """
    settings = JudgeSettings.from_file(args.config) if args.config else JudgeSettings()
    overrides: dict[str, Any] = {}
    if getattr(args, "time_limit_ms", None) is not None:
        overrides["interactive_time_limit_ms"] = args.time_limit_ms
    if getattr(args, "memory_limit_mb", None) is not None:
        overrides["interactive_memory_limit_mb"] = args.memory_limit_mb
    if getattr(args, "catalog_url", None):
        overrides["catalog_url"] = args.catalog_url
    return dataclasses.replace(settings, **overrides) if overrides else settings


def _print_run(response: dict[str, Any]) -> None:
    """Render a custom-input run.

    Example:
        ```python
        _print_run({"output": "4\\n", "stderr": "", "exitCode": 0, "timedOut": False, "memoryExceeded": False})
        ```
    """
    _CONSOLE.print(Panel(response.get("output") or "", title="Output", border_style="cyan"))
    if response.get("stderr"):
        _CONSOLE.print(Panel(response["stderr"], title="Errors", border_style="red"))
    facts = {key: response[key] for key in ("exitCode", "timedOut", "memoryExceeded") if key in response}
    _CONSOLE.print(Pretty(facts))


def _print_case_table(title: str, rows: list[dict[str, Any]]) -> None:
    """Render per-case verdicts in a rich table.

    Example:
        ```python
        _print_case_table("Results", [{"case": 1, "verdict": "Accepted", "passed": True}])
        ```
    """
    table = Table(title=title)
    table.add_column("Case", style="cyan", justify="right")
    table.add_column("Verdict")
    table.add_column("Passed")
    for row in rows:
        verdict = row["verdict"]
        style = _VERDICT_STYLES.get(Verdict(verdict), "")
        table.add_row(str(row["case"]), f"[{style}]{verdict}[/]" if style else verdict, "yes" if row["passed"] else "no")
    _CONSOLE.print(table)


def _print_verdict(verdict: Verdict) -> None:
    """Render the overall verdict.

    Example:
        ```python
        _print_verdict(Verdict.ACCEPTED)
        ```
    """
    _CONSOLE.print(Panel.fit(f"Verdict: {verdict.value}", style=_VERDICT_STYLES[verdict]))


def _print_capabilities(settings: JudgeSettings) -> None:
    """Render platform capabilities and toolchain availability.

    Example:
        ```python
        _print_capabilities(JudgeSettings())
        ```
    """
    caps = capabilities_for_platform()
    _CONSOLE.print(Panel.fit(Pretty(dataclasses.asdict(caps)), title="Sandbox Capabilities", border_style="cyan"))
    table = Table(title="Toolchains")
    table.add_column("Language", style="cyan")
    table.add_column("Executables", style="magenta")
    table.add_column("Available")
    for status in toolchain_report(settings):
        available = "[bold green]yes[/]" if status.available else "[bold red]no[/]"
        table.add_row(status.language, ", ".join(status.executables), available)
    _CONSOLE.print(table)


def _load_submission(path: str, settings: JudgeSettings) -> Submission:
    """Read a submission JSON file.

    Example:
        ```python
        submission = _load_submission("submission.json", JudgeSettings())
        ```
    """
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return Submission.from_payload(
        payload,
        default_time_limit_ms=settings.default_time_limit_ms,
        default_memory_limit_mb=settings.default_memory_limit_mb,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `sjr` CLI command handler.

    Example:
        ```python
        code = main(["capabilities"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    try:
        settings = build_settings(args)
        if args.command == "capabilities":
            _print_capabilities(settings)
            return 0

        service = JudgeService(settings)
        if args.command == "run":
            source = Path(args.source).read_text(encoding="utf-8")
            custom_input = Path(args.input).read_text(encoding="utf-8") if args.input else ""
            response = asyncio.run(service.run_custom_input(args.language, custom_input, source_code=source))
            _print_run(response)
            return 0 if response["exitCode"] == 0 and not response["timedOut"] else 1
        if args.command == "grade":
            submission = _load_submission(args.submission, settings)
            result = asyncio.run(service.orchestrator.grade(submission))
            _print_case_table(
                "Results",
                [{"case": r.index, "verdict": r.verdict.value, "passed": r.passed} for r in result.results],
            )
            if result.error_details:
                _CONSOLE.print(Panel(result.error_details, title="Error Details", border_style="red"))
            if result.error_message:
                _CONSOLE.print(Panel(result.error_message, title="System Error", border_style="red"))
            _print_verdict(result.overall_verdict)
            return 0 if result.accepted else 1
        if args.command == "samples":
            source = Path(args.source).read_text(encoding="utf-8")
            response = asyncio.run(service.run_sample_cases(args.language, args.problem_id, source_code=source))
            if not response["testResults"]:
                _CONSOLE.print(Panel.fit(response["message"], style="bold yellow"))
                return 0
            _print_case_table("Sample Cases", response["testResults"])
            _print_verdict(Verdict(response["verdict"]))
            return 0 if response["verdict"] == Verdict.ACCEPTED.value else 1
    except (JudgeError, ValueError, OSError) as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {exc}", border_style="red"))
        return 2

    parser.error("Unhandled command")
    return 2
