"""CLI entry point for codemend."""
import argparse
from dotenv import load_dotenv
import asyncio
import json
import logging
import sys
import traceback
from pathlib import Path

from codemend.llm.exceptions import ModelServiceError
from codemend.models import (
    AppMode,
    DiffKind,
    FileDiff,
    LoopStatus,
    OrchestratorRequest,
    OrchestratorResult,
    ProjectFile,
    ProjectSummary,
)
from codemend.orchestrator.exceptions import OrchestratorError, RequestValidationError

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_CONFIG_ERROR = 2
EXIT_ORCHESTRATOR_ERROR = 3
EXIT_MODEL_FAILURE = 4
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130

# Defaults
DEFAULT_MAX_TURNS = 5
MAX_FILE_CHARS = 100_000
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

SKIP_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "__pycache__",
        ".venv",
        "venv",
        "dist",
        "build",
        ".next",
        ".mypy_cache",
        ".pytest_cache",
    }
)

# Safe keys allowed in config output (no secrets)
_SAFE_CONFIG_KEYS = frozenset({
    "request", "project_path", "mode", "active_file", "provider", "model",
    "base_url", "max_turns", "stream", "tools", "compression", "high_capacity",
    "knowledge_file", "summary_file", "apply", "output_json", "verbose",
    "file_count", "total_chars",
})


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="codemend",
        description="Tool-calling coding agent that proposes file diffs for review",
    )
    parser.add_argument("request", type=str, help="What the agent should do")
    parser.add_argument("project_path", type=str, help="Path to the project root")
    parser.add_argument(
        "--mode",
        type=str,
        default=AppMode.FIX.value,
        choices=[mode.value for mode in AppMode],
        help="fix (default) proposes changes, explain answers questions, chat is general",
    )
    parser.add_argument(
        "--active-file",
        type=str,
        default=None,
        help="Project-relative path of the file currently being edited",
    )
    parser.add_argument(
        "--provider",
        type=str,
        default="auto",
        choices=("auto", "anthropic", "openai"),
        help="Model provider: auto (default), anthropic, or openai",
    )
    parser.add_argument("--model", type=str, default=None, help="Model ID to use")
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Base URL of an OpenAI-compatible endpoint",
    )
    parser.add_argument(
        "--max-turns",
        type=int,
        default=DEFAULT_MAX_TURNS,
        help=f"Maximum model/tool turns, at most {DEFAULT_MAX_TURNS} (default: {DEFAULT_MAX_TURNS})",
    )
    parser.add_argument("--stream", action="store_true", help="Stream the response")
    parser.add_argument("--no-tools", action="store_true", help="Disable tool calling")
    parser.add_argument(
        "--no-compression",
        action="store_true",
        help="Always send full file contents regardless of project size",
    )
    parser.add_argument(
        "--high-capacity",
        action="store_true",
        help="Allow a larger response token budget",
    )
    parser.add_argument(
        "--knowledge-file",
        type=str,
        default=None,
        help="JSON file used as the persistent knowledge base",
    )
    parser.add_argument(
        "--summary-file",
        type=str,
        default=None,
        help="JSON project summary enabling compressed context for large projects",
    )
    parser.add_argument(
        "--apply", action="store_true", help="Write the proposed diffs to the project"
    )
    parser.add_argument(
        "--output-json", action="store_true", help="Output results as JSON"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


def validate_project_path(raw_path: str) -> Path:
    """Validate and resolve the project path.

    Args:
        raw_path: Raw path string from CLI arguments.

    Returns:
        Resolved absolute path.

    Raises:
        SystemExit: If path is not a valid directory.
    """
    resolved = Path(raw_path).resolve()
    if not resolved.is_dir():
        print(f"Error: '{raw_path}' is not a valid directory.", file=sys.stderr)
        raise SystemExit(EXIT_INVALID_INPUT)
    return resolved


def load_project_files(root: Path) -> list[ProjectFile]:
    """Read the project snapshot, skipping VCS/vendor dirs, binaries and huge files."""
    from codemend.tools.file_ops import guess_language

    files: list[ProjectFile] = []
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in SKIP_DIRS for part in relative.parts) or not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError):
            continue
        if "\x00" in content or len(content) > MAX_FILE_CHARS:
            continue
        name = relative.as_posix()
        files.append(ProjectFile(name=name, language=guess_language(name), content=content))
    return files


def load_summary(raw_path: str | None) -> ProjectSummary | None:
    if not raw_path:
        return None
    return ProjectSummary.model_validate_json(Path(raw_path).read_text(encoding="utf-8"))


def apply_diffs(root: Path, diffs: list[FileDiff]) -> list[str]:
    """Write proposed diffs under ``root``; returns the paths touched.

    Raises:
        ValueError: If a diff targets a path outside ``root``.
    """
    touched: list[str] = []
    for diff in diffs:
        target = (root / diff.file_name).resolve()
        if not target.is_relative_to(root):
            raise ValueError(f"Refusing to write outside the project: {diff.file_name}")
        if diff.kind == DiffKind.DELETE:
            target.unlink(missing_ok=True)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(diff.new_content, encoding="utf-8")
        touched.append(diff.file_name)
    return touched


def format_result_json(result: OrchestratorResult) -> str:
    """Serialize the result to a JSON string."""
    return json.dumps(result.model_dump(mode="json"), indent=2, default=str)


def print_result_human(result: OrchestratorResult, show_text: bool = True) -> None:
    """Print results in human-readable format."""
    if show_text and result.text:
        print(result.text)

    print(f"\n{'='*60}")
    print(f"Status: {result.status.value} after {result.turns} turn(s)")
    if result.compression_used:
        print("Context: compressed")
    print(f"Proposed diffs: {len(result.diffs)}")
    print(f"{'='*60}")

    for diff in result.diffs:
        print(f"\n[{diff.kind.value}] {diff.file_name}")
        if diff.diff_text:
            print(diff.diff_text)

    if result.todos:
        print("\nTasks:")
        for item in result.todos:
            print(f"  [{item.status.value}] {item.task}")

    unresolved = [error for error in result.errors if not error.resolved]
    if unresolved:
        print(f"\nErrors ({len(unresolved)}):")
        for error in unresolved:
            print(f"  - [{error.category.value}/{error.severity.value}] {error.message}")

    if result.error:
        print(f"\nError: {result.error}")


def determine_exit_code(result: OrchestratorResult) -> int:
    """Determine the exit code from the result."""
    if result.status == LoopStatus.FAILED:
        return EXIT_MODEL_FAILURE
    return EXIT_SUCCESS


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format.

    Only prints keys in the safe allowlist to prevent secret leakage.
    """
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        if key in _SAFE_CONFIG_KEYS:
            print(f"  {key}: {value}")
    print(f"{'='*40}")


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def create_orchestrator(args: argparse.Namespace):
    """Create the model client, stores and orchestrator from CLI arguments.

    Imports are deferred to avoid loading the provider SDKs and LangGraph
    for --help and --dry-run paths.
    """
    from codemend.context import InMemoryKnowledgeStore, JsonKnowledgeStore
    from codemend.llm import LLMSettings, create_model_client
    from codemend.orchestrator import Orchestrator

    settings = LLMSettings.from_env(
        provider=args.provider,
        model=args.model,
        base_url=args.base_url,
    )
    client = create_model_client(settings)
    store = (
        JsonKnowledgeStore(args.knowledge_file)
        if args.knowledge_file
        else InMemoryKnowledgeStore()
    )
    return Orchestrator(
        client=client,
        knowledge_store=store,
        max_turns=args.max_turns,
        tools_enabled=not args.no_tools,
    )


def _stream_callbacks():
    from codemend.orchestrator import StreamCallbacks

    def on_text(chunk: str) -> None:
        sys.stdout.write(chunk)
        sys.stdout.flush()

    def on_status(message: str) -> None:
        print(f"\n... {message}", file=sys.stderr)

    def on_error(message: str) -> None:
        print(f"\nModel error: {message}", file=sys.stderr)

    return StreamCallbacks(on_text=on_text, on_status=on_status, on_error=on_error)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        root = validate_project_path(args.project_path)
    except SystemExit as exc:
        return exc.code

    if args.max_turns < 1:
        print("Error: --max-turns must be at least 1.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    files = load_project_files(root)
    if args.active_file and args.active_file not in {file.name for file in files}:
        print(f"Error: active file '{args.active_file}' is not in the project.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    config = {
        "request": args.request,
        "project_path": str(root),
        "mode": args.mode,
        "active_file": args.active_file,
        "provider": args.provider,
        "model": args.model,
        "base_url": args.base_url,
        "max_turns": args.max_turns,
        "stream": args.stream,
        "tools": not args.no_tools,
        "compression": not args.no_compression,
        "high_capacity": args.high_capacity,
        "knowledge_file": args.knowledge_file,
        "summary_file": args.summary_file,
        "apply": args.apply,
        "output_json": args.output_json,
        "verbose": args.verbose,
        "file_count": len(files),
        "total_chars": sum(len(file.content) for file in files),
    }

    if args.dry_run:
        if args.output_json:
            print(json.dumps(config, indent=2))
        else:
            print_config_human(config)
        return EXIT_SUCCESS

    try:
        request = OrchestratorRequest(
            files=files,
            active_file=args.active_file,
            message=args.request,
            mode=AppMode(args.mode),
            project_summary=load_summary(args.summary_file),
            use_compression=not args.no_compression,
            high_capacity=args.high_capacity,
        )
        orchestrator = create_orchestrator(args)

        if args.stream:
            result = asyncio.run(orchestrator.run_stream(request, _stream_callbacks()))
            if result is None:
                return EXIT_INVALID_INPUT
            print()
        else:
            result = asyncio.run(orchestrator.run(request))

        if args.output_json:
            print(format_result_json(result))
        else:
            print_result_human(result, show_text=not args.stream)

        if args.apply and result.diffs:
            touched = apply_diffs(root, result.diffs)
            if not args.output_json:
                print(f"\nApplied {len(touched)} change(s).")

        return determine_exit_code(result)

    except RequestValidationError as exc:
        return _handle_error("Invalid request", exc, args.verbose, EXIT_INVALID_INPUT)

    except ModelServiceError as exc:
        return _handle_error("Model configuration error", exc, args.verbose, EXIT_CONFIG_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_ORCHESTRATOR_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)


if __name__ == "__main__":
    sys.exit(main())
