"""CLI entry point for tenx."""
import argparse
import asyncio
import logging
import sys
import traceback
from pathlib import Path

from dotenv import load_dotenv

from tenx.assistant import Tenx
from tenx.config import Config
from tenx.context import PathContext, TextContext
from tenx.exceptions import (
    CheckError,
    ModelError,
    PatchError,
    ResponseParseError,
    SessionError,
    SessionStoreError,
    TenxError,
)
from tenx.pretty import render_session
from tenx.session import SessionStore, find_root

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_PATCH_ERROR = 2
EXIT_MODEL_ERROR = 3
EXIT_CHECK_ERROR = 4
EXIT_SESSION_ERROR = 5
EXIT_TENX_ERROR = 6
EXIT_UNEXPECTED = 7
EXIT_KEYBOARD_INTERRUPT = 130

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tenx",
        description="AI-assisted coding with atomic, revertible patches",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print errors; no streaming")
    parser.add_argument("--session-dir", type=str, default=None, help="Directory holding session files")
    parser.add_argument("--config", type=str, default=None, help="Path to a YAML config file")

    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Start a new session for this project")
    new.add_argument("files", nargs="*", help="Files or globs to make editable")

    ctx = sub.add_parser("ctx", help="Add context to the session")
    ctx.add_argument("items", nargs="*", help="Files or globs to add as context")
    ctx.add_argument("--text", nargs=2, metavar=("NAME", "FILE"), help="Add a named text blob read from FILE")

    edit = sub.add_parser("edit", help="Make files editable")
    edit.add_argument("files", nargs="+", help="Files or globs to make editable")

    code = sub.add_parser("code", help="Ask the model to make a change")
    code.add_argument("prompt", nargs="?", default=None, help="Prompt text; read from stdin if omitted")
    code.add_argument("--edit", dest="files", action="append", default=[], help="Also make FILE editable")

    sub.add_parser("retry", help="Retry the last step")

    fix = sub.add_parser("fix", help="Run checks and ask the model to fix failures")
    fix.add_argument("prompt", nargs="?", default=None, help="Extra instructions")

    reset = sub.add_parser("reset", help="Revert and drop steps from OFFSET onward")
    reset.add_argument("offset", type=int, help="Index of the first step to drop")

    show = sub.add_parser("show", help="Show the current session")
    show.add_argument("--full", action="store_true", help="Include full text and diffs")

    sub.add_parser("check", help="Run validators against the project")

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Map -v/-q to a log level and log bare messages to stderr."""
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)


def load_config(args: argparse.Namespace) -> Config:
    root = find_root(Path.cwd())
    config = Config.load(args.config, project_root=root)
    if args.session_dir:
        config.session_store_dir = Path(args.session_dir)
    return config


async def _print_stream(queue: asyncio.Queue) -> None:
    while True:
        chunk = await queue.get()
        if chunk is None:
            break
        sys.stdout.write(chunk)
        sys.stdout.flush()
    sys.stdout.write("\n")


async def _with_stream(run, quiet: bool):
    """Run ``run(sender)`` while a concurrent task prints streamed text."""
    if quiet:
        return await run(None)
    queue: asyncio.Queue = asyncio.Queue()
    printer = asyncio.create_task(_print_stream(queue))
    try:
        return await run(queue)
    finally:
        queue.put_nowait(None)
        await printer


def _read_prompt(prompt: str | None) -> str:
    if prompt is None:
        prompt = sys.stdin.read()
    if not prompt.strip():
        raise SessionError("Empty prompt")
    return prompt


def run_command(tenx: Tenx, args: argparse.Namespace) -> int:
    """Dispatch a parsed subcommand."""
    config = tenx.config

    if args.command == "new":
        session = tenx.new_session()
        for path in args.files:
            session.add_editable(config, path)
        tenx.save_session(session)
        print(f"new session: {session.root}")
        return EXIT_SUCCESS

    session = tenx.load_session()

    if args.command == "ctx":
        if not args.items and not args.text:
            raise SessionError("Nothing to add; give paths or --text NAME FILE")
        for item in args.items:
            spec = PathContext(pattern=item)
            if session.add_context(spec):
                print(f"added context {spec.human()} ({spec.count(config)} files)")
        if args.text:
            name, source = args.text
            session.add_context(TextContext(name=name, text=Path(source).read_text(encoding="utf-8")))
        tenx.save_session(session)
        return EXIT_SUCCESS

    if args.command == "edit":
        added = sum(session.add_editable(config, path) for path in args.files)
        tenx.save_session(session)
        print(f"added {added} editable file(s)")
        return EXIT_SUCCESS

    if args.command == "code":
        prompt = _read_prompt(args.prompt)
        for path in args.files:
            session.add_editable(config, path)
        asyncio.run(_with_stream(lambda sender: tenx.code(session, prompt, sender), args.quiet))
        return EXIT_SUCCESS

    if args.command == "retry":
        asyncio.run(_with_stream(lambda sender: tenx.retry(session, sender), args.quiet))
        return EXIT_SUCCESS

    if args.command == "fix":
        asyncio.run(_with_stream(lambda sender: tenx.fix(session, args.prompt, sender), args.quiet))
        return EXIT_SUCCESS

    if args.command == "reset":
        tenx.reset(session, args.offset)
        print(f"reset to step {args.offset}")
        return EXIT_SUCCESS

    if args.command == "show":
        sys.stdout.write(render_session(session, full=args.full))
        return EXIT_SUCCESS

    if args.command == "check":
        for name in tenx.check(session):
            print(f"ok: {name}")
        return EXIT_SUCCESS

    raise SessionError(f"Unknown command: {args.command}")


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)
    verbose = args.verbose > 1

    try:
        config = load_config(args)
        tenx = Tenx(config, store=SessionStore(config.session_dir()))
        return run_command(tenx, args)

    except PatchError as exc:
        if exc.change is not None:
            print(f"Failed change {exc.change_index}: {exc.change}", file=sys.stderr)
        return _handle_error("Patch error", exc, verbose, EXIT_PATCH_ERROR)

    except (ModelError, ResponseParseError) as exc:
        return _handle_error("Model error", exc, verbose, EXIT_MODEL_ERROR)

    except CheckError as exc:
        return _handle_error("Check failed", exc, verbose, EXIT_CHECK_ERROR)

    except (SessionError, SessionStoreError) as exc:
        return _handle_error("Session error", exc, verbose, EXIT_SESSION_ERROR)

    except TenxError as exc:
        return _handle_error("Error", exc, verbose, EXIT_TENX_ERROR)

    except OSError as exc:
        return _handle_error("Invalid input", exc, verbose, EXIT_INVALID_INPUT)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, verbose, EXIT_UNEXPECTED)


if __name__ == "__main__":
    sys.exit(main())
