"""
fetish-repl command line entry point.

Usage:
  fetish-repl                                   # REPL on the bundled linear context definition
  fetish-repl path/to/context_def.py            # REPL on another context definition
  fetish-repl -e 'generate_context params.json' -e 'eval (f #0[1.0, 2.0])'

Environment fallbacks: FETISH_CONTEXT_LIB, FETISH_SEED, FETISH_LOG_LEVEL.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field

from .commands import handle_command_line
from .errors import ReplError
from .loading import DEFAULT_CONTEXT_LIBRARY, ContextDefinitionLibraryHandle
from .state import GlobalState

try:
    import readline  # noqa: F401  (line editing + history for input())
except ImportError:
    pass

logger = logging.getLogger(__name__)

PROMPT = ">> "


@dataclass(frozen=True)
class ReplConfig:
    context_library: str = DEFAULT_CONTEXT_LIBRARY
    seed: int | None = None
    log_level: str = "WARNING"
    prompt: str = PROMPT
    commands: tuple[str, ...] = field(default_factory=tuple)


def _env_seed() -> int | None:
    raw = os.environ.get("FETISH_SEED")
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise SystemExit(f"FETISH_SEED must be an integer, got {raw!r}") from None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Interactive evaluator for term-embedding s-expressions",
        prog="fetish-repl",
    )
    parser.add_argument("context_library", nargs="?",
                        default=os.environ.get("FETISH_CONTEXT_LIB", DEFAULT_CONTEXT_LIBRARY),
                        help="Context definition module (path to .py file or dotted name)")
    parser.add_argument("-e", "--execute", action="append", default=[], metavar="COMMAND",
                        help="Run a command and exit instead of starting the REPL (repeatable)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for model initialisation and simulation sampling")
    parser.add_argument("--log-level", type=str.upper,
                        default=os.environ.get("FETISH_LOG_LEVEL", "WARNING"),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Diagnostics written to stderr")
    parser.add_argument("--prompt", default=PROMPT)
    return parser


def config_from_args(argv: list[str] | None = None) -> ReplConfig:
    args = build_arg_parser().parse_args(argv)
    return ReplConfig(
        context_library=args.context_library,
        seed=args.seed if args.seed is not None else _env_seed(),
        log_level=args.log_level,
        prompt=args.prompt,
        commands=tuple(args.execute),
    )


def repl(glob_state: GlobalState, prompt: str = PROMPT):
    """Interactive REPL."""
    print("Term embedding REPL. Type help for commands, Ctrl-D to exit.")
    while True:
        try:
            line = input(prompt)
        except EOFError:
            print("\nCTRL-D")
            break
        except KeyboardInterrupt:
            print("\nCTRL-C")
            break

        if not line.strip():
            continue

        try:
            print(handle_command_line(line, glob_state))
        except Exception as e:
            logger.debug("Unhandled error for %r", line, exc_info=True)
            print(f"Error: {e}")


def main(argv: list[str] | None = None):
    config = config_from_args(argv)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        lib_handle = ContextDefinitionLibraryHandle.load(config.context_library)
    except ReplError as e:
        print(f"Error occurred when loading context generation library: {e}", file=sys.stderr)
        sys.exit(1)

    glob_state = GlobalState(lib_handle, seed=config.seed)

    if config.commands:
        for command in config.commands:
            print(handle_command_line(command, glob_state))
        return

    repl(glob_state, config.prompt)


if __name__ == "__main__":
    main()
