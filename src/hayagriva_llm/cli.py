"""
hayagriva-llm: structured LLM metadata for npm packages.

Overview
--------
Generates two files in the package root:

1) ``llm.package.json``: name, version, description, exports (type, description,
   hook flag, optional params/returns/sideEffect/example), hooks, frameworks and,
   in AI mode, a summary, side effects, keywords, use cases and related packages.
   Keys added by hand or by other tools are preserved on regeneration.

2) ``llm.package.txt``: the same content as flat text for crawlers and models.

Static mode scans the entry file (``source``, ``module``, ``main``, then
``src/index.ts``, ``index.ts``, ``src/index.js``, ``index.js``). AI mode queries
OpenRouter in guarded steps: export names, package overview, then export details
in batches of eight names.

Usage
-----
    hayagriva-llm generate
    hayagriva-llm generate --mode ai --include-src
    hayagriva-llm generate --mode ai --model anthropic/claude-3.5-haiku --verbose --log-file gen.log

The API key comes from ``--api-key``, ``OPEN_ROUTER_API_KEY`` or ``OPENROUTER_API_KEY``
(a ``.env`` file is honored); the model from ``--model``, ``OPEN_ROUTER_MODEL`` or
``HAYAGRIVA_LLM_MODEL``.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from hayagriva_llm import PACKAGE_NAME, __version__
from hayagriva_llm.config import DEFAULT_TIMEOUT, GenerationMode
from hayagriva_llm.exceptions import AuthError, HayagrivaError
from hayagriva_llm.generate import generate
from hayagriva_llm.logging import logger, setup_logging
from hayagriva_llm.settings import ENV_FILE, Settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hayagriva_llm.generate import GenerationReport
    from hayagriva_llm.schemas import ProgressEvent


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser.

    Returns:
        argparse.ArgumentParser: Parser with the ``generate`` subcommand.
    """
    parser = argparse.ArgumentParser(
        prog=PACKAGE_NAME,
        description="Generate llm.package.json and llm.package.txt for npm packages.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate LLM metadata files.")
    gen.add_argument(
        "--cwd",
        type=Path,
        default=Path.cwd(),
        help="Package root (default: current directory).",
    )
    gen.add_argument(
        "--mode",
        choices=[mode.value for mode in GenerationMode],
        default=GenerationMode.STATIC.value,
        help='Extraction mode: "static" (entry file scan) or "ai" (OpenRouter).',
    )
    gen.add_argument("--api-key", type=str, default="", help="OpenRouter API key (ai mode).")
    gen.add_argument("--model", type=str, default="", help="OpenRouter model (ai mode).")
    gen.add_argument(
        "--include-src",
        action="store_true",
        help="Include the entry file source in the AI prompt (ai mode).",
    )
    gen.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="HTTP timeout in seconds (ai mode).",
    )
    gen.add_argument("--verbose", action="store_true", help="Debug logging.")
    gen.add_argument("--log-file", type=str, default="", help="Log file path.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse CLI arguments into settings.

    Args:
        argv (Sequence[str] | None): Optional CLI args.

    Returns:
        Settings: Settings for the ``generate`` command.
    """
    args = build_parser().parse_args(argv)
    values = vars(args)
    values.pop("command", None)
    return Settings(**values)


def print_banner(mode: GenerationMode) -> None:
    print(f"{PACKAGE_NAME} Generating LLM metadata ({mode.value} mode)")


def print_progress(event: ProgressEvent) -> None:
    print(f"{PACKAGE_NAME} › [{event.current}/{event.total}] {event.message}")


def print_summary(report: GenerationReport) -> None:
    print(f"{PACKAGE_NAME} ✓ Done ({report.export_count} exports), files written:")
    for path, existed in ((report.json_path, report.json_existed), (report.txt_path, report.txt_existed)):
        print(f"  {'Updated' if existed else 'Created'} {path}")


def print_error(error: HayagrivaError) -> None:
    print(f"{PACKAGE_NAME} ✗ {error}", file=sys.stderr)
    if isinstance(error, AuthError) and error.hint:
        print(f"  {error.hint}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.

    Returns:
        int: Process exit code (0 when both files were written, 1 on failure).
    """
    if ENV_FILE:
        load_dotenv(ENV_FILE)
    settings = parse_args(argv)
    setup_logging(settings.log_file or None, verbose=settings.verbose, force=True)

    print_banner(settings.mode)
    try:
        report = generate(settings, on_progress=print_progress)
    except HayagrivaError as e:
        logger.error("generation_failed", error_type=type(e).__name__, error=str(e))
        print_error(e)
        return 1

    print_summary(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
