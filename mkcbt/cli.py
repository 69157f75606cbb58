"""
Command-Line Interface (CLI) setup for mkcbt.

This module uses Python's `argparse` to define and parse the command-line
arguments that control the application's behavior.
"""
import argparse
from pathlib import Path
from typing import List, Optional

from .config.common import DEFAULT_LOG_LEVEL, PROGRAM_NAME, STDOUT_SENTINEL

USAGE_MESSAGE = f"{PROGRAM_NAME} [--avif] OUTPUT INPUT [INPUT]..."


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for mkcbt.

    Args:
        argv: Arguments to parse instead of `sys.argv[1:]`.

    Returns:
        argparse.Namespace: An object containing the parsed command-line
                            arguments as attributes.
    """
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        usage=USAGE_MESSAGE,
        description="Bundle images into a comic book archive (.cbt), one numbered entry per image.",
    )
    parser.add_argument(
        "--avif", action="store_true", help="Convert images that are not AVIF yet with avifenc."
    )
    parser.add_argument(
        "--jobs", "-j", type=int, default=None,
        help="Maximum number of concurrent conversions (default: number of CPUs).",
    )
    parser.add_argument(
        "--stamp-mtime", action="store_true",
        help="Stamp the current time on every entry instead of a zero modification time.",
    )
    parser.add_argument(
        "--log-level", type=str, default=DEFAULT_LOG_LEVEL,
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level.",
    )
    parser.add_argument("output", help=f"Output archive path, or '{STDOUT_SENTINEL}' for standard output.")
    parser.add_argument("inputs", nargs="+", type=Path, help="Input image files, or a single directory.")

    args = parser.parse_args(argv)

    if args.jobs is not None and args.jobs < 1:
        parser.error(f"--jobs must be at least 1, got {args.jobs}")

    return args
