"""
Main entry point for mkcbt.

This script configures logging, parses command-line arguments and builds the
archive. Any expected failure is reported as a single diagnostic line on
stderr followed by a non-zero exit status.
"""

import sys
from typing import List, Optional

from loguru import logger

from mkcbt.cli import get_args
from mkcbt.config.common import DEFAULT_LOG_LEVEL, LOGGER_FORMAT
from mkcbt.domain.exceptions import MkcbtException
from mkcbt.pipeline.job_pipeline import build_archive


# Configure the logger for initial setup. stderr only: stdout may carry the archive.
logger.remove()
logger.add(sys.stderr, level=DEFAULT_LOG_LEVEL, format=LOGGER_FORMAT)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Builds one archive from the command line.

    Returns:
        The process exit status: 0 on success, 1 on any failure.
    """
    args = get_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level, format=LOGGER_FORMAT)
    logger.debug(f"Parsed arguments: {args}")

    try:
        build_archive(
            args.output,
            args.inputs,
            convert=args.avif,
            ceiling=args.jobs,
            stamp_mtime=args.stamp_mtime,
        )
    except MkcbtException as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
