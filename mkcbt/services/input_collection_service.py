"""
Discovers and validates the input images for an archive run.

Inputs are either a list of files, or a single directory whose entries are
taken as the inputs. Either way the result is sorted by path so that entry
numbering is deterministic and reproducible across runs.
"""
from pathlib import Path
from typing import Iterable, List

from loguru import logger

from ..domain.exceptions import (
    EmptyInputException,
    InputException,
    InputNotFoundException,
    NotAFileException,
)


def _collect_directory(directory: Path) -> List[Path]:
    """Drains the (non-recursive) listing of `directory`; every entry must be a file."""
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        raise InputException(f"Could not read directory `{directory}`: {e}") from e

    for path in entries:
        if not path.is_file():
            raise NotAFileException(path)
    if not entries:
        raise EmptyInputException(f"`{directory}` is empty")
    return entries


def _validate_files(paths: List[Path]) -> List[Path]:
    for path in paths:
        if not path.exists():
            raise InputNotFoundException(path)
        if not path.is_file():
            raise NotAFileException(path)
    return paths


def collect_inputs(paths: Iterable[Path]) -> List[Path]:
    """
    Resolves command-line input paths into the sorted list of files to archive.

    Args:
        paths: Input files, or exactly one directory.

    Returns:
        The input files sorted lexicographically by path.

    Raises:
        InputNotFoundException: If a listed file does not exist.
        NotAFileException: If a listed path, or an entry of the input directory,
                           is not a regular file.
        EmptyInputException: If there are no inputs, or the directory is empty.
        InputException: If the input directory cannot be read.
    """
    paths = [Path(p) for p in paths]
    if not paths:
        raise EmptyInputException("No input files given")

    if len(paths) == 1 and paths[0].is_dir():
        logger.debug(f"Collecting inputs from directory: {paths[0]}")
        inputs = _collect_directory(paths[0])
    else:
        inputs = _validate_files(paths)

    inputs.sort()
    logger.debug(f"Collected {len(inputs)} input file(s)")
    for i, path in enumerate(inputs, start=1):
        logger.trace(f"  {i}. {path.name}")
    return inputs
