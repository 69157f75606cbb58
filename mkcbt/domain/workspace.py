"""
Unique file names and the scoped work directory.

Converted images are written by the external encoder into a process-private
directory before they are streamed into the archive. `ScopedWorkDirectory`
owns that directory for the lifetime of a pipeline run and removes it, with
everything inside it, when the run ends, whether the run succeeded or not.
"""
import shutil
import tempfile
import time
from pathlib import Path
from typing import Optional

from loguru import logger

from .exceptions import WorkDirectoryException


def _time_token() -> str:
    # Sub-second nanosecond component, 8 hex digits.
    return f"{time.time_ns() % 1_000_000_000:08x}"


def unique_path(directory: Path, suffix: str = "", prefix: str = "") -> Path:
    """
    Returns a path inside `directory` that does not exist at the time of the call.

    The name is built from `prefix`, a nanosecond timestamp token and `suffix`.
    If the candidate is taken the timestamp is resampled until a free name is
    found. There is no guarantee against another process claiming the same name
    afterwards; callers only use this inside a directory they own.

    Args:
        directory: The directory the name is generated for.
        suffix: Appended verbatim, usually a file extension with its dot.
        prefix: Prepended verbatim.

    Returns:
        A candidate `Path` that did not exist when it was generated.
    """
    candidate = directory / f"{prefix}{_time_token()}{suffix}"
    while candidate.exists():
        candidate = directory / f"{prefix}{_time_token()}{suffix}"
    return candidate


class ScopedWorkDirectory:
    """
    A temporary directory that is guaranteed to be removed when the scope ends.

    Usage:
        with ScopedWorkDirectory("mkcbt") as work_dir:
            ...  # work_dir.path exists here

    The directory is created as `<parent>/<prefix>-<token>` where `parent`
    defaults to the platform temporary-files location. Removal failure is
    fatal and raised as `WorkDirectoryException`, unless another exception is
    already propagating out of the `with` block; in that case the removal
    failure is logged so it does not hide the original error.
    """

    def __init__(self, prefix: str, parent: Optional[Path] = None):
        self.prefix = prefix
        self.parent = Path(parent) if parent else Path(tempfile.gettempdir())
        self._path: Optional[Path] = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise WorkDirectoryException("Work directory has not been acquired")
        return self._path

    @property
    def active(self) -> bool:
        return self._path is not None

    def acquire(self) -> Path:
        if self._path is not None:
            return self._path
        while True:
            candidate = unique_path(self.parent, prefix=f"{self.prefix}-")
            try:
                candidate.mkdir()
            except FileExistsError:
                continue
            except OSError as e:
                raise WorkDirectoryException(
                    f"Could not create temporary directory `{candidate}`: {e}"
                ) from e
            break
        self._path = candidate
        logger.debug(f"Created work directory: {candidate}")
        return candidate

    def release(self):
        """Recursively removes the directory. Calling it again is a no-op."""
        if self._path is None:
            return
        path = self._path
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            logger.warning(f"Work directory already gone: {path}")
        except OSError as e:
            raise WorkDirectoryException(
                f"Could not remove temporary directory `{path}`: {e}"
            ) from e
        finally:
            self._path = None
        logger.debug(f"Removed work directory: {path}")

    def __enter__(self) -> "ScopedWorkDirectory":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            self.release()
        except WorkDirectoryException as cleanup_error:
            if exc_type is None:
                raise
            logger.error(f"{cleanup_error} (while handling: {exc})")
        return False
