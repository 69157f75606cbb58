"""
Defines custom exception types for mkcbt.

Every failure in mkcbt is fatal: there are no retries, and a half-written
archive with silently skipped pages is worse than a hard stop. These exceptions
exist so that the entry point can tell an expected, user-facing failure (report
one line and exit non-zero) apart from a programming error.

All custom exceptions inherit from the base `MkcbtException`.
"""
from pathlib import Path


class MkcbtException(Exception):
    """Base class for all custom exceptions in mkcbt."""

    pass


# --- Input Collection Exceptions ---
class InputException(MkcbtException):
    """Base class for problems with the paths given on the command line."""

    pass


class InputNotFoundException(InputException):
    """Raised when an input path does not exist."""

    def __init__(self, path: Path):
        super().__init__(f"File `{path}` does not exist")
        self.path = path


class NotAFileException(InputException):
    """
    Raised when an input, or an entry of the input directory, is not a regular file.

    Directory inputs are not traversed recursively, so a nested directory is an
    error rather than something to skip.
    """

    def __init__(self, path: Path):
        super().__init__(f"`{path}` is not a file")
        self.path = path


class EmptyInputException(InputException):
    """Raised when there is nothing to put into the archive."""

    pass


# --- Work Directory Exceptions ---
class WorkDirectoryException(MkcbtException):
    """
    Raised when the scoped work directory cannot be created or removed.

    Both cases point at an environment problem (permissions, a full disk, a
    vanished temp mount) rather than something the pipeline can work around.
    """

    pass


# --- Conversion Exceptions ---
class ConversionException(MkcbtException):
    """Base class for failures of the external image encoder."""

    pass


class EncoderNotFoundException(ConversionException):
    """Raised when the encoder executable cannot be run at all."""

    pass


class EncoderSpawnException(ConversionException):
    """Raised when starting the encoder process for a given input fails."""

    def __init__(self, path: Path, reason: str = ""):
        message = f"Failed to run the image encoder on `{path}`"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.path = path


class ConversionFailedException(ConversionException):
    """
    Raised when the encoder process exits with a failure status.

    The pipeline aborts as soon as this is seen; no later entry is written.
    """

    def __init__(self, path: Path, returncode: int):
        super().__init__(f"Image encoding of `{path}` returned failure (exit status {returncode})")
        self.path = path
        self.returncode = returncode


# --- Archive Exceptions ---
class ArchiveException(MkcbtException):
    """Base class for archive writer failures."""

    pass


class EntryNameTooLongException(ArchiveException):
    """Raised when an entry name does not fit the 100-byte ustar name field."""

    pass


class ArchiveWriteException(ArchiveException):
    """Raised on any I/O error while reading a source or writing the sink."""

    pass


# --- Pipeline Exceptions ---
class PipelineStateException(MkcbtException):
    """Raised when the pipeline is used outside its lifecycle (e.g. submit after finish)."""

    pass
