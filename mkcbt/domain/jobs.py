"""
Defines the conversion job model and the archive entry naming scheme.

A job is one input on its way into the archive. It is either a plain copy of
the input file or an external transcode whose output lands in the scoped work
directory. Both kinds share one dataclass tagged by `JobKind`; code that needs
to treat them differently branches on the tag.
"""
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class JobKind(Enum):
    COPY = "copy"
    CONVERT = "convert"


class JobStatus(Enum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FLUSHED = "flushed"


def index_width(total: int) -> int:
    """Number of decimal digits needed for the largest index (at least 1)."""
    return len(str(max(total, 1)))


def entry_name(index: int, width: int, extension: str) -> str:
    """
    Builds the archive entry name for a sequence index.

    Example:
        entry_name(7, 2, ".avif") -> "07.avif"
    """
    return f"{index:0{width}d}{extension}"


def normalized_extension(path: Path) -> str:
    """Returns the lowercase suffix of `path` including its dot, or '' if it has none."""
    return path.suffix.lower()


@dataclass
class ConversionJob:
    """
    One pipeline unit with its precomputed place in the archive.

    Attributes:
        kind (JobKind): COPY or CONVERT.
        index (int): The sequence index; unique and increasing per pipeline.
        input_path (Path): The caller's input file.
        source (Path): The file whose bytes go into the archive. For COPY this is
                       `input_path`; for CONVERT it is the encoder's output file
                       inside the work directory.
        archive_name (str): The entry name inside the archive.
        process (Optional[subprocess.Popen]): The running encoder, CONVERT only.
                       The job owns this handle until it has been waited on.
    """

    kind: JobKind
    index: int
    input_path: Path
    source: Path
    archive_name: str
    process: Optional[subprocess.Popen] = field(default=None, repr=False)
    status: JobStatus = JobStatus.SUBMITTED

    @classmethod
    def copy(cls, index: int, input_path: Path, archive_name: str) -> "ConversionJob":
        return cls(
            kind=JobKind.COPY,
            index=index,
            input_path=input_path,
            source=input_path,
            archive_name=archive_name,
            status=JobStatus.COMPLETED,
        )

    @classmethod
    def convert(
        cls,
        index: int,
        input_path: Path,
        output_path: Path,
        archive_name: str,
        process: subprocess.Popen,
    ) -> "ConversionJob":
        return cls(
            kind=JobKind.CONVERT,
            index=index,
            input_path=input_path,
            source=output_path,
            archive_name=archive_name,
            process=process,
            status=JobStatus.RUNNING,
        )

    @property
    def is_running(self) -> bool:
        """True while a CONVERT job's process has not exited (non-blocking check)."""
        if self.kind is JobKind.COPY or self.process is None:
            return False
        return self.process.poll() is None

    def wait(self) -> int:
        """Blocks until a CONVERT job's encoder exits and returns its exit status."""
        returncode = self.process.wait()
        self.status = JobStatus.COMPLETED
        return returncode
