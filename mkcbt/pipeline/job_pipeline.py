import os
import subprocess
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Deque, Iterable, Optional, Protocol

from loguru import logger

from ..config.common import FIRST_SEQUENCE_INDEX, PROGRAM_NAME, STDOUT_SENTINEL, WORK_PARENT_DIR
from ..config.image import AVIF_EXTENSION
from ..domain.exceptions import (
    ArchiveWriteException,
    ConversionFailedException,
    PipelineStateException,
    WorkDirectoryException,
)
from ..domain.jobs import (
    ConversionJob,
    JobKind,
    JobStatus,
    entry_name,
    index_width,
    normalized_extension,
)
from ..domain.workspace import ScopedWorkDirectory, unique_path
from ..services.archive_writer import TarArchiveWriter, validate_entry_name
from ..services.image_encoder import AvifEncoder
from ..services.input_collection_service import collect_inputs
from ..utils.format_utils import format_timedelta, formatted_size, has_extension
from ..utils.tool_locator import ExternalTools


class Encoder(Protocol):
    """Anything that can start one conversion as a child process writing `output_path`."""

    def spawn(self, input_path: Path, output_path: Path) -> subprocess.Popen: ...


def default_ceiling() -> int:
    """Number of CPUs this process may run on, falling back to the host CPU count."""
    if hasattr(os, "sched_getaffinity"):
        return max(1, len(os.sched_getaffinity(0)))
    return max(1, os.cpu_count() or 1)


@dataclass
class PipelineSummary:
    """Counts and totals reported once a pipeline has finished cleanly."""

    entries: int
    copied: int
    converted: int
    bytes_written: int
    elapsed: timedelta


class JobPipeline:
    """
    Overlaps external image conversion with strictly ordered archive writing.

    Inputs are submitted one at a time. Inputs that already have the target
    extension are copied; the others are handed to the encoder, which runs as a
    separate process. At most `ceiling` jobs are in flight: when the queue is
    full, `submit` first flushes the oldest job, waiting for its process if
    needed. Jobs leave the queue only from its head, so entries appear in the
    archive in submission order no matter which conversion finishes first.

    With `target_extension=None` nothing is converted and every entry keeps the
    input's own lowercase extension; no work directory is created in that mode.

    The pipeline owns the archive writer and the work directory. Use it as a
    context manager: a clean exit finishes the pipeline, an exception aborts it
    (running encoders are terminated, the archive is released without its end
    marker, and the work directory is removed) before the exception propagates.

    Attributes:
        archive (TarArchiveWriter): The exclusively owned archive writer.
        total (int): The number of inputs that will be submitted.
        width (int): Zero-pad width of entry indices, from `total`.
        ceiling (int): Maximum number of in-flight jobs.
        next_index (int): The sequence index the next submitted job receives.
    """

    def __init__(
        self,
        archive: TarArchiveWriter,
        total: int,
        ceiling: Optional[int] = None,
        encoder: Optional[Encoder] = None,
        target_extension: Optional[str] = AVIF_EXTENSION,
        work_parent: Optional[Path] = None,
    ):
        if total < 1:
            raise PipelineStateException("A pipeline needs at least one input")
        ceiling = default_ceiling() if ceiling is None else ceiling
        if ceiling < 1:
            raise PipelineStateException(f"Concurrency ceiling must be at least 1, got {ceiling}")

        self.archive = archive
        self.total = total
        self.width = index_width(total)
        self.ceiling = ceiling
        self.target_extension = target_extension.lower() if target_extension else None
        self.next_index = FIRST_SEQUENCE_INDEX
        self.finished = False

        self._queue: Deque[ConversionJob] = deque()
        self._submitted = 0
        self._copied = 0
        self._converted = 0
        self._started_at = datetime.now()

        self.encoder: Optional[Encoder] = None
        self.work_dir: Optional[ScopedWorkDirectory] = None
        if self.target_extension:
            self.encoder = encoder or AvifEncoder()
            self.work_dir = ScopedWorkDirectory(PROGRAM_NAME, work_parent or WORK_PARENT_DIR)
            self.work_dir.acquire()

    @property
    def in_flight(self) -> int:
        return len(self._queue)

    @property
    def running(self) -> int:
        return sum(1 for job in self._queue if job.is_running)

    def submit(self, input_path: Path) -> ConversionJob:
        """
        Queues one input, blocking first if the queue is at the ceiling.

        Args:
            input_path: The input image. It is never modified or deleted.

        Returns:
            The queued job.

        Raises:
            PipelineStateException: If the pipeline is finished, or more than
                                    `total` inputs are submitted.
            EntryNameTooLongException: If the entry name would not fit the archive.
            EncoderSpawnException: If the encoder could not be started.
            ConversionFailedException / ArchiveWriteException: From flushing an older job.
        """
        if self.finished:
            raise PipelineStateException("Cannot submit to a finished pipeline")
        if self._submitted >= self.total:
            raise PipelineStateException(
                f"Pipeline was sized for {self.total} inputs; entry names would no longer be {self.width} digits wide"
            )

        while len(self._queue) >= self.ceiling:
            self._flush_one()

        input_path = Path(input_path)
        job = self._make_job(self.next_index, input_path)
        self.next_index += 1
        self._submitted += 1
        self._queue.append(job)
        logger.debug(f"Queued #{job.index} {input_path.name} as {job.archive_name} ({job.kind.value})")
        return job

    def _make_job(self, index: int, input_path: Path) -> ConversionJob:
        if self.target_extension is None:
            archive_name = entry_name(index, self.width, normalized_extension(input_path))
            validate_entry_name(archive_name)
            return ConversionJob.copy(index, input_path, archive_name)

        if has_extension(input_path, self.target_extension):
            archive_name = entry_name(index, self.width, self.target_extension)
            validate_entry_name(archive_name)
            return ConversionJob.copy(index, input_path, archive_name)

        archive_name = entry_name(index, self.width, self.target_extension)
        validate_entry_name(archive_name)
        output_path = unique_path(
            self.work_dir.path, self.target_extension, prefix=f"{index:0{self.width}d}-"
        )
        process = self.encoder.spawn(input_path, output_path)
        return ConversionJob.convert(index, input_path, output_path, archive_name, process)

    def _flush_one(self):
        job = self._queue.popleft()
        if job.kind is JobKind.CONVERT:
            returncode = job.wait()
            if returncode != 0:
                raise ConversionFailedException(job.input_path, returncode)
            self.archive.write_entry(job.source, job.archive_name)
            try:
                job.source.unlink()
            except OSError as e:
                raise WorkDirectoryException(f"Could not remove temporary image file `{job.source}`: {e}") from e
            self._converted += 1
        elif job.kind is JobKind.COPY:
            self.archive.write_entry(job.source, job.archive_name)
            self._copied += 1
        job.status = JobStatus.FLUSHED
        logger.debug(f"Flushed #{job.index} {job.input_path.name} -> {job.archive_name}")

    def finish(self) -> PipelineSummary:
        """
        Drains every queued job in order, terminates the archive and removes the work directory.

        If anything fails the pipeline is aborted before the error propagates.
        """
        if self.finished:
            raise PipelineStateException("Pipeline already finished")
        try:
            while self._queue:
                self._flush_one()
            self.archive.close()
            if self.work_dir:
                self.work_dir.release()
        except BaseException:
            self.abort()
            raise
        self.finished = True
        return PipelineSummary(
            entries=self.archive.entries_written,
            copied=self._copied,
            converted=self._converted,
            bytes_written=self.archive.bytes_written,
            elapsed=datetime.now() - self._started_at,
        )

    def abort(self):
        """
        Best-effort teardown after a failure. Cleanup errors are logged, not raised.
        """
        if self.finished:
            return
        self.finished = True

        pending = [job for job in self._queue if job.kind is JobKind.CONVERT]
        for job in pending:
            if job.process.poll() is None:
                logger.debug(f"Terminating encoder for {job.input_path.name}")
                job.process.terminate()
        for job in pending:
            job.process.wait()
        self._queue.clear()

        try:
            self.archive.abort()
        except ArchiveWriteException as e:
            logger.error(str(e))
        if self.work_dir:
            try:
                self.work_dir.release()
            except WorkDirectoryException as e:
                logger.error(str(e))

    def __enter__(self) -> "JobPipeline":
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.abort()
        elif not self.finished:
            self.finish()
        return False


def build_archive(
    output: str,
    inputs: Iterable[Path],
    convert: bool = False,
    ceiling: Optional[int] = None,
    stamp_mtime: bool = False,
    encoder: Optional[Encoder] = None,
) -> PipelineSummary:
    """
    Builds one comic book archive from the given inputs.

    Args:
        output: Archive path, or "-" for standard output.
        inputs: Input files, or a single directory of input files.
        convert: Convert images that are not AVIF yet with the external encoder.
        ceiling: Maximum number of concurrent jobs; defaults to the CPU count.
        stamp_mtime: Stamp the run's start time on every entry instead of zero.
        encoder: Overrides the encoder (the `avifenc` check is then skipped).

    Returns:
        The summary of the finished run.
    """
    input_files = collect_inputs(inputs)

    if convert and encoder is None:
        encoder = AvifEncoder(ExternalTools.verify_encoder())

    mtime = TarArchiveWriter.capture_time() if stamp_mtime else 0
    if str(output) == STDOUT_SENTINEL:
        archive = TarArchiveWriter.to_stdout(mtime=mtime)
    else:
        archive = TarArchiveWriter.create(Path(output), mtime=mtime)

    logger.info(
        f"Building {archive.name} from {len(input_files)} input(s)"
        f"{' with AVIF conversion' if convert else ''}"
    )
    try:
        pipeline = JobPipeline(
            archive,
            total=len(input_files),
            ceiling=ceiling,
            encoder=encoder,
            target_extension=AVIF_EXTENSION if convert else None,
        )
    except BaseException:
        archive.abort()
        raise
    logger.debug(f"Using a concurrency ceiling of {pipeline.ceiling}")

    with pipeline:
        for path in input_files:
            pipeline.submit(path)
        summary = pipeline.finish()

    logger.info(
        f"Archived {summary.entries} entries ({summary.copied} copied, {summary.converted} converted), "
        f"{formatted_size(summary.bytes_written)} in {format_timedelta(summary.elapsed)}"
    )
    return summary
