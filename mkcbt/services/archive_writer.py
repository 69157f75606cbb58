"""
Streaming ustar archive writer.

Entries are appended in the order `write_entry` is called: a 512-byte header,
the file content, then zero padding up to the next 512-byte boundary. Closing
the writer appends the two all-zero blocks that mark the end of the archive.
The writer never seeks, so the sink may be a pipe or standard output.
"""
import shutil
import sys
import time
from pathlib import Path
from typing import BinaryIO, Optional

from loguru import logger

from ..config.image import (
    BLOCK_SIZE,
    END_OF_ARCHIVE,
    ENTRY_GROUP_ID,
    ENTRY_MODE,
    ENTRY_OWNER_ID,
    MAX_OCTAL_11,
    MAX_NAME_LENGTH,
    REGULAR_FILE_TYPE,
    USTAR_MAGIC,
    USTAR_VERSION,
)
from ..domain.exceptions import ArchiveWriteException, EntryNameTooLongException

_CHECKSUM_OFFSET = 148
_CHECKSUM_LENGTH = 8


def validate_entry_name(archive_name: str) -> bytes:
    """Returns the encoded name, rejecting names that do not fit the name field (never truncates)."""
    name_bytes = archive_name.encode("utf-8")
    if not name_bytes or len(name_bytes) > MAX_NAME_LENGTH:
        raise EntryNameTooLongException(
            f"Archive entry name `{archive_name}` must be 1 to {MAX_NAME_LENGTH} bytes long"
        )
    return name_bytes


def build_header(archive_name: str, size: int, mtime: int = 0) -> bytes:
    """
    Builds the 512-byte ustar header for a regular file entry.

    Args:
        archive_name: The entry name; at most 100 bytes once UTF-8 encoded.
        size: Payload length in bytes.
        mtime: Modification time in seconds since the epoch.

    Returns:
        The header with its checksum filled in.

    Raises:
        EntryNameTooLongException: If the name is empty or does not fit the name field.
        ArchiveWriteException: If `size` or `mtime` cannot be rendered in 11 octal digits.
    """
    name_bytes = validate_entry_name(archive_name)
    if not 0 <= size <= MAX_OCTAL_11:
        raise ArchiveWriteException(f"Entry `{archive_name}` is too large for a ustar header ({size} bytes)")
    if not 0 <= mtime <= MAX_OCTAL_11:
        raise ArchiveWriteException(f"Modification time {mtime} cannot be stored in a ustar header")

    header = bytearray(BLOCK_SIZE)
    header[: len(name_bytes)] = name_bytes
    header[100:107] = ENTRY_MODE
    header[108:115] = ENTRY_OWNER_ID
    header[116:123] = ENTRY_GROUP_ID
    header[124:135] = f"{size:011o}".encode("ascii")
    header[136:147] = f"{mtime:011o}".encode("ascii")
    header[_CHECKSUM_OFFSET : _CHECKSUM_OFFSET + _CHECKSUM_LENGTH] = b" " * _CHECKSUM_LENGTH
    header[156:157] = REGULAR_FILE_TYPE
    header[257:262] = USTAR_MAGIC
    header[263:265] = USTAR_VERSION

    # Summed while the checksum field still holds spaces; the trailing space stays.
    checksum = sum(header)
    header[_CHECKSUM_OFFSET : _CHECKSUM_OFFSET + 7] = f"{checksum:06o}\0".encode("ascii")
    return bytes(header)


def padding_for(size: int) -> bytes:
    remainder = size % BLOCK_SIZE
    return bytes(BLOCK_SIZE - remainder) if remainder else b""


class TarArchiveWriter:
    """
    Appends files to a ustar stream.

    The writer owns its sink exclusively. Use `create()` for a file on disk
    (closed on release) or `to_stdout()` for the standard output stream (flushed
    but left open). As a context manager it writes the end-of-archive marker on
    a clean exit and only releases the sink when an exception is propagating.

    Attributes:
        mtime (int): The modification time stamped on every entry of this archive.
        entries_written (int): Number of complete entries written so far.
        bytes_written (int): Total bytes sent to the sink, headers and padding included.
    """

    def __init__(self, sink: BinaryIO, mtime: int = 0, owns_sink: bool = False, name: str = "<stream>"):
        self._sink = sink
        self._owns_sink = owns_sink
        self.name = name
        self.mtime = mtime
        self.entries_written = 0
        self.bytes_written = 0
        self.closed = False

    @classmethod
    def create(cls, path: Path, mtime: int = 0) -> "TarArchiveWriter":
        try:
            sink = open(path, "wb")
        except OSError as e:
            raise ArchiveWriteException(f"Could not create archive `{path}`: {e}") from e
        return cls(sink, mtime=mtime, owns_sink=True, name=str(path))

    @classmethod
    def to_stdout(cls, mtime: int = 0) -> "TarArchiveWriter":
        return cls(sys.stdout.buffer, mtime=mtime, owns_sink=False, name="<stdout>")

    @staticmethod
    def capture_time() -> int:
        return int(time.time())

    def _write(self, data: bytes):
        try:
            self._sink.write(data)
        except OSError as e:
            raise ArchiveWriteException(f"Could not write to archive {self.name}: {e}") from e
        self.bytes_written += len(data)

    def write_entry(self, source_path: Path, archive_name: str):
        """
        Streams one file into the archive under `archive_name`.

        The source is read to EOF but left in place. On failure nothing that was
        already written is rolled back; the sink may not be seekable.

        Args:
            source_path: The file whose bytes become the entry payload.
            archive_name: The entry name inside the archive.

        Raises:
            EntryNameTooLongException: If the name does not fit the header.
            ArchiveWriteException: On any stat, read or write failure, or if the
                                   source changed size while it was being copied.
        """
        if self.closed:
            raise ArchiveWriteException(f"Archive {self.name} is already closed")
        source_path = Path(source_path)
        try:
            size = source_path.stat().st_size
        except OSError as e:
            raise ArchiveWriteException(f"Could not stat `{source_path}`: {e}") from e

        header = build_header(archive_name, size, self.mtime)
        try:
            source = source_path.open("rb")
        except OSError as e:
            raise ArchiveWriteException(f"Could not open `{source_path}`: {e}") from e

        with source:
            self._write(header)
            start = self.bytes_written
            try:
                shutil.copyfileobj(source, _CountingSink(self))
            except OSError as e:
                raise ArchiveWriteException(
                    f"Could not copy `{source_path}` into archive {self.name}: {e}"
                ) from e
            copied = self.bytes_written - start

        if copied != size:
            raise ArchiveWriteException(
                f"`{source_path}` changed size while being archived ({size} expected, {copied} read)"
            )
        self._write(padding_for(size))
        self.entries_written += 1
        logger.trace(f"Archived {source_path} as {archive_name} ({size} bytes)")

    def close(self):
        """Writes the end-of-archive marker, flushes, and closes an owned sink."""
        if self.closed:
            return
        try:
            self._write(END_OF_ARCHIVE)
            try:
                self._sink.flush()
            except OSError as e:
                raise ArchiveWriteException(f"Could not flush archive {self.name}: {e}") from e
        finally:
            self._release_sink()
        logger.debug(f"Closed archive {self.name}: {self.entries_written} entries, {self.bytes_written} bytes")

    def abort(self):
        """Releases the sink without writing the end-of-archive marker."""
        if self.closed:
            return
        try:
            self._sink.flush()
        except OSError as e:
            logger.warning(f"Could not flush archive {self.name} while aborting: {e}")
        finally:
            self._release_sink()

    def _release_sink(self):
        self.closed = True
        if self._owns_sink:
            try:
                self._sink.close()
            except OSError as e:
                raise ArchiveWriteException(f"Could not close archive {self.name}: {e}") from e

    def __enter__(self) -> "TarArchiveWriter":
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
        else:
            try:
                self.abort()
            except ArchiveWriteException as cleanup_error:
                logger.error(f"{cleanup_error} (while handling: {exc})")
        return False


class _CountingSink:
    """File-like adapter so `shutil.copyfileobj` writes go through the writer's accounting."""

    def __init__(self, writer: TarArchiveWriter):
        self._writer = writer

    def write(self, data: bytes) -> int:
        self._writer._write(data)
        return len(data)
