"""
Small formatting helpers for the end-of-run summary line, plus an extension check.
"""

from datetime import timedelta
from pathlib import Path

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_timedelta(elapsed: timedelta) -> str:
    """Renders an elapsed time as HH:MM:SS; anything that is not a timedelta renders as zero."""
    total = int(elapsed.total_seconds()) if isinstance(elapsed, timedelta) else 0
    minutes, seconds = divmod(max(total, 0), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def formatted_size(size_bytes: int) -> str:
    """
    Renders an archive size with a binary unit.

    Whole values are shown without decimals, others with two,
    e.g. 1536 -> "1.50 KB" and 2097152 -> "2 MB".
    """
    value = float(max(size_bytes, 0))
    unit = _SIZE_UNITS[0]
    for unit in _SIZE_UNITS:
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            break
        value /= 1024
    if value.is_integer():
        return f"{int(value)} {unit}"
    return f"{value:.2f} {unit}"


def has_extension(file_path_obj: Path, extension: str) -> bool:
    """
    Checks a file's extension against `extension`, ignoring case.

    `extension` may be given with or without its leading dot.
    """
    if not extension:
        return False
    wanted = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
    return file_path_obj.suffix.lower() == wanted
