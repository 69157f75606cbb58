"""
Spawns the external image encoder for one conversion job.

The encoder is a single-shot tool invoked as `<tool> [flags] <input> <output>`.
It is started asynchronously and its handle is returned to the caller, who
waits on it later. Its standard streams are discarded so that encoder chatter
never interleaves with mkcbt's own output (which may be the archive itself).
"""
import os
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from ..config.common import ENCODER_EXTRA_ARGS
from ..domain.exceptions import EncoderSpawnException
from ..utils.tool_locator import ExternalTools


def display_command(cmd_list: Sequence[str]) -> str:
    if os.name == "nt":
        return subprocess.list2cmdline(cmd_list)
    return shlex.join(cmd_list)


class AvifEncoder:
    """
    Starts `avifenc` processes.

    Attributes:
        executable (str): The encoder command or path.
        extra_args (List[str]): Fixed tuning flags placed before the paths.
    """

    def __init__(self, executable: Optional[str] = None, extra_args: Optional[Sequence[str]] = None):
        self.executable = executable or ExternalTools.get_encoder_path()
        self.extra_args: List[str] = list(ENCODER_EXTRA_ARGS if extra_args is None else extra_args)

    def build_command(self, input_path: Path, output_path: Path) -> List[str]:
        return [self.executable, *self.extra_args, str(input_path), str(output_path)]

    def spawn(self, input_path: Path, output_path: Path) -> subprocess.Popen:
        """
        Starts converting `input_path` into `output_path` and returns immediately.

        Raises:
            EncoderSpawnException: If the process could not be started.
        """
        cmd_list = self.build_command(input_path, output_path)
        logger.debug(f"Spawning: {display_command(cmd_list)}")
        try:
            return subprocess.Popen(
                cmd_list,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise EncoderSpawnException(input_path, str(e)) from e
