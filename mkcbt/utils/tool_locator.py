"""
This module locates and verifies the external image encoder (avifenc).
"""
import subprocess
import sys

from loguru import logger

from ..config.common import ENCODER_DIR
from ..config.image import AVIF_ENCODER_NAME
from ..domain.exceptions import EncoderNotFoundException


class ExternalTools:
    """
    Resolves the encoder executable and checks that it can be run.

    The path configured as `encoder_dir` in `config.user.yaml` takes priority;
    otherwise the executable is looked up on the system's PATH.
    """

    @staticmethod
    def get_encoder_path() -> str:
        """
        Determines the avifenc executable to use.

        Returns:
            The absolute path of a configured executable, or the bare executable
            name so that the system's PATH is searched.
        """
        exe_name = f"{AVIF_ENCODER_NAME}.exe" if sys.platform == "win32" else AVIF_ENCODER_NAME

        if ENCODER_DIR and ENCODER_DIR.is_dir():
            configured_path = ENCODER_DIR / exe_name
            if configured_path.is_file():
                logger.debug(f"Using {AVIF_ENCODER_NAME} from configured path: '{configured_path}'")
                return str(configured_path)
            logger.warning(
                f"`encoder_dir` is configured, but '{exe_name}' was not found there. Falling back to system PATH."
            )

        return AVIF_ENCODER_NAME

    @staticmethod
    def verify_encoder(executable: str = "") -> str:
        """
        Runs `<encoder> --version` once to make sure conversion can work at all.

        Unlike the per-job spawn, this is a synchronous check done before the
        archive is created, so a missing encoder never leaves a truncated archive.

        Returns:
            The verified executable.

        Raises:
            EncoderNotFoundException: If the executable cannot be started or
                                      exits with a failure status.
        """
        executable = executable or ExternalTools.get_encoder_path()
        try:
            result = subprocess.run(
                [executable, "--version"],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise EncoderNotFoundException(
                f"Image encoder `{executable}` could not be run: {e}. "
                "Install libavif or set `paths.encoder_dir` in config.user.yaml."
            ) from e

        first_line = (result.stdout or result.stderr).strip().splitlines()[:1]
        if result.returncode != 0:
            raise EncoderNotFoundException(
                f"Image encoder `{executable}` failed its version check (return code {result.returncode}): "
                f"{first_line[0] if first_line else 'no output'}"
            )
        logger.debug(f"{AVIF_ENCODER_NAME} version check: {first_line[0] if first_line else 'no output'}")
        return executable
