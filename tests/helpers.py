import subprocess
import sys
from pathlib import Path


# Stand-in for avifenc: sleeps, then copies input to output or exits with failure.
_FAKE_ENCODER_SCRIPT = (
    "import shutil, sys, time\n"
    "time.sleep(float(sys.argv[3]))\n"
    "if sys.argv[4] == '1':\n"
    "    sys.exit(3)\n"
    "shutil.copyfile(sys.argv[1], sys.argv[2])\n"
)


class FakeEncoder:
    """Runs the current interpreter as the encoder so jobs are real processes."""

    def __init__(self, delays=None, failures=()):
        self.delays = delays or {}
        self.failures = set(failures)
        self.processes = []
        self.spawned = []
        self.max_alive = 0

    def spawn(self, input_path: Path, output_path: Path) -> subprocess.Popen:
        alive = sum(1 for p in self.processes if p.poll() is None)
        process = subprocess.Popen(
            [
                sys.executable,
                "-c",
                _FAKE_ENCODER_SCRIPT,
                str(input_path),
                str(output_path),
                str(self.delays.get(input_path.name, 0)),
                "1" if input_path.name in self.failures else "0",
            ],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        self.processes.append(process)
        self.spawned.append((input_path, output_path))
        self.max_alive = max(self.max_alive, alive + 1)
        return process


def split_archive(data: bytes):
    """
    Splits a ustar stream into (name, header, content, padding) tuples.

    Returns the entries and whatever follows the last entry.
    """
    entries = []
    offset = 0
    while offset < len(data):
        header = data[offset : offset + 512]
        if header == bytes(512):
            break
        name = header[:100].rstrip(b"\0").decode("utf-8")
        size = int(header[124:135], 8)
        padded = -(-size // 512) * 512
        body = data[offset + 512 : offset + 512 + padded]
        entries.append((name, header, body[:size], body[size:]))
        offset += 512 + padded
    return entries, data[offset:]


