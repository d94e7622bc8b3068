"""Container metadata helpers backed by ffprobe."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

FFPROBE_TIMEOUT_SECONDS = 30


def probe_duration(path: Path) -> int:
    """Return the media duration of ``path`` in whole seconds, or 0 when unknown."""

    executable = shutil.which("ffprobe")
    if executable is None:
        return 0

    try:
        proc = subprocess.run(
            [
                executable,
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                str(path),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=False,
            timeout=FFPROBE_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired):
        return 0

    if proc.returncode != 0:
        return 0
    try:
        seconds = float(proc.stdout.strip())
    except ValueError:
        return 0
    return max(0, round(seconds))


__all__ = ["probe_duration"]
