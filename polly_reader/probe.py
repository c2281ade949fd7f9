"""Audio duration via ffmpeg, since Polly does not report it."""

import asyncio
import logging
import os
import re
import tempfile

from polly_reader.constants import FFMPEG_BIN
from polly_reader.errors import ProbeError, StorageIOError

logger = logging.getLogger(__name__)

# e.g. "Duration: 00:04:40.66"
_DURATION_RE = re.compile(r"Duration:\s(\d\d):(\d\d):(\d\d\.\d\d)")


def parse_duration(output: str) -> int:
    """Whole seconds from the first "Duration: HH:MM:SS.ff" in ffmpeg output.

    Fractional seconds are floored. A missing or malformed duration raises
    ProbeError; it never comes back as 0.
    """
    match = _DURATION_RE.search(output)
    if match is None:
        raise ProbeError("unable to get duration from ffmpeg", output)
    hours, minutes, seconds = match.groups()
    if int(minutes) > 59 or float(seconds) >= 60:
        raise ProbeError(f"could not parse duration {match.group(0)!r}", output)
    return int(hours) * 3600 + int(minutes) * 60 + int(float(seconds))


async def probe_duration(path: str, ffmpeg: str = FFMPEG_BIN) -> int:
    """Run ffmpeg over path and return the audio length in seconds.

    Arguments go to ffmpeg as a vector, so paths need no escaping. The process
    is killed if the caller is cancelled while waiting on it.
    """
    if not os.path.exists(path):
        raise ProbeError(f"no such file to probe: {path}")

    cmd = [ffmpeg, "-hide_banner", "-i", path, "-f", "null", "-"]
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as e:
        raise ProbeError(f"error running ffmpeg on {path}: {e}") from e

    try:
        out, _ = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    output = out.decode(errors="replace")
    if proc.returncode != 0:
        raise ProbeError(f"error running ffmpeg on {path}, exit status {proc.returncode}", output)
    return parse_duration(output)


def _write_temp(fd: int, path: str, data: bytes) -> None:
    try:
        f = os.fdopen(fd, "wb")
    except OSError as e:
        os.close(fd)
        raise StorageIOError(f"error opening temp file {path}: {e}") from e
    try:
        with f:
            f.write(data)
    except OSError as e:
        raise StorageIOError(f"error writing temp file {path}: {e}") from e


async def probe_bytes(data: bytes, suffix: str = ".mp3") -> int:
    """Probe in-memory audio through a throwaway file.

    ffmpeg needs a seekable file rather than a pipe. The file is removed
    before returning. If the write or the probe already failed, a failed
    remove is only logged so the original error (and ffmpeg's output)
    reaches the caller.
    """
    try:
        fd, path = tempfile.mkstemp(prefix="polly_reader_", suffix=suffix)
    except OSError as e:
        raise StorageIOError(f"error creating temp file for ffmpeg: {e}") from e

    try:
        _write_temp(fd, path, data)
        duration = await probe_duration(path)
    except BaseException:
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Failed to remove temp file %s: %s", path, e)
        raise

    try:
        os.remove(path)
    except OSError as e:
        raise StorageIOError(f"error removing temp file {path}: {e}") from e
    return duration
