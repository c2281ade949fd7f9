"""Artifact sinks: the bounded hand-off queue for playback, or an output file.

Exactly one sink is chosen when the run is configured. The synthesis stage
hands every artifact to it in order and closes it once all segments are done.
"""

import asyncio
import logging

from polly_reader.errors import StorageIOError
from polly_reader.models import AudioArtifact

logger = logging.getLogger(__name__)


class QueueSink:
    """Push artifacts onto the playback queue.

    put() blocks while the queue is full, which is what keeps synthesis from
    running arbitrarily far ahead of playback. close() enqueues the None
    end-of-stream marker.
    """

    def __init__(self, queue: "asyncio.Queue[AudioArtifact | None]"):
        self.queue = queue

    async def accept(self, artifact: AudioArtifact) -> None:
        await self.queue.put(artifact)

    async def close(self) -> None:
        await self.queue.put(None)


class FileSink:
    """Write artifacts to one MP3 file, in order.

    The first artifact truncates the file and later ones are appended; MP3
    frames concatenate into a playable stream.
    """

    def __init__(self, path: str):
        self.path = path
        self.written = 0

    def _write(self, data: bytes) -> None:
        mode = "wb" if self.written == 0 else "ab"
        with open(self.path, mode) as f:
            f.write(data)

    async def accept(self, artifact: AudioArtifact) -> None:
        try:
            await asyncio.to_thread(self._write, artifact.data)
        except OSError as e:
            raise StorageIOError(f"error writing file {self.path}: {e}") from e
        self.written += 1
        logger.info("Wrote segment %d (%d bytes) to %s", artifact.sequence_index, len(artifact.data), self.path)

    async def close(self) -> None:
        logger.info("Output complete: %s (%d segments)", self.path, self.written)
