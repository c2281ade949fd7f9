"""Synthesis stage: submit each segment to Polly, poll, fetch, clean up, route."""

import asyncio
import logging

from polly_reader.constants import POLL_INTERVAL_SECONDS
from polly_reader.backend import parse_result_uri
from polly_reader.errors import BackendError
from polly_reader.models import AudioArtifact, TaskState, TextSegment

logger = logging.getLogger(__name__)


class SynthesisStage:
    """Turn text segments into audio artifacts, strictly one at a time.

    backend is a PollyBackend (submit/poll), store an S3Store (get/delete),
    sink a QueueSink or FileSink. Status lines go onto logs; the stage closes
    both the sink and logs once every segment has been handed off.
    """

    def __init__(
        self,
        backend,
        store,
        sink,
        logs: "asyncio.Queue[str | None]",
        voice: str,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self._backend = backend
        self._store = store
        self._sink = sink
        self._logs = logs
        self._voice = voice
        self._poll_interval = poll_interval

    async def _log(self, line: str) -> None:
        logger.info(line)
        await self._logs.put(line)

    async def _wait_for_result(self, handle: str) -> str:
        """Poll until the task is terminal; return its result location.

        The sleep between polls is an ordinary await, so cancellation of the
        stage interrupts the wait immediately.
        """
        while True:
            task = await asyncio.to_thread(self._backend.poll, handle)
            if task.state is TaskState.COMPLETED:
                if not task.location:
                    raise BackendError(f"task {handle} completed without an output location")
                return task.location
            if task.state is TaskState.FAILED:
                raise BackendError(f"task failed: id: {handle}; reason: {task.reason}")

            await self._log(f"Synthesis running... status: {task.status}, id: {task.handle}")
            await asyncio.sleep(self._poll_interval)

    async def synthesize(self, segment: TextSegment) -> AudioArtifact:
        """Submit one segment and return its audio; the remote copy is deleted."""
        task = await asyncio.to_thread(self._backend.submit, segment.content, self._voice)
        location = await self._wait_for_result(task.handle)
        _, key = parse_result_uri(location)

        data = await asyncio.to_thread(self._store.get, key)
        await asyncio.to_thread(self._store.delete, key)
        return AudioArtifact(key=key, data=data, sequence_index=segment.sequence_index)

    async def run(self, segments: list[TextSegment]) -> None:
        total = len(segments)
        for seg in segments:
            await self._log(f"Submitting segment {seg.sequence_index + 1}/{total}")
            artifact = await self.synthesize(seg)
            await self._log(f"Segment {seg.sequence_index + 1}/{total} ready ({len(artifact.data)} bytes)")
            await self._sink.accept(artifact)

        await self._log("All segments synthesized.")
        await self._sink.close()
        await self._logs.put(None)
