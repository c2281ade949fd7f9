"""Pipeline controller: wire synthesis, playback and the dashboard together.

Segments -> SynthesisStage -> [audio queue, bounded] -> PlaybackStage
-> [progress queue] -> Dashboard, with SynthesisStage -> [log queue] ->
Dashboard alongside. None on a queue means "closed".

Every stage runs as its own asyncio task. A stage that fails reports onto a
single-slot error queue; the first report wins. The controller then sets the
cancellation event (which closes the dashboard), cancels the remaining
stages and re-raises that error to the caller.
"""

import asyncio
import logging

from polly_reader.constants import AUDIO_QUEUE_SIZE, POLL_INTERVAL_SECONDS, PROGRESS_TICK_SECONDS
from polly_reader.errors import PipelineError
from polly_reader.exporter import FileSink, QueueSink
from polly_reader.models import TextSegment
from polly_reader.playback import PlaybackStage
from polly_reader.probe import probe_bytes
from polly_reader.tts import SynthesisStage

logger = logging.getLogger(__name__)


def _report(errors: "asyncio.Queue[PipelineError]", error: PipelineError) -> None:
    try:
        errors.put_nowait(error)
    except asyncio.QueueFull:
        logger.debug("Dropping later pipeline error: %s", error)


def _wrap(name: str, error: Exception) -> PipelineError:
    wrapped = PipelineError(f"{name} stage failed: {error}")
    wrapped.__cause__ = error
    return wrapped


async def _guard(name: str, coro, errors: "asyncio.Queue[PipelineError]") -> None:
    """Run one stage, turning any failure into a report on errors."""
    try:
        await coro
    except PipelineError as e:
        logger.error("%s stage failed: %s", name, e)
        _report(errors, e)
    except Exception as e:
        logger.exception("%s stage crashed", name)
        _report(errors, _wrap(name, e))


class Pipeline:
    """One run of the text-to-speech pipeline.

    With output_file set, artifacts are written there and nothing is played
    (FileSink); otherwise they go through the bounded queue to playback
    (QueueSink). The choice is fixed at construction.
    """

    def __init__(
        self,
        backend,
        store,
        voice: str,
        dashboard,
        output_file: str | None = None,
        player=None,
        probe=probe_bytes,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        tick: float = PROGRESS_TICK_SECONDS,
        audio_queue_size: int = AUDIO_QUEUE_SIZE,
    ):
        self.backend = backend
        self.store = store
        self.voice = voice
        self.dashboard = dashboard
        self.output_file = output_file
        self.player = player
        self.probe = probe
        self.poll_interval = poll_interval
        self.tick = tick
        self.audio_queue_size = audio_queue_size

    async def run(self, segments: list[TextSegment]) -> None:
        """Run until the user quits or a stage fails; re-raise the failure."""
        audio = asyncio.Queue(maxsize=self.audio_queue_size)
        logs = asyncio.Queue()
        progress = asyncio.Queue()
        errors = asyncio.Queue(maxsize=1)
        cancelled = asyncio.Event()

        if self.output_file:
            sink = FileSink(self.output_file)
        else:
            sink = QueueSink(audio)

        synthesis = SynthesisStage(self.backend, self.store, sink, logs, self.voice, self.poll_interval)
        stages = [asyncio.create_task(_guard("synthesis", synthesis.run(segments), errors))]
        if self.output_file:
            progress.put_nowait(None)
        else:
            playback = PlaybackStage(audio, progress, self.player, self.probe, self.tick)
            stages.append(asyncio.create_task(_guard("playback", playback.run(), errors)))

        ui = asyncio.create_task(self.dashboard.run(progress, logs, cancelled))
        first_error = asyncio.create_task(errors.get())
        error = None
        try:
            done, _ = await asyncio.wait({ui, first_error}, return_when=asyncio.FIRST_COMPLETED)
            if first_error in done:
                error = first_error.result()
                cancelled.set()
            try:
                await ui
            except Exception as e:
                logger.exception("dashboard crashed")
                if error is None:
                    error = _wrap("dashboard", e)
        finally:
            cancelled.set()
            for task in (first_error, *stages):
                task.cancel()
            if not ui.done():
                ui.cancel()
            await asyncio.gather(ui, first_error, *stages, return_exceptions=True)

        if error is not None:
            raise error
        logger.info("Pipeline finished")
