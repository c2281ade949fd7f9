"""Playback stage: probe, play, and report progress for each queued artifact."""

import asyncio
import io
import logging
import struct

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from polly_reader.constants import FFPLAY_BIN, OUTPUT_FORMAT, PLAYBACK_CHUNK_BYTES, PROGRESS_TICK_SECONDS
from polly_reader.errors import PlaybackError
from polly_reader.models import AudioArtifact, PlaybackProgress
from polly_reader.probe import probe_bytes

logger = logging.getLogger(__name__)


class FfplayPlayer:
    """Decode MP3 bytes with pydub and stream the PCM to ffplay.

    The decoded samples are written to ffplay's stdin in chunks behind a
    single WAV header, so no second full-length copy is built. ffplay is
    killed if playback is cancelled, so a fatal error elsewhere stops the
    sound too.
    """

    def __init__(self, ffplay: str = FFPLAY_BIN, chunk_bytes: int = PLAYBACK_CHUNK_BYTES):
        self.ffplay = ffplay
        self.chunk_bytes = chunk_bytes

    @staticmethod
    def decode(data: bytes) -> AudioSegment:
        try:
            return AudioSegment.from_file(io.BytesIO(data), format=OUTPUT_FORMAT)
        except (CouldntDecodeError, OSError) as e:
            raise PlaybackError(f"mp3 decode failed: {e}") from e

    @staticmethod
    def wav_header(audio: AudioSegment) -> bytes:
        """44-byte PCM WAV header sized for all of audio's samples."""
        size = len(audio.raw_data)
        block_align = audio.channels * audio.sample_width
        return struct.pack(
            "<4sI4s4sIHHIIHH4sI",
            b"RIFF", 36 + size, b"WAVE",
            b"fmt ", 16, 1, audio.channels, audio.frame_rate,
            audio.frame_rate * block_align, block_align, audio.sample_width * 8,
            b"data", size,
        )

    async def _feed(self, stdin, audio: AudioSegment) -> None:
        pcm = memoryview(audio.raw_data)
        try:
            stdin.write(self.wav_header(audio))
            for start in range(0, len(pcm), self.chunk_bytes):
                stdin.write(pcm[start:start + self.chunk_bytes])
                await stdin.drain()
            stdin.close()
        except (BrokenPipeError, ConnectionResetError):
            # ffplay went away early; its exit status reports why
            logger.debug("ffplay closed its input early")

    async def play(self, data: bytes) -> None:
        audio = await asyncio.to_thread(self.decode, data)

        cmd = [self.ffplay, "-nodisp", "-autoexit", "-hide_banner", "-loglevel", "error", "-i", "pipe:0"]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PlaybackError(f"error starting {self.ffplay}: {e}") from e

        try:
            await self._feed(proc.stdin, audio)
            err = await proc.stderr.read()
            await proc.wait()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            raise PlaybackError(
                f"error playing audio, exit status {proc.returncode}: {err.decode(errors='replace').strip()}"
            )


async def emit_progress(
    total: int,
    progress: "asyncio.Queue[PlaybackProgress | None]",
    tick: float = PROGRESS_TICK_SECONDS,
) -> None:
    """Emit {i, total} once per tick for i in 0..total-1, then {total, total}.

    A wall-clock timer: it knows nothing about the decoder's real position.
    """
    for i in range(total):
        await progress.put(PlaybackProgress(current=i, total=total))
        await asyncio.sleep(tick)
    await progress.put(PlaybackProgress(current=total, total=total))


class PlaybackStage:
    """Consume the hand-off queue in FIFO order until its None marker.

    player needs an async play(bytes); probe an async callable returning
    whole seconds for the given bytes. Both are swappable for tests.
    """

    def __init__(
        self,
        audio: "asyncio.Queue[AudioArtifact | None]",
        progress: "asyncio.Queue[PlaybackProgress | None]",
        player=None,
        probe=probe_bytes,
        tick: float = PROGRESS_TICK_SECONDS,
    ):
        self._audio = audio
        self._progress = progress
        self._player = player if player is not None else FfplayPlayer()
        self._probe = probe
        self._tick = tick

    async def play_artifact(self, artifact: AudioArtifact) -> None:
        total = await self._probe(artifact.data)
        logger.info("Playing segment %d (%ds)", artifact.sequence_index, total)

        emitter = asyncio.create_task(emit_progress(total, self._progress, self._tick))
        try:
            await self._player.play(artifact.data)
            # ticks for the next artifact must not interleave with these
            await emitter
        except BaseException:
            emitter.cancel()
            await asyncio.gather(emitter, return_exceptions=True)
            raise

    async def run(self) -> None:
        while True:
            artifact = await self._audio.get()
            if artifact is None:
                break
            await self.play_artifact(artifact)
        await self._progress.put(None)
