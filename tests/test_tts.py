"""Tests for the synthesis stage (Layer 2)."""

import asyncio

import pytest

from fakes import FakeBackend, FakeStore
from polly_reader.errors import BackendError
from polly_reader.exporter import QueueSink
from polly_reader.models import AudioArtifact, TextSegment
from polly_reader.tts import SynthesisStage


def _drain(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def _run_stage(backend, store, segments, queue_size=5):
    async def run():
        audio = asyncio.Queue(maxsize=queue_size)
        logs = asyncio.Queue()
        stage = SynthesisStage(backend, store, QueueSink(audio), logs, "Matthew", poll_interval=0)
        await stage.run(segments)
        return _drain(audio), _drain(logs)

    return asyncio.run(run())


def test_artifacts_in_submission_order(backend, store, three_segments):
    audio, logs = _run_stage(backend, store, three_segments)

    assert audio[-1] is None
    artifacts = audio[:-1]
    assert [a.sequence_index for a in artifacts] == [0, 1, 2]
    assert [a.key for a in artifacts] == ["task-0.mp3", "task-1.mp3", "task-2.mp3"]
    assert artifacts[0].data == b"audio:task-0.mp3"
    assert [text for text, _ in backend.submitted] == ["Alpha one.", "Bravo two.", "Charlie three."]
    assert all(voice == "Matthew" for _, voice in backend.submitted)


def test_remote_objects_deleted(backend, store, three_segments):
    _run_stage(backend, store, three_segments)
    assert store.deleted == store.fetched == ["task-0.mp3", "task-1.mp3", "task-2.mp3"]


def test_log_lines_and_close_marker(backend, store, three_segments):
    _, logs = _run_stage(backend, store, three_segments)
    assert logs[0] == "Submitting segment 1/3"
    assert "Segment 3/3 ready (16 bytes)" in logs
    assert logs[-2] == "All segments synthesized."
    assert logs[-1] is None


def test_running_polls_are_logged(store):
    backend = FakeBackend(running_polls=2)
    segments = [TextSegment(content="Hello.", sequence_index=0)]
    _, logs = _run_stage(backend, store, segments)

    running = [line for line in logs if line and line.startswith("Synthesis running")]
    assert running == ["Synthesis running... status: inProgress, id: task-0"] * 2
    assert backend.polls == ["task-0"] * 3


def test_empty_segments_close_immediately(backend, store):
    audio, logs = _run_stage(backend, store, [])
    assert audio == [None]
    assert logs == ["All segments synthesized.", None]
    assert backend.submitted == []


def test_failed_task_raises_with_reason(store, three_segments):
    backend = FakeBackend(fail_reason="Invalid SSML")
    with pytest.raises(BackendError) as exc:
        _run_stage(backend, store, three_segments)
    assert str(exc.value) == "task failed: id: task-0; reason: Invalid SSML"
    assert store.fetched == []


def test_submit_error_propagates(store, three_segments):
    backend = FakeBackend(submit_error=BackendError("failed to convert to speech, denied"))
    with pytest.raises(BackendError, match="failed to convert to speech"):
        _run_stage(backend, store, three_segments)


def test_bad_result_uri(store, three_segments):
    class BadUriBackend(FakeBackend):
        def poll(self, handle):
            task = super().poll(handle)
            task.location = "https://s3.us-west-2.amazonaws.com/only-bucket"
            return task

    with pytest.raises(BackendError, match="s3 path is not three elements"):
        _run_stage(BadUriBackend(), store, three_segments)


def test_delete_error_stops_stage(backend, three_segments):
    store = FakeStore(delete_error=BackendError("error deleting s3 file"))
    with pytest.raises(BackendError, match="error deleting"):
        _run_stage(backend, store, three_segments)
    assert store.fetched == ["task-0.mp3"]


def test_synthesis_blocks_when_queue_full(backend, store):
    """With nobody consuming, synthesis stops after filling the queue."""
    segments = [TextSegment(content=f"Sentence {i}.", sequence_index=i) for i in range(7)]

    async def run():
        audio = asyncio.Queue(maxsize=5)
        logs = asyncio.Queue()
        stage = SynthesisStage(backend, store, QueueSink(audio), logs, "Matthew", poll_interval=0)
        task = asyncio.create_task(stage.run(segments))
        await asyncio.sleep(0.3)

        assert audio.full()
        assert len(store.fetched) == 6
        assert not task.done()

        received = []
        while True:
            artifact = await audio.get()
            if artifact is None:
                break
            received.append(artifact)
        await task
        return received

    received = asyncio.run(run())
    assert [a.sequence_index for a in received] == list(range(7))
    assert all(isinstance(a, AudioArtifact) for a in received)
