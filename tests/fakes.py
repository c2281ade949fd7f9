"""In-memory stand-ins for Polly, S3, the audio player and the dashboard."""

import asyncio

from polly_reader.models import SynthesisTask, TaskState


class FakeBackend:
    """Each task polls as inProgress running_polls times, then completes.

    fail_reason makes every task end FAILED instead.
    """

    def __init__(self, running_polls=0, fail_reason=None, submit_error=None, bucket="test-bucket"):
        self.running_polls = running_polls
        self.fail_reason = fail_reason
        self.submit_error = submit_error
        self.bucket = bucket
        self.submitted = []
        self.polls = []
        self._remaining = {}

    def submit(self, text, voice):
        if self.submit_error is not None:
            raise self.submit_error
        handle = f"task-{len(self.submitted)}"
        self.submitted.append((text, voice))
        self._remaining[handle] = self.running_polls
        return SynthesisTask(handle=handle, status="scheduled")

    def poll(self, handle):
        self.polls.append(handle)
        if self._remaining[handle] > 0:
            self._remaining[handle] -= 1
            return SynthesisTask(handle=handle, state=TaskState.RUNNING, status="inProgress")
        if self.fail_reason:
            return SynthesisTask(handle=handle, state=TaskState.FAILED, status="failed", reason=self.fail_reason)
        return SynthesisTask(
            handle=handle,
            state=TaskState.COMPLETED,
            status="completed",
            location=f"https://s3.us-west-2.amazonaws.com/{self.bucket}/{handle}.mp3",
        )


class FakeStore:
    def __init__(self, delete_error=None):
        self.fetched = []
        self.deleted = []
        self.delete_error = delete_error

    def get(self, key):
        self.fetched.append(key)
        return f"audio:{key}".encode()

    def delete(self, key):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(key)


class FakePlayer:
    """Records start/end of each play call; optionally fails on one payload."""

    def __init__(self, seconds=0.0, fail_on=None, error=None):
        self.seconds = seconds
        self.fail_on = fail_on
        self.error = error
        self.events = []

    async def play(self, data):
        self.events.append(("start", data))
        if self.fail_on is not None and data == self.fail_on:
            raise self.error
        await asyncio.sleep(self.seconds)
        self.events.append(("end", data))

    @property
    def played(self):
        return [data for kind, data in self.events if kind == "end"]


async def zero_probe(data):
    return 0


class DrainingDashboard:
    """Reads both queues to their None markers, then returns like a user quit."""

    def __init__(self):
        self.lines = []
        self.ticks = []

    async def run(self, progress, logs, cancelled):
        async def drain(queue, into):
            while True:
                item = await queue.get()
                if item is None:
                    return
                into.append(item)

        await asyncio.gather(drain(progress, self.ticks), drain(logs, self.lines))


class BlockingDashboard:
    """Never quits on its own: returns only once cancelled is set."""

    def __init__(self):
        self.saw_cancel = False

    async def run(self, progress, logs, cancelled):
        await cancelled.wait()
        self.saw_cancel = True


class FakeStdin:
    """Collects everything written to a subprocess's stdin."""

    def __init__(self):
        self.chunks = []
        self.closed = False

    def write(self, data):
        self.chunks.append(bytes(data))

    async def drain(self):
        await asyncio.sleep(0)

    def close(self):
        self.closed = True

    @property
    def data(self):
        return b"".join(self.chunks)


class FakeStderr:
    def __init__(self, output):
        self.output = output

    async def read(self):
        return self.output


class FakeProcess:
    """asyncio subprocess stand-in. hang=True blocks until kill()."""

    def __init__(self, output=b"", returncode=0, hang=False):
        self.output = output
        self.returncode = returncode
        self.hang = hang
        self.killed = False
        self.input = None
        self.stdin = FakeStdin()
        self.stderr = FakeStderr(output)

    async def _block(self):
        while self.hang and not self.killed:
            await asyncio.sleep(0.01)

    async def communicate(self, input=None):
        self.input = input
        await self._block()
        return self.output, self.output

    def kill(self):
        self.killed = True

    async def wait(self):
        await self._block()
        return self.returncode
