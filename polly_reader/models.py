"""Data models for the synthesis and playback pipeline."""

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TextSegment:
    content: str
    sequence_index: int


class TaskState(enum.Enum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SynthesisTask:
    handle: str
    state: TaskState = TaskState.SUBMITTED
    status: str = ""          # raw backend status, shown in log lines
    location: str | None = None
    reason: str | None = None

    @property
    def terminal(self) -> bool:
        return self.state in (TaskState.COMPLETED, TaskState.FAILED)


@dataclass
class AudioArtifact:
    key: str                  # remote storage key, already deleted by the time playback sees it
    data: bytes = field(repr=False)
    sequence_index: int = 0


@dataclass(frozen=True)
class PlaybackProgress:
    current: int
    total: int

    @property
    def percent(self) -> int:
        """Whole percentage of current/total; 0 when either side is 0."""
        if self.current <= 0 or self.total <= 0:
            return 0
        return min(100, int(self.current / self.total * 100))

    def __str__(self) -> str:
        return f"{self.current}/{self.total}"


@dataclass
class RunConfig:
    bucket: str
    profile: str
    region: str
    voice: str
    max_words: int
    output_file: str | None = None   # set: write audio to a file instead of playing it
    input_file: str | None = None
