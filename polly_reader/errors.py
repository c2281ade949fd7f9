"""Pipeline error taxonomy. Every fatal condition is a PipelineError."""


class PipelineError(RuntimeError):
    """Terminal error: the first one raised cancels the whole run."""


class ConfigError(PipelineError):
    """Bad command-line configuration, detected before the pipeline starts."""


class BackendError(PipelineError):
    """Polly or S3 call failed, or a synthesis task reported failure."""


class StorageIOError(PipelineError):
    """Local file write, temp-file create or delete failed."""


class ProbeError(PipelineError):
    """The duration probe exited non-zero or its output had no duration."""

    def __init__(self, message: str, output: str = "") -> None:
        if output:
            message = f"{message}, output: {output}"
        super().__init__(message)
        self.output = output


class PlaybackError(PipelineError):
    """Decoding or audio output failed."""
