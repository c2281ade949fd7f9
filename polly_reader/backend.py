"""Amazon Polly synthesis tasks and S3 result storage via boto3.

Everything here is blocking; the pipeline stages call it through
asyncio.to_thread(). botocore errors are translated to BackendError so the
stages only ever see the pipeline error taxonomy.
"""

import logging
from urllib.parse import urlparse

import boto3
import botocore.session
from botocore.exceptions import BotoCoreError, ClientError, ProfileNotFound

from polly_reader.constants import OUTPUT_FORMAT, DEFAULT_VOICE
from polly_reader.errors import BackendError, ConfigError
from polly_reader.models import SynthesisTask, TaskState

logger = logging.getLogger(__name__)

# Polly TaskStatus values -> pipeline task states
_STATUS_MAP = {
    "scheduled": TaskState.RUNNING,
    "inProgress": TaskState.RUNNING,
    "completed": TaskState.COMPLETED,
    "failed": TaskState.FAILED,
}

_AWS_ERRORS = (BotoCoreError, ClientError)


def known_voices() -> list[str]:
    """Polly VoiceId enumeration from botocore's bundled service model."""
    model = botocore.session.get_session().get_service_model("polly")
    return list(model.shape_for("VoiceId").enum)


def validate_voice(voice: str) -> None:
    """Raise ConfigError unless voice is the default or a known Polly voice."""
    if voice == DEFAULT_VOICE:
        return
    if voice not in known_voices():
        raise ConfigError(f"VoiceID: {voice} is not an AWS Polly VoiceID")


def parse_result_uri(uri: str) -> tuple[str, str]:
    """Split a Polly OutputUri into (bucket, key).

    "https://s3.us-west-2.amazonaws.com/my-bucket/abc.mp3" -> ("my-bucket", "abc.mp3")
    The path must have exactly three components ("", bucket, key).
    """
    path = urlparse(uri).path.split("/")
    if len(path) != 3 or not path[1] or not path[2]:
        raise BackendError(f"s3 path is not three elements: {len(path)}, {path}")
    return path[1], path[2]


def create_session(profile: str, region: str) -> boto3.Session:
    try:
        return boto3.Session(profile_name=profile, region_name=region)
    except ProfileNotFound as e:
        raise ConfigError(f"failed to load SDK configuration, {e}") from e


class PollyBackend:
    """Submit text to Polly and poll the resulting task."""

    def __init__(self, client, bucket: str):
        self._client = client
        self._bucket = bucket

    def submit(self, text: str, voice: str) -> SynthesisTask:
        try:
            resp = self._client.start_speech_synthesis_task(
                OutputFormat=OUTPUT_FORMAT,
                OutputS3BucketName=self._bucket,
                Text=text,
                VoiceId=voice,
            )
        except _AWS_ERRORS as e:
            raise BackendError(f"failed to convert to speech, {e}") from e
        task = resp["SynthesisTask"]
        logger.debug("Submitted synthesis task %s", task["TaskId"])
        return SynthesisTask(handle=task["TaskId"], status=task.get("TaskStatus", ""))

    def poll(self, handle: str) -> SynthesisTask:
        try:
            resp = self._client.get_speech_synthesis_task(TaskId=handle)
        except _AWS_ERRORS as e:
            raise BackendError(f"failed to get task status, {e}") from e
        task = resp["SynthesisTask"]
        status = task["TaskStatus"]
        if status not in _STATUS_MAP:
            raise BackendError(f"unknown task status {status!r} for task {handle}")
        return SynthesisTask(
            handle=handle,
            state=_STATUS_MAP[status],
            status=status,
            location=task.get("OutputUri"),
            reason=task.get("TaskStatusReason"),
        )


class S3Store:
    """Fetch and delete synthesis results in the configured bucket."""

    def __init__(self, client, bucket: str):
        self._client = client
        self.bucket = bucket

    def get(self, key: str) -> bytes:
        try:
            obj = self._client.get_object(Bucket=self.bucket, Key=key)
            return obj["Body"].read()
        except _AWS_ERRORS as e:
            raise BackendError(f"failed to get s3://{self.bucket}/{key}, {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except _AWS_ERRORS as e:
            raise BackendError(f"error deleting s3 file s3://{self.bucket}/{key}, {e}") from e
        logger.debug("Deleted s3://%s/%s", self.bucket, key)


def create_backend(profile: str, region: str, bucket: str) -> tuple[PollyBackend, S3Store]:
    """Build the Polly and S3 wrappers from one shared-config session."""
    session = create_session(profile, region)
    try:
        polly = session.client("polly")
        s3 = session.client("s3")
    except _AWS_ERRORS as e:
        raise ConfigError(f"failed to load SDK configuration, {e}") from e
    return PollyBackend(polly, bucket), S3Store(s3, bucket)
