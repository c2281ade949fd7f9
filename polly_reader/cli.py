"""CLI interface: validate options, read the text, run the pipeline."""

import argparse
import asyncio
import logging
import shutil
import sys

from prompt_toolkit.input import create_input

from polly_reader.constants import (
    DEFAULT_PROFILE,
    DEFAULT_REGION,
    DEFAULT_VOICE,
    DIAGNOSTICS_LOG,
    FFMPEG_BIN,
    FFPLAY_BIN,
    LOG_DATE_FORMAT,
    LOG_FILE,
    LOG_FORMAT,
    MAX_WORDS,
    VERSION,
)
from polly_reader.backend import create_backend, validate_voice
from polly_reader.dashboard import Dashboard, open_diagnostics_log
from polly_reader.errors import ConfigError, PipelineError
from polly_reader.models import RunConfig
from polly_reader.pipeline import Pipeline
from polly_reader.segmenter import read_input, segment

logger = logging.getLogger(__name__)


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(1)


def _check_ffmpeg():
    """Verify ffmpeg and ffplay are installed (playback mode only)."""
    for binary in (FFMPEG_BIN, FFPLAY_BIN):
        if not shutil.which(binary):
            print(f"Error: {binary} is required but not found.", file=sys.stderr)
            print("Install with: brew install ffmpeg", file=sys.stderr)
            raise SystemExit(1)


def _setup_logging(log_file: str, verbose: bool) -> None:
    """Process log goes to a file: the dashboard owns the terminal."""
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    for lib in ("botocore", "boto3", "urllib3", "s3transfer"):
        logging.getLogger(lib).setLevel(logging.WARNING)


def build_config(args: argparse.Namespace) -> RunConfig:
    """Validate parsed options. Raises ConfigError before any network call."""
    bucket = (args.bucket or "").strip()
    if not bucket:
        raise ConfigError("s3 bucket not specified")
    validate_voice(args.voice)
    if args.max_words <= 0:
        raise ConfigError(f"--max-words must be positive, got {args.max_words}")

    output_file = (args.output or "").strip() or None
    input_file = (args.input or "").strip() or None
    return RunConfig(
        bucket=bucket,
        profile=args.profile,
        region=args.region,
        voice=args.voice,
        max_words=args.max_words,
        output_file=output_file,
        input_file=input_file,
    )


def read_text(config: RunConfig) -> str:
    """Text from --input when given, otherwise from stdin; trimmed."""
    if config.input_file:
        try:
            with open(config.input_file, encoding="utf-8") as f:
                return f.read().strip()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"cannot read input file {config.input_file}: {e}") from e
    try:
        return read_input(sys.stdin)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read input: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polly-reader",
        description="Read long text aloud with Amazon Polly, or save it as an MP3",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--bucket", default="", help="S3 bucket Polly writes the mp3 files to")
    parser.add_argument("--profile", default=DEFAULT_PROFILE, help="AWS profile to use")
    parser.add_argument("--region", default=DEFAULT_REGION, help="AWS region to use")
    parser.add_argument("--voice", default=DEFAULT_VOICE, help="Polly voice to use")
    parser.add_argument("--input", help="Path to the input text file; STDIN is ignored when set")
    parser.add_argument("--output", help="Save the mp3 to this path instead of playing it")
    parser.add_argument("--max-words", type=int, default=MAX_WORDS, help="Words per Polly request before cutting at a sentence end")
    parser.add_argument("--log-file", default=LOG_FILE, help="Process log file")
    parser.add_argument("--diagnostics-log", default=DIAGNOSTICS_LOG, help="Dashboard error log file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug-level process logging")
    return parser


def main():
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()
    _setup_logging(args.log_file, args.verbose)

    try:
        config = build_config(args)
        text = read_text(config)
    except ConfigError as e:
        _fail(str(e))

    if not text:
        return

    segments = segment(text, config.max_words)
    logger.info("Split %d words into %d segments", len(text.split()), len(segments))

    if config.output_file is None:
        _check_ffmpeg()

    try:
        backend, store = create_backend(config.profile, config.region, config.bucket)
    except ConfigError as e:
        _fail(str(e))

    # stdin may be the piped text; keys come from the controlling terminal
    dashboard = Dashboard(
        open_diagnostics_log(args.diagnostics_log),
        input=create_input(always_prefer_tty=True),
    )
    pipeline = Pipeline(backend, store, config.voice, dashboard, output_file=config.output_file)
    try:
        asyncio.run(pipeline.run(segments))
    except PipelineError as e:
        logger.error("Run failed: %s", e)
        _fail(str(e))
