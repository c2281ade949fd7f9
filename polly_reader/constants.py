"""All magic numbers and configuration constants."""

DEFAULT_VOICE = "Matthew"                    # Polly voice used when --voice is not given
DEFAULT_PROFILE = "default"                  # AWS shared-config profile
DEFAULT_REGION = "us-west-2"                 # AWS region for Polly and S3
OUTPUT_FORMAT = "mp3"                        # Polly output format
MAX_WORDS = 20_000                           # words per segment before a cut is attempted
POLL_INTERVAL_SECONDS = 5                    # seconds between synthesis task polls
AUDIO_QUEUE_SIZE = 5                         # artifacts synthesized ahead of playback
PROGRESS_TICK_SECONDS = 1.0                  # progress emitter period
LOG_BUFFER_LINES = 200                       # lines kept in the dashboard log pane
QUIT_KEYS = ("q", "Q")
FFMPEG_BIN = "ffmpeg"                        # duration probe and pydub decoder
FFPLAY_BIN = "ffplay"                        # PCM output
PLAYBACK_CHUNK_BYTES = 64 * 1024             # PCM bytes written to ffplay per drain
DIAGNOSTICS_LOG = "dashboard_error.log"      # dashboard rendering errors
LOG_FILE = "polly_reader.log"                # process log (the dashboard owns the terminal)
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
VERSION = "0.1.0"
