"""Full-screen terminal dashboard: playback gauge on top, rolling log below.

Two reader loops (progress ticks, log lines) run as background tasks of the
prompt_toolkit application. The application ends on q/Q or when the shared
cancellation event is set, which is how a fatal error in a background stage
unblocks a process otherwise waiting on keyboard input.
"""

import asyncio
import logging
import sys
from collections import deque

from prompt_toolkit.application import Application
from prompt_toolkit.data_structures import Point
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout
from prompt_toolkit.layout.containers import HSplit, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.widgets import Frame, ProgressBar

from polly_reader.constants import DIAGNOSTICS_LOG, LOG_BUFFER_LINES, QUIT_KEYS
from polly_reader.models import PlaybackProgress

logger = logging.getLogger(__name__)


def open_diagnostics_log(path: str = DIAGNOSTICS_LOG) -> logging.Logger:
    """Side channel for dashboard rendering errors.

    Built once at startup and handed to Dashboard. It does not propagate to
    the process log, and falls back to stderr if path cannot be opened.
    """
    diagnostics = logging.getLogger("polly_reader.diagnostics")
    diagnostics.propagate = False
    diagnostics.setLevel(logging.INFO)
    for handler in diagnostics.handlers[:]:
        diagnostics.removeHandler(handler)
        handler.close()
    try:
        handler = logging.FileHandler(path, mode="a")
    except OSError:
        logger.info("Failed to log to file %s, using default stderr", path)
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    diagnostics.addHandler(handler)
    return diagnostics


class Dashboard:
    """Gauge + log pane inside a bordered "PRESS Q TO QUIT" container.

    input/output default to the real terminal. The CLI passes an input bound
    to the controlling tty because stdin may be the piped text; tests pass a
    pipe input and DummyOutput.
    """

    def __init__(
        self,
        diagnostics: logging.Logger,
        max_log_lines: int = LOG_BUFFER_LINES,
        input=None,
        output=None,
    ):
        self.diagnostics = diagnostics
        self.lines: deque[str] = deque(maxlen=max_log_lines)
        self.progress = PlaybackProgress(current=0, total=0)

        self.gauge = ProgressBar()
        self.gauge.percentage = 0

        log_control = FormattedTextControl(
            self._log_text,
            focusable=False,
            get_cursor_position=lambda: Point(x=0, y=max(0, len(self.lines) - 1)),
        )
        root = Frame(
            HSplit([
                Frame(self.gauge, title=self._gauge_title),
                Frame(Window(log_control, wrap_lines=True), title="Logs"),
            ]),
            title="PRESS Q TO QUIT",
        )

        kb = KeyBindings()
        for key in QUIT_KEYS:
            kb.add(key)(self._on_quit)
        kb.add("c-c")(self._on_quit)

        self.app = Application(
            layout=Layout(root),
            key_bindings=kb,
            full_screen=True,
            mouse_support=False,
            input=input,
            output=output,
        )

    def _gauge_title(self) -> str:
        return f"Section progress {self.progress.current}s / {self.progress.total}s"

    def _log_text(self) -> str:
        return "\n".join(self.lines)

    def _on_quit(self, event) -> None:
        self.exit()

    def exit(self) -> None:
        """Stop the render loop if it is still running."""
        future = self.app.future
        if self.app.is_running and future is not None and not future.done():
            self.app.exit()

    def set_progress(self, progress: PlaybackProgress) -> None:
        try:
            self.progress = progress
            self.gauge.percentage = progress.percent
            self.app.invalidate()
        except Exception as e:
            self.diagnostics.error("Progress: %s, err: %s", progress, e)

    def write_log(self, line: str) -> None:
        try:
            self.lines.append(line.rstrip("\n"))
            self.app.invalidate()
        except Exception as e:
            self.diagnostics.error("Log: %s, err: %s", line, e)

    async def _read_progress(self, progress: "asyncio.Queue[PlaybackProgress | None]") -> None:
        while True:
            item = await progress.get()
            if item is None:
                return
            self.set_progress(item)

    async def _read_logs(self, logs: "asyncio.Queue[str | None]") -> None:
        while True:
            line = await logs.get()
            if line is None:
                return
            self.write_log(line)

    async def _exit_on(self, cancelled: asyncio.Event) -> None:
        await cancelled.wait()
        logger.debug("Cancellation observed, closing dashboard")
        self.exit()

    async def run(
        self,
        progress: "asyncio.Queue[PlaybackProgress | None]",
        logs: "asyncio.Queue[str | None]",
        cancelled: asyncio.Event,
    ) -> None:
        """Render until q/Q or cancellation; the terminal is restored on return."""
        if cancelled.is_set():
            return

        def start() -> None:
            self.app.create_background_task(self._read_progress(progress))
            self.app.create_background_task(self._read_logs(logs))
            self.app.create_background_task(self._exit_on(cancelled))

        await self.app.run_async(pre_run=start, set_exception_handler=False)
