"""Terminal viewer that follows a container's logs.

A worker thread reads the log stream through container_logs() and feeds a
bounded LogBuffer; the UI redraws from the buffer on a timer. Framed output
is demultiplexed so stderr lines can be shown differently from stdout.
"""

import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Footer, Input, Static

from container_logs import LogOptions, container_logs
from docker_client import DockerClient
from errors import Cancelled, DockerLogsError
from logger import container_logger
from stdcopy import STREAM_STDERR, iter_frames

MAX_LINES = 1000
VISIBLE_LINES = 200

LogLine = Tuple[str, str]  # (stream, text)


class LogBuffer:
    """Bounded buffer of decoded log lines.

    Incoming bytes are split on newlines; an incomplete trailing line is held
    per stream until the rest of it arrives.
    """

    def __init__(self, max_lines: int = MAX_LINES) -> None:
        self.lines: Deque[LogLine] = deque(maxlen=max_lines)
        self._partial: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def feed(self, data: bytes, stream: str = "stdout") -> None:
        with self._lock:
            data = self._partial.pop(stream, b"") + data
            *complete, rest = data.split(b"\n")
            for raw in complete:
                self.lines.append((stream, raw.rstrip(b"\r").decode("utf-8", errors="replace")))
            if rest:
                self._partial[stream] = rest

    def flush(self) -> None:
        with self._lock:
            for stream, rest in self._partial.items():
                self.lines.append((stream, rest.decode("utf-8", errors="replace")))
            self._partial.clear()

    def append(self, text: str, stream: str = "stdout") -> None:
        with self._lock:
            self.lines.append((stream, text))

    def snapshot(self, filter_text: str = "", limit: int = VISIBLE_LINES) -> List[LogLine]:
        """Return the most recent lines, keeping only those containing filter_text."""
        with self._lock:
            lines = list(self.lines)
        if filter_text:
            needle = filter_text.lower()
            lines = [line for line in lines if needle in line[1].lower()]
        return lines[-limit:]


def colorize_log(line: str, stream: str = "stdout", highlight: str = "") -> Text:
    upper = line.upper()
    style = ""
    if stream == "stderr" or "ERROR" in upper or "FATAL" in upper:
        style = "red"
    elif "WARN" in upper:
        style = "yellow"
    elif "INFO" in upper:
        style = "green"
    elif "DEBUG" in upper:
        style = "blue"

    text = Text(line, style=style)
    if highlight:
        text.highlight_words([highlight], style="reverse bold", case_sensitive=False)
    return text


class LogViewerApp(App):
    CSS = """
    #log-scroll { height: 1fr; }
    #log-filter.hidden { display: none; }
    """
    BINDINGS = [
        Binding("/", "focus_filter", "Filter Logs"),
        Binding("escape", "clear_filter", "Clear Filter", key_display="ESC"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        container_id: str,
        client: Optional[DockerClient] = None,
        options: Optional[LogOptions] = None,
    ) -> None:
        super().__init__()
        self.container_id = container_id
        self.docker_client = client or DockerClient()
        self.log_options = options or LogOptions(
            show_stdout=True, show_stderr=True, follow=True, timestamps=True, tail="100"
        )
        self.log_buffer = LogBuffer()
        self.stop_event = threading.Event()
        self.filter_text = ""
        self.ctx_logger = container_logger(container_id)

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="log-scroll"):
            yield Static("", id="log-output")
        yield Input(placeholder="Filter logs...", id="log-filter", classes="hidden")
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"logs: {self.container_id}"
        self.set_interval(0.5, self.refresh_logs, name="log_ui")
        self.run_worker(self.stream_logs, group="logs", thread=True)

    def on_unmount(self) -> None:
        self.stop_event.set()

    async def action_quit(self) -> None:
        # unblock the streaming thread before the app waits on its workers
        self.stop_event.set()
        self.exit()

    def stream_logs(self) -> None:
        try:
            info = self.docker_client.inspect_container(self.container_id, cancel=self.stop_event)
            stream = container_logs(
                self.docker_client, self.container_id, self.log_options, cancel=self.stop_event
            )
            with stream:
                if info.tty:
                    for chunk in stream.iter_chunks():
                        self.log_buffer.feed(chunk)
                else:
                    for frame in iter_frames(stream.iter_chunks()):
                        name = "stderr" if frame.stream_type == STREAM_STDERR else "stdout"
                        self.log_buffer.feed(frame.payload, name)
            self.log_buffer.flush()
        except Cancelled:
            self.ctx_logger.debug("Log streaming cancelled")
        except DockerLogsError as e:
            self.ctx_logger.warning("Log streaming failed: %s", e)
            self.log_buffer.append(f"Error streaming logs: {e}", "stderr")

    def refresh_logs(self) -> None:
        scroll_view = self.query_one("#log-scroll", VerticalScroll)
        log_output = self.query_one("#log-output", Static)
        at_bottom = scroll_view.scroll_y + scroll_view.size.height >= scroll_view.virtual_size.height - 1

        rendered = Text("\n").join(
            colorize_log(line, stream, self.filter_text)
            for stream, line in self.log_buffer.snapshot(self.filter_text)
        )
        log_output.update(rendered)
        if at_bottom:
            scroll_view.scroll_end(animate=False)

    def action_focus_filter(self) -> None:
        filter_input = self.query_one("#log-filter", Input)
        filter_input.remove_class("hidden")
        self.set_focus(filter_input)

    def action_clear_filter(self) -> None:
        filter_input = self.query_one("#log-filter", Input)
        filter_input.value = ""
        filter_input.add_class("hidden")
        self.filter_text = ""
        self.set_focus(None)
        self.refresh_logs()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "log-filter":
            self.filter_text = event.value
            self.refresh_logs()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "log-filter":
            event.input.add_class("hidden")
            self.set_focus(None)
