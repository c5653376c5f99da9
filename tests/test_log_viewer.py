from conftest import frame, inspect_body, make_response
from container_logs import LogOptions
from log_viewer import LogBuffer, LogViewerApp, colorize_log


def test_feed_splits_lines_and_keeps_partial():
    buf = LogBuffer()
    buf.feed(b"one\ntw")
    buf.feed(b"o\r\nthree")

    assert buf.snapshot() == [("stdout", "one"), ("stdout", "two")]

    buf.flush()
    assert buf.snapshot()[-1] == ("stdout", "three")


def test_partial_lines_are_tracked_per_stream():
    buf = LogBuffer()
    buf.feed(b"out-", "stdout")
    buf.feed(b"err\n", "stderr")
    buf.feed(b"done\n", "stdout")

    assert buf.snapshot() == [("stderr", "err"), ("stdout", "out-done")]


def test_buffer_is_bounded():
    buf = LogBuffer(max_lines=3)
    for i in range(5):
        buf.append(f"line {i}")

    assert [text for _, text in buf.snapshot()] == ["line 2", "line 3", "line 4"]


def test_filter_is_case_insensitive():
    buf = LogBuffer()
    buf.feed(b"GET /health 200\nPOST /login 500\nget /metrics 200\n")

    assert [text for _, text in buf.snapshot("get")] == ["GET /health 200", "get /metrics 200"]


def test_colorize_marks_stderr_and_levels():
    assert colorize_log("something", "stderr").style == "red"
    assert colorize_log("WARN disk almost full").style == "yellow"
    assert colorize_log("plain").style == ""


def test_colorize_highlights_filter():
    text = colorize_log("Error: boom", highlight="boom")
    assert any(span.style == "reverse bold" for span in text.spans)


# ----- Streaming worker -----

def _viewer(client):
    return LogViewerApp("c1", client=client, options=LogOptions(show_stdout=True, show_stderr=True))


def _route(session, inspect, logs):
    def get(url, stream=False):
        return inspect if url.split("?")[0].endswith("/json") else logs

    session.get.side_effect = get


def test_worker_demuxes_framed_output(client, session):
    logs = make_response(200, chunks=[frame(1, b"hello\nwor"), frame(2, b"oops\n"), frame(1, b"ld\n")])
    _route(session, make_response(200, json_body=inspect_body(tty=False)), logs)
    app = _viewer(client)

    app.stream_logs()

    assert app.log_buffer.snapshot() == [("stdout", "hello"), ("stderr", "oops"), ("stdout", "world")]
    logs.close.assert_called_once()


def test_worker_feeds_tty_output_as_is(client, session):
    logs = make_response(200, chunks=[b"first\nsec", b"ond"])
    _route(session, make_response(200, json_body=inspect_body(tty=True)), logs)
    app = _viewer(client)

    app.stream_logs()

    assert app.log_buffer.snapshot() == [("stdout", "first"), ("stdout", "second")]


def test_worker_reports_errors_in_buffer(client, session):
    session.get.return_value = make_response(404, json_body={"message": "No such container: c1"})
    app = _viewer(client)

    app.stream_logs()

    assert app.log_buffer.snapshot() == [("stderr", "Error streaming logs: No such container: c1")]


def test_worker_stops_quietly_when_cancelled(client, session):
    app = _viewer(client)
    app.stop_event.set()

    app.stream_logs()

    assert app.log_buffer.snapshot() == []
    session.get.assert_not_called()
