"""Cancellation against a real unix socket daemon stand-in.

The fake daemon accepts one request and then goes quiet, either after
sending response headers or without answering at all, so the client is
left blocked on a real socket read.
"""

import os
import shutil
import socket
import tempfile
import threading
import time
from urllib.parse import quote

import pytest

from config import ClientConfig
from container_logs import LogOptions, container_logs
from docker_client import DockerClient
from errors import Cancelled

HOLD_SECONDS = 4.0
CANCEL_AFTER = 0.3
PROMPT = 1.0

STREAM_HEADERS = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: application/vnd.docker.multiplexed-stream\r\n"
    b"Transfer-Encoding: chunked\r\n"
    b"\r\n"
)


class QuietDaemon:
    def __init__(self, send_headers: bool) -> None:
        # unix socket paths are limited to ~100 bytes, keep the directory short
        self.dir = tempfile.mkdtemp(prefix="dl-")
        self.path = os.path.join(self.dir, "docker.sock")
        self.send_headers = send_headers
        self.stop = threading.Event()
        self.server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.server.bind(self.path)
        self.server.listen(1)
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    @property
    def base_url(self) -> str:
        return "http+unix://" + quote(self.path, safe="")

    def _serve(self) -> None:
        conn, _ = self.server.accept()
        with conn:
            request = b""
            while b"\r\n\r\n" not in request:
                data = conn.recv(4096)
                if not data:
                    return
                request += data
            if self.send_headers:
                conn.sendall(STREAM_HEADERS)
            self.stop.wait(HOLD_SECONDS)

    def close(self) -> None:
        self.stop.set()
        self.server.close()
        shutil.rmtree(self.dir, ignore_errors=True)


@pytest.fixture
def daemon_factory():
    daemons = []

    def make(send_headers: bool) -> QuietDaemon:
        daemon = QuietDaemon(send_headers)
        daemons.append(daemon)
        return daemon

    yield make
    for daemon in daemons:
        daemon.close()


def _cancel_soon() -> threading.Event:
    cancel = threading.Event()
    timer = threading.Timer(CANCEL_AFTER, cancel.set)
    timer.daemon = True
    timer.start()
    return cancel


def test_cancel_unblocks_quiet_follow_stream(daemon_factory):
    daemon = daemon_factory(send_headers=True)
    options = LogOptions(show_stdout=True, show_stderr=True, follow=True)

    with DockerClient(ClientConfig(base_url=daemon.base_url)) as client:
        cancel = _cancel_soon()
        started = time.monotonic()
        with pytest.raises(Cancelled):
            with container_logs(client, "c1", options, cancel=cancel) as stream:
                stream.read()
        elapsed = time.monotonic() - started

    assert elapsed < CANCEL_AFTER + PROMPT


def test_cancel_unblocks_request_without_response(daemon_factory):
    daemon = daemon_factory(send_headers=False)
    options = LogOptions(show_stdout=True, follow=True)

    with DockerClient(ClientConfig(base_url=daemon.base_url)) as client:
        cancel = _cancel_soon()
        started = time.monotonic()
        with pytest.raises(Cancelled):
            container_logs(client, "c1", options, cancel=cancel)
        elapsed = time.monotonic() - started

    assert elapsed < CANCEL_AFTER + PROMPT


def test_cancel_unblocks_inspect_without_response(daemon_factory):
    daemon = daemon_factory(send_headers=False)

    with DockerClient(ClientConfig(base_url=daemon.base_url)) as client:
        cancel = _cancel_soon()
        started = time.monotonic()
        with pytest.raises(Cancelled):
            client.inspect_container("c1", cancel=cancel)
        elapsed = time.monotonic() - started

    assert elapsed < CANCEL_AFTER + PROMPT
