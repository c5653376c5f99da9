"""Read-once wrapper around a streaming logs response.

The body is exposed as a lazy sequence of byte chunks: finite for a
snapshot, unbounded in follow mode until the daemon or the caller closes it.
"""

import socket
import threading
from typing import Iterator, Optional

import requests
import urllib3

from errors import Cancelled, CopyError
from logger import log

CANCEL_POLL_INTERVAL = 0.1


def response_socket(response: requests.Response) -> Optional[socket.socket]:
    """Find the socket a streaming response is reading from.

    The urllib3 connection keeps it as ``sock`` unless http.client already
    handed it over to the response, in which case it sits behind the
    response's buffered reader.
    """
    raw = getattr(response, "raw", None)
    sock = getattr(getattr(raw, "_connection", None), "sock", None)
    if sock is None:
        fp = getattr(getattr(raw, "_fp", None), "fp", None)
        sock = getattr(getattr(fp, "raw", None), "_sock", None)
    return sock if isinstance(sock, socket.socket) else None


def shutdown_response(response: requests.Response) -> None:
    """Wake any thread blocked reading the response, then close it.

    Closing alone does not interrupt a recv() already waiting on the socket;
    shutting the socket down makes that recv() return end-of-stream.
    """
    sock = response_socket(response)
    if sock is not None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already disconnected
            pass
    response.close()


class LogStream:
    """Live log body returned by container_logs().

    The caller owns the stream and must close it, either explicitly or by
    using it as a context manager. When a cancellation event is supplied, a
    watcher thread shuts the connection down as soon as it is set so a read
    blocked on the socket returns promptly.
    """

    def __init__(
        self,
        response: requests.Response,
        chunk_size: int = 4096,
        cancel: Optional[threading.Event] = None,
        name: str = "",
    ) -> None:
        self.response = response
        self.chunk_size = chunk_size
        self.cancel = cancel
        self.name = name
        self.closed = False
        self._consumed = False
        self._lock = threading.Lock()
        self._watcher = None

        if cancel is not None:
            self._watcher = threading.Thread(
                target=self._watch_cancel, name=f"logs-cancel-{name}", daemon=True
            )
            self._watcher.start()

    def __enter__(self) -> "LogStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_chunks()

    def _watch_cancel(self) -> None:
        while not self.closed:
            if self.cancel.wait(CANCEL_POLL_INTERVAL):
                log.debug("Cancellation requested, shutting down log stream %s", self.name)
                self.close(shutdown=True)
                return

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield raw body chunks as they arrive.

        Raises:
            Cancelled: if the cancellation event is set
            CopyError: if the stream was already consumed or the transport fails
        """
        if self._consumed:
            raise CopyError("log stream has already been consumed")
        self._consumed = True

        if self._cancelled():
            self.close(shutdown=True)
            raise Cancelled()

        try:
            for chunk in self.response.iter_content(chunk_size=self.chunk_size):
                if self._cancelled():
                    raise Cancelled()
                if chunk:
                    yield chunk
        except (requests.RequestException, urllib3.exceptions.HTTPError, OSError) as e:
            # a shutdown by the watcher surfaces here as a broken stream
            if self._cancelled():
                raise Cancelled() from e
            raise CopyError(f"error reading log stream: {e}") from e
        except (AttributeError, ValueError) as e:
            # reading a response the watcher has already closed
            if self._cancelled():
                raise Cancelled() from e
            raise
        finally:
            if self._cancelled():
                self.close(shutdown=True)

        if self._cancelled():
            raise Cancelled()

    def read(self) -> bytes:
        """Drain the remaining stream into memory."""
        return b"".join(self.iter_chunks())

    def close(self, shutdown: bool = False) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
        log.debug("Closing log stream %s", self.name)
        if shutdown:
            shutdown_response(self.response)
        else:
            self.response.close()
