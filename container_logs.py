"""Docker container logs retrieval.

container_logs() returns the live log body of a container as a LogStream.
The body comes in one of two formats:

If the container uses a TTY there is a single stream and the bytes are the
container's output verbatim, with no framing.

If the container does not use a TTY, stdout and stderr are multiplexed into
frames of the form:

    [8]byte{STREAM_TYPE, 0, 0, 0, SIZE1, SIZE2, SIZE3, SIZE4}[]byte{OUTPUT}

where STREAM_TYPE is 1 for stdout and 2 for stderr and SIZE1-4 encode the
length of OUTPUT as a big-endian uint32. stdcopy.std_copy() demultiplexes it.

container_logs_string() handles both cases and returns the logs as text.
"""

import io
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Dict, Optional

from docker_client import DockerClient, container_path
from errors import CopyError, InvalidTimestamp, NotFound
from log_stream import LogStream
from logger import container_logger
from stdcopy import std_copy
from timestamps import get_timestamp


@dataclass(frozen=True)
class LogOptions:
    """Options for the logs endpoint.

    Attributes:
        show_stdout: Include the stdout stream
        show_stderr: Include the stderr stream
        since: Only logs after this time ("10m", RFC3339 date or unix time)
        until: Only logs before this time, same formats as since
        timestamps: Prefix every line with its timestamp
        details: Include extra attributes given to the log driver
        follow: Keep the stream open and deliver new output as it arrives
        tail: Number of lines from the end to return, or "all"
    """

    show_stdout: bool = False
    show_stderr: bool = False
    since: str = ""
    until: str = ""
    timestamps: bool = False
    details: bool = False
    follow: bool = False
    tail: str = "all"


def _resolve(field: str, value: str, now: datetime) -> str:
    try:
        return get_timestamp(value, now)
    except ValueError as e:
        raise InvalidTimestamp(field, value, str(e)) from e


def _copy_raw(sink: BinaryIO, stream: LogStream) -> int:
    written = 0
    for chunk in stream.iter_chunks():
        try:
            sink.write(chunk)
        except OSError as e:
            raise CopyError(f"failed to write log output: {e}") from e
        written += len(chunk)
    return written


def build_logs_query(options: LogOptions, now: Optional[datetime] = None) -> Dict[str, str]:
    """Translate LogOptions into query parameters for /containers/{id}/logs.

    Only enabled flags are sent; tail is always sent.

    Raises:
        InvalidTimestamp: if since or until cannot be parsed
    """
    now = now or datetime.now().astimezone()
    query: Dict[str, str] = {}

    if options.show_stdout:
        query["stdout"] = "1"
    if options.show_stderr:
        query["stderr"] = "1"
    if options.since:
        query["since"] = _resolve("since", options.since, now)
    if options.until:
        query["until"] = _resolve("until", options.until, now)
    if options.timestamps:
        query["timestamps"] = "1"
    if options.details:
        query["details"] = "1"
    if options.follow:
        query["follow"] = "1"
    query["tail"] = str(options.tail)

    return query


def container_logs(
    client: DockerClient,
    container: str,
    options: Optional[LogOptions] = None,
    cancel: Optional[threading.Event] = None,
    now: Optional[datetime] = None,
) -> LogStream:
    """Open the log stream of a container.

    It's up to the caller to close the returned stream. Nothing is retried
    here; transient failures are left to the caller.

    Args:
        client: Client handle for the daemon
        container: Container ID or name
        options: Logging options; defaults to stdout and stderr with the
            configured tail
        cancel: Event that aborts the request and any blocked read once set
        now: Reference time for relative since/until values

    Returns:
        LogStream: The live response body

    Raises:
        InvalidTimestamp: before any request, if since/until is malformed
        NotFound: if the container does not exist
        RequestError: on any other transport or HTTP failure
        Cancelled: if cancel is already set
    """
    log = container_logger(container)
    if options is None:
        options = LogOptions(show_stdout=True, show_stderr=True, tail=client.config.default_tail)

    query = build_logs_query(options, now)

    if not container:
        raise NotFound("container", container, status_code=None)

    log.debug("Requesting logs (follow=%s, tail=%s)", options.follow, options.tail)
    response = client.get(
        container_path(container, "/logs"),
        query,
        stream=True,
        resource="container",
        identifier=container,
        cancel=cancel,
    )
    return LogStream(response, chunk_size=client.config.chunk_size, cancel=cancel, name=container)


def container_logs_string(
    client: DockerClient,
    container: str,
    options: Optional[LogOptions] = None,
    cancel: Optional[threading.Event] = None,
    now: Optional[datetime] = None,
) -> str:
    """Return container logs as a single string.

    Works whether or not the container carries the TTY flag: framed output
    is demultiplexed, raw TTY output is copied as is. stdout and stderr end
    up interleaved in one string in the order the daemon sent them. Call
    container_logs() directly to keep the two streams apart.

    The log stream is always closed before returning, including on error.
    """
    log = container_logger(container)
    info = client.inspect_container(container, cancel=cancel)

    buf = io.BytesIO()
    with container_logs(client, container, options, cancel=cancel, now=now) as stream:
        if info.tty:
            _copy_raw(buf, stream)
        else:
            std_copy(buf, buf, stream.iter_chunks())

    log.debug("Read %d bytes of logs (tty=%s)", buf.tell(), info.tty)
    return buf.getvalue().decode("utf-8", errors="replace")
