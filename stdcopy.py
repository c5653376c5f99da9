"""Demultiplexing for Docker's framed stdout/stderr log stream.

When a container runs without a TTY the daemon interleaves stdout and stderr
on one connection. Each frame has an 8-byte header:
  - byte 0: stream type (0 = stdin, 1 = stdout, 2 = stderr, 3 = systemerr)
  - bytes 1-3: padding (zero)
  - bytes 4-7: payload length (big-endian uint32)

Frames are produced here in wire order, so writing stdout and stderr to the
same sink keeps the original interleaving.
"""

import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, Tuple

from errors import CopyError

STREAM_STDIN = 0
STREAM_STDOUT = 1
STREAM_STDERR = 2
STREAM_SYSTEMERR = 3
HEADER_SIZE = 8
_HEADER_FORMAT = ">BxxxI"  # 1 byte type, 3 padding, 4 byte length


@dataclass(frozen=True)
class Frame:
    stream_type: int
    payload: bytes


def parse_stream_header(header: bytes) -> Tuple[int, int]:
    """Parse an 8-byte frame header into (stream_type, payload_length)."""
    stream_type, payload_length = struct.unpack(_HEADER_FORMAT, header)
    return stream_type, payload_length


def iter_frames(chunks: Iterable[bytes]) -> Iterator[Frame]:
    """Yield frames from a lazy sequence of byte chunks.

    Chunks may split headers and payloads at any point. The sequence must end
    on a frame boundary.

    Raises:
        CopyError: on an unknown stream type, a daemon error frame or a
            stream that ends mid-frame
    """
    buf = bytearray()
    need = HEADER_SIZE
    stream_type = None

    for chunk in chunks:
        buf.extend(chunk)

        while len(buf) >= need:
            if stream_type is None:
                stream_type, need = parse_stream_header(bytes(buf[:HEADER_SIZE]))
                del buf[:HEADER_SIZE]
                if stream_type not in (STREAM_STDIN, STREAM_STDOUT, STREAM_STDERR, STREAM_SYSTEMERR):
                    raise CopyError(f"Unrecognized input header: {stream_type}")
                continue

            payload = bytes(buf[:need])
            del buf[:need]

            if stream_type == STREAM_SYSTEMERR:
                raise CopyError(
                    "error from daemon in stream: %s" % payload.decode("utf-8", errors="replace")
                )

            yield Frame(stream_type, payload)
            stream_type, need = None, HEADER_SIZE

    if stream_type is not None:
        raise CopyError(f"unexpected end of stream: frame payload truncated ({len(buf)} of {need} bytes)")
    if buf:
        raise CopyError(f"unexpected end of stream: frame header truncated ({len(buf)} of {HEADER_SIZE} bytes)")


def std_copy(stdout: BinaryIO, stderr: BinaryIO, chunks: Iterable[bytes]) -> int:
    """Copy frame payloads to stdout/stderr sinks.

    Args:
        stdout: Sink for stdin and stdout frames
        stderr: Sink for stderr frames; may be the same object as stdout
        chunks: The framed log stream

    Returns:
        int: Number of payload bytes written
    """
    written = 0
    for frame in iter_frames(chunks):
        sink = stderr if frame.stream_type == STREAM_STDERR else stdout
        try:
            sink.write(frame.payload)
        except OSError as e:
            raise CopyError(f"failed to write log output: {e}") from e
        written += len(frame.payload)
    return written


def demux(chunks: Iterable[bytes]) -> Tuple[bytes, bytes]:
    """Split a framed stream into (stdout_bytes, stderr_bytes)."""
    stdout_parts = []
    stderr_parts = []
    for frame in iter_frames(chunks):
        if frame.stream_type == STREAM_STDERR:
            stderr_parts.append(frame.payload)
        else:
            stdout_parts.append(frame.payload)
    return b"".join(stdout_parts), b"".join(stderr_parts)
