"""Error types raised by the Docker log client.

Every error carries an ErrorKind so callers can branch on the kind of failure
without matching on message text. HTTP responses are classified by status
code; the daemon's JSON message is only used for the human-readable text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    INVALID_TIMESTAMP = "invalid_timestamp"
    REQUEST = "request"
    NOT_FOUND = "not_found"
    COPY = "copy"
    CANCELLED = "cancelled"


class DockerLogsError(Exception):
    kind = ErrorKind.REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return "%s(kind=%s, message=%r)" % (
            self.__class__.__name__,
            self.kind.value,
            self.message,
        )

    def __str__(self) -> str:
        return self.message


class InvalidTimestamp(DockerLogsError):
    """A since/until value could not be parsed as a time or duration."""

    kind = ErrorKind.INVALID_TIMESTAMP

    def __init__(self, field: str, value: str, reason: str) -> None:
        super().__init__(f'invalid value for "{field}": {reason}')
        self.field = field
        self.value = value


class RequestError(DockerLogsError):
    """Transport failure or non-2xx response from the daemon.

    status_code is None when no response was received at all.
    """

    kind = ErrorKind.REQUEST

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def is_retryable(self) -> bool:
        return self.status_code in (429, 500, 502, 503, 504)


class NotFound(RequestError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str, status_code: Optional[int] = 404) -> None:
        super().__init__(f"No such {resource}: {identifier}", status_code=status_code)
        self.resource = resource
        self.identifier = identifier


class CopyError(DockerLogsError):
    """Failure while transferring or demultiplexing a log stream."""

    kind = ErrorKind.COPY


class Cancelled(DockerLogsError):
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "operation cancelled") -> None:
        super().__init__(message)
