"""Logging setup shared by the client modules and the log viewer.

Everything logs through the ``log`` logger. The terminal UI owns stdout, so
the viewer sends log output to a file (``log.txt`` by default).
"""

import logging
import os
from logging import Logger, LoggerAdapter
from typing import Any, Mapping, Optional

LOG_FORMAT = "%(asctime)-15s %(threadName)s %(levelname)s %(name)s %(message)s"

log = logging.getLogger("docker_logs")


def configure_logging(level: Optional[str] = None, filename: Optional[str] = None) -> None:
    """Configure root logging from arguments or the environment.

    Args:
        level: Level name; falls back to LOG_LEVEL, then INFO
        filename: Log file path; falls back to LOG_FILE, then stderr
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if level_name not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level_name = "INFO"

    filename = filename or os.getenv("LOG_FILE") or None
    if filename is not None:
        path = os.path.dirname(filename)
        if path and not os.path.exists(path):
            os.makedirs(path)

    logging.basicConfig(
        level=getattr(logging, level_name),
        format=LOG_FORMAT,
        filename=filename,
    )

    # tell noisy loggers to be quiet
    logging.getLogger("urllib3.connectionpool").propagate = False


class CtxLogger(LoggerAdapter):
    def __init__(self, logger: Logger, extra: Mapping[str, Any], prefix: str) -> None:
        super().__init__(logger, extra)

        self.prefix = prefix

    def process(self, msg, kwargs):
        prefix = self.prefix % self.extra

        msg = f"{prefix}{msg}"
        return msg, kwargs


def container_logger(container: str) -> CtxLogger:
    return CtxLogger(log, {"container": container}, prefix="[container %(container)s] ")
