"""Explicit client handle for the Docker Engine REST API.

This module owns the HTTP session and turns transport failures and non-2xx
responses into the error types in errors.py. Communication goes through
requests_unixsocket so the same client works against the local unix socket
and against a TCP daemon.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlencode

import requests
import requests_unixsocket

from config import ClientConfig
from errors import Cancelled, NotFound, RequestError
from log_stream import CANCEL_POLL_INTERVAL, shutdown_response
from logger import log


@dataclass
class ContainerInfo:
    """Subset of the inspect response the log client needs."""

    id: str
    name: str
    tty: bool
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_inspect(cls, data: dict) -> "ContainerInfo":
        config = data.get("Config") or {}
        return cls(
            id=str(data.get("Id", "")),
            name=str(data.get("Name", "")).lstrip("/"),
            tty=bool(config.get("Tty", False)),
            raw=data,
        )


def container_path(container: str, suffix: str = "") -> str:
    return f"/containers/{quote(container, safe='')}{suffix}"


def _daemon_message(response: requests.Response) -> str:
    """Extract the daemon's error message from a failed response.

    The daemon answers errors with {"message": "..."}; older daemons and
    proxies may return plain text instead.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])

    text = (response.text or "").strip()
    return text or f"HTTP {response.status_code}"


class _PendingRequest:
    """Run a request on a helper thread so the caller can give up on it.

    The caller waits on both the request and the cancellation event. If the
    event wins, the caller gets Cancelled right away and the helper closes
    whatever response eventually arrives.
    """

    def __init__(self, client: "DockerClient", url: str, stream: bool, cancel: threading.Event) -> None:
        self.client = client
        self.url = url
        self.stream = stream
        self.cancel = cancel
        self.response: Optional[requests.Response] = None
        self.error: Optional[RequestError] = None
        self.done = threading.Event()
        self.abandoned = False
        self._lock = threading.Lock()

    def _run(self) -> None:
        response = error = None
        try:
            response = self.client._send(self.url, self.stream)
        except RequestError as e:
            error = e

        with self._lock:
            if self.abandoned:
                log.debug("Discarding late answer to cancelled GET %s", self.url)
                if response is not None:
                    shutdown_response(response)
                return
            self.response, self.error = response, error
            self.done.set()

    def wait(self) -> requests.Response:
        thread = threading.Thread(target=self._run, name="docker-get", daemon=True)
        thread.start()

        while not self.done.wait(CANCEL_POLL_INTERVAL):
            if self.cancel.is_set():
                with self._lock:
                    if not self.done.is_set():
                        self.abandoned = True
                        log.debug("GET %s cancelled while waiting for the daemon", self.url)
                        raise Cancelled()
                break

        if self.cancel.is_set():
            # errors after cancellation are a consequence of it
            if self.response is not None:
                shutdown_response(self.response)
            raise Cancelled() from self.error

        if self.error is not None:
            raise self.error
        return self.response


class DockerClient:
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.session = session or requests_unixsocket.Session()

    def __enter__(self) -> "DockerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def url(self, path: str, query: Optional[Mapping[str, str]] = None) -> str:
        """Build a request URL; query parameters keep their insertion order."""
        url = f"{self.config.base_url}{self.config.api_prefix}{path}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def get(
        self,
        path: str,
        query: Optional[Mapping[str, str]] = None,
        stream: bool = False,
        resource: Optional[str] = None,
        identifier: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> requests.Response:
        """Issue a GET request against the daemon.

        Args:
            path: API path, e.g. "/containers/abc/logs"
            query: Query parameters, encoded in the given order
            stream: Leave the body unread for incremental consumption
            resource: Resource kind used to classify a 404 as NotFound
            identifier: Identifier reported in the NotFound error
            cancel: Event that aborts the call, including one still waiting
                for the daemon to answer

        Returns:
            requests.Response: The successful (2xx) response

        Raises:
            Cancelled: if cancel is set before the response arrives
            NotFound: on 404 when a resource kind was given
            RequestError: on any other transport failure or non-2xx status
        """
        if cancel is not None and cancel.is_set():
            raise Cancelled()

        url = self.url(path, query)
        log.debug("GET %s", url)

        if cancel is None:
            response = self._send(url, stream)
        else:
            response = _PendingRequest(self, url, stream, cancel).wait()

        if 200 <= response.status_code < 300:
            return response

        try:
            if response.status_code == 404 and resource is not None:
                log.warning("%s %s not found", resource, identifier)
                raise NotFound(resource, identifier or "")

            message = _daemon_message(response)
            log.warning("GET %s returned HTTP %s: %s", url, response.status_code, message)
            raise RequestError(
                f"Error response from daemon: {message}",
                status_code=response.status_code,
            )
        finally:
            response.close()

    def _send(self, url: str, stream: bool) -> requests.Response:
        try:
            return self.session.get(url, stream=stream)
        except requests.ConnectionError as e:
            log.warning("Connection to %s failed: %s", self.config.base_url, e)
            raise RequestError(
                f"Cannot connect to the Docker daemon at {self.config.base_url}. "
                "Is the docker daemon running?"
            ) from e
        except requests.RequestException as e:
            log.warning("GET %s failed: %s", url, e)
            raise RequestError(f"error during connect: {e}") from e

    def inspect_container(
        self, container: str, cancel: Optional[threading.Event] = None
    ) -> ContainerInfo:
        """Fetch container metadata (GET /containers/{id}/json)."""
        if not container:
            raise NotFound("container", container, status_code=None)

        response = self.get(
            container_path(container, "/json"),
            resource="container",
            identifier=container,
            cancel=cancel,
        )
        try:
            data = response.json()
        except ValueError as e:
            raise RequestError(
                f"invalid inspect response for container {container}: {e}",
                status_code=response.status_code,
            ) from e
        finally:
            response.close()

        return ContainerInfo.from_inspect(data)
