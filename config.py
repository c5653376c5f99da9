"""Client configuration.

The daemon endpoint defaults to the local unix socket and can be overridden
with the same environment variables the docker CLI honours.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import quote

DOCKER_SOCKET_URL = "http+unix://%2Fvar%2Frun%2Fdocker.sock"


def host_to_base_url(host: str) -> str:
    """Translate a DOCKER_HOST value into a requests-compatible base URL.

    Examples:
        'unix:///var/run/docker.sock' -> 'http+unix://%2Fvar%2Frun%2Fdocker.sock'
        'tcp://127.0.0.1:2375'        -> 'http://127.0.0.1:2375'
        'https://daemon:2376'         -> 'https://daemon:2376'
    """
    if host.startswith("unix://"):
        return "http+unix://" + quote(host[len("unix://"):], safe="")
    if host.startswith("tcp://"):
        return "http://" + host[len("tcp://"):].rstrip("/")
    if host.startswith(("http://", "https://", "http+unix://")):
        return host.rstrip("/")
    raise ValueError(f"unsupported DOCKER_HOST scheme: {host!r}")


@dataclass
class ClientConfig:
    base_url: str = DOCKER_SOCKET_URL
    # e.g. "1.43"; empty means the daemon's default version
    api_version: Optional[str] = None
    chunk_size: int = 4096
    default_tail: str = "all"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        env = os.environ if environ is None else environ

        host = env.get("DOCKER_HOST", "")
        base_url = host_to_base_url(host) if host else DOCKER_SOCKET_URL

        return cls(
            base_url=base_url,
            api_version=env.get("DOCKER_API_VERSION") or None,
        )

    @property
    def api_prefix(self) -> str:
        if not self.api_version:
            return ""
        return "/v" + self.api_version.lstrip("v")
