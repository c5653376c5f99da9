import struct
from unittest.mock import MagicMock

import pytest

from config import ClientConfig
from docker_client import DockerClient


def frame(stream_type: int, payload: bytes) -> bytes:
    return struct.pack(">BxxxI", stream_type, len(payload)) + payload


def make_response(status_code: int = 200, chunks=(), json_body=None, text: str = ""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.iter_content = MagicMock(side_effect=lambda chunk_size=1: iter(list(chunks)))
    if json_body is not None:
        resp.json = MagicMock(return_value=json_body)
    else:
        resp.json = MagicMock(side_effect=ValueError("not JSON"))
    return resp


def inspect_body(tty: bool, name: str = "c1") -> dict:
    return {"Id": "0123456789ab" * 4, "Name": f"/{name}", "Config": {"Tty": tty}}


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return DockerClient(ClientConfig(base_url="http+unix://%2Fvar%2Frun%2Fdocker.sock"), session=session)
