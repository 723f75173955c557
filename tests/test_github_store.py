"""Tests for the GitHub contents API store."""

import asyncio
import base64
import json
from collections.abc import Callable

import httpx
import pytest

from ar_publisher.adapters.github_store import GitHubContentsStore
from ar_publisher.domain.errors import RemoteWriteError

PATH = "clients/client1-0a1b2c3d/index.html"


def _store(
    handler: Callable[[httpx.Request], httpx.Response], branch: str | None = None
) -> GitHubContentsStore:
    transport = httpx.MockTransport(handler)
    return GitHubContentsStore(
        token="gh-token",
        owner="owner",
        repo="site",
        branch=branch,
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_creates_new_file_without_sha() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(201, json={"content": {"path": PATH}})

    store = _store(handler)
    asyncio.run(store.write_file(PATH, b"<html></html>", "Add files for client1"))

    get, put = requests
    assert put.method == "PUT"
    assert put.url.path == f"/repos/owner/site/contents/{PATH}"
    assert put.headers["Authorization"] == "Bearer gh-token"
    assert put.headers["Accept"] == "application/vnd.github+json"
    payload = json.loads(put.content)
    assert payload == {
        "message": "Add files for client1",
        "content": base64.b64encode(b"<html></html>").decode("ascii"),
    }
    assert get.url.params.get("ref") is None


def test_updates_existing_file_with_sha_on_branch() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"sha": "abc123", "path": PATH})
        return httpx.Response(200, json={"content": {"path": PATH}})

    store = _store(handler, branch="gh-pages")
    asyncio.run(store.write_file(PATH, b"\x00\x01binary", "Add files for client1"))

    get, put = requests
    assert get.url.params["ref"] == "gh-pages"
    payload = json.loads(put.content)
    assert payload["sha"] == "abc123"
    assert payload["branch"] == "gh-pages"
    assert base64.b64decode(payload["content"]) == b"\x00\x01binary"


@pytest.mark.parametrize(
    ("status", "retryable"),
    [(500, True), (502, True), (409, True), (429, True), (422, False), (401, False)],
)
def test_status_errors_map_to_retryable_flag(status: int, retryable: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(404)
        return httpx.Response(status, json={"message": "nope"})

    store = _store(handler)

    with pytest.raises(RemoteWriteError) as excinfo:
        asyncio.run(store.write_file(PATH, b"x", "msg"))

    assert excinfo.value.retryable is retryable
    assert str(status) in str(excinfo.value)


def test_failed_lookup_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "Forbidden"})

    with pytest.raises(RemoteWriteError) as excinfo:
        asyncio.run(_store(handler).write_file(PATH, b"x", "msg"))

    assert excinfo.value.retryable is False


def test_transport_error_is_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteWriteError) as excinfo:
        asyncio.run(_store(handler).write_file(PATH, b"x", "msg"))

    assert excinfo.value.retryable is True


def test_close_closes_http_client() -> None:
    store = _store(lambda request: httpx.Response(404))

    asyncio.run(store.close())

    assert store.http_client.is_closed


def test_unreadable_lookup_body_is_not_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    with pytest.raises(RemoteWriteError, match="Unreadable") as excinfo:
        asyncio.run(_store(handler).write_file(PATH, b"x", "msg"))

    assert excinfo.value.retryable is False
