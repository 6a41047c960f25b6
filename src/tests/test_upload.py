"""
Tests for bundle upload through presigned URLs.
"""

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from beatbundle.upload import (
    UploadError,
    UploadHTTPError,
    UploadManager,
    find_bundle_dir,
    is_retryable_upload_error,
)

API = "https://api.test/1.0"
UPLOAD_PATH = "users/u1/uploads/abc123"


class FakeStorage:
    """Upload API plus storage, scripted per file name."""

    def __init__(self, file_names, put_statuses=None, network_failures=None, urls=None):
        self.file_names = list(file_names)
        self.urls = dict(urls or {})
        self.put_statuses = {k: list(v) for k, v in (put_statuses or {}).items()}
        self.network_failures = dict(network_failures or {})
        self.requests: list[tuple[str, str]] = []
        self.puts: dict[str, int] = {}
        self.completed: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        if request.method == "POST" and path == "/1.0/me/uploads":
            assert request.headers["Authorization"] == "Bearer secret"
            assert "viewer" in json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "uploadPath": UPLOAD_PATH,
                    "signs": [
                        {
                            "fileName": name,
                            "url": self.urls.get(name, f"https://storage.test/{name}"),
                            "contentType": "video/mp4",
                            "key": f"{UPLOAD_PATH}/{name}",
                        }
                        for name in self.file_names
                    ],
                },
            )
        if request.method == "POST" and path.endswith("/complete"):
            self.completed.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})
        if request.method == "PUT":
            name = path.rsplit("/", 1)[-1]
            self.puts[name] = self.puts.get(name, 0) + 1
            if self.network_failures.get(name, 0) > 0:
                self.network_failures[name] -= 1
                raise httpx.ConnectError("connection reset", request=request)
            statuses = self.put_statuses.get(name)
            status = statuses.pop(0) if statuses else 200
            return httpx.Response(status)
        return httpx.Response(404)


def _bundle_dir(tmp_path, file_names):
    bundle = tmp_path / "output" / "talk" / "mulmo_script"
    bundle.mkdir(parents=True)
    (bundle / "mulmo_view.json").write_text(
        json.dumps({"lang": "en", "totalDuration": 0, "totalSegments": 0, "beats": []}),
        encoding="utf-8",
    )
    for name in file_names:
        (bundle / name).write_bytes(b"data " + name.encode())
    return bundle


def _manager(storage, retry):
    return UploadManager(
        "secret",
        base_url=API,
        retry=retry,
        transport=httpx.MockTransport(storage.handler),
    )


def test_server_errors_are_retried(tmp_path, no_wait_retry, sleep_log):
    bundle = _bundle_dir(tmp_path, ["1.mp4"])
    storage = FakeStorage(["1.mp4"], put_statuses={"1.mp4": [503, 503, 200]})

    result = asyncio.run(_manager(storage, no_wait_retry).upload_bundle_dir(bundle))

    assert result.success
    assert result.files[0].attempts == 3
    assert sleep_log == [1.0, 2.0]


def test_client_error_is_not_retried(tmp_path, no_wait_retry, sleep_log):
    bundle = _bundle_dir(tmp_path, ["1.mp4"])
    storage = FakeStorage(["1.mp4"], put_statuses={"1.mp4": [404]})

    result = asyncio.run(_manager(storage, no_wait_retry).upload_bundle_dir(bundle))

    assert not result.success
    assert result.fail_count == 1
    assert result.files[0].attempts == 1
    assert result.files[0].status == 404
    assert storage.puts["1.mp4"] == 1
    assert sleep_log == []


def test_one_failed_file_does_not_stop_the_rest(tmp_path, no_wait_retry):
    names = ["1.mp4", "2.mp4", "3.mp4"]
    bundle = _bundle_dir(tmp_path, names)
    storage = FakeStorage(names, put_statuses={"2.mp4": [404]})

    result = asyncio.run(_manager(storage, no_wait_retry).upload_bundle_dir(bundle))

    assert not result.success
    assert result.fail_count == 1
    assert [(f.file_name, f.success) for f in result.files] == [
        ("1.mp4", True),
        ("2.mp4", False),
        ("3.mp4", True),
    ]
    assert result.content_id == "abc123"
    assert result.upload_path == UPLOAD_PATH
    assert storage.completed == [{"contentId": "abc123"}]
    assert storage.requests[-1] == ("POST", "/1.0/me/uploads/abc123/complete")


def test_network_errors_are_retried(tmp_path, no_wait_retry, sleep_log):
    bundle = _bundle_dir(tmp_path, ["1.mp4"])
    storage = FakeStorage(["1.mp4"], network_failures={"1.mp4": 1})

    result = asyncio.run(_manager(storage, no_wait_retry).upload_bundle_dir(bundle))

    assert result.success
    assert result.files[0].attempts == 2
    assert sleep_log == [1.0]


def test_missing_local_file_fails_without_request(tmp_path, no_wait_retry):
    bundle = _bundle_dir(tmp_path, ["1.mp4"])
    storage = FakeStorage(["1.mp4", "ghost.mp4"])

    result = asyncio.run(_manager(storage, no_wait_retry).upload_bundle_dir(bundle))

    assert result.fail_count == 1
    ghost = result.files[1]
    assert ghost.file_name == "ghost.mp4"
    assert ghost.error == "file not found"
    assert ghost.attempts == 0
    assert "ghost.mp4" not in storage.puts
    assert storage.completed


def test_malformed_signed_url_fails_only_that_file(tmp_path, no_wait_retry):
    names = ["1.mp4", "2.mp4"]
    bundle = _bundle_dir(tmp_path, names)
    storage = FakeStorage(names, urls={"2.mp4": "https://storage.test:abc/2.mp4"})

    result = asyncio.run(_manager(storage, no_wait_retry).upload_bundle_dir(bundle))

    assert result.fail_count == 1
    assert [(f.file_name, f.success) for f in result.files] == [("1.mp4", True), ("2.mp4", False)]
    assert result.files[1].error
    assert storage.completed == [{"contentId": "abc123"}]


def test_unreadable_local_file_fails_only_that_file(tmp_path, no_wait_retry, monkeypatch):
    names = ["1.mp4", "2.mp4"]
    bundle = _bundle_dir(tmp_path, names)
    storage = FakeStorage(names)
    real_read_bytes = Path.read_bytes

    def read_bytes(self):
        if self.name == "2.mp4":
            raise PermissionError("denied")
        return real_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)

    result = asyncio.run(_manager(storage, no_wait_retry).upload_bundle_dir(bundle))

    assert result.fail_count == 1
    assert result.files[1].error == "denied"
    assert "2.mp4" not in storage.puts
    assert storage.completed


def test_rejected_upload_request(tmp_path, no_wait_retry):
    bundle = _bundle_dir(tmp_path, [])

    def handler(request):
        return httpx.Response(401, text="bad key")

    manager = UploadManager(
        "secret", base_url=API, retry=no_wait_retry, transport=httpx.MockTransport(handler)
    )
    with pytest.raises(UploadError, match="401"):
        asyncio.run(manager.upload_bundle_dir(bundle))


def test_concurrency_bound(tmp_path, no_wait_retry):
    names = [f"{n}.mp4" for n in range(1, 9)]
    bundle = _bundle_dir(tmp_path, names)
    in_flight = 0
    peak = 0
    storage = FakeStorage(names)

    class SlowTransport(httpx.AsyncBaseTransport):
        async def handle_async_request(self, request):
            nonlocal in_flight, peak
            if request.method != "PUT":
                response = storage.handler(request)
            else:
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                response = storage.handler(request)
            await response.aread()
            return response

    manager = UploadManager(
        "secret", base_url=API, concurrency=3, retry=no_wait_retry, transport=SlowTransport()
    )
    result = asyncio.run(manager.upload_bundle_dir(bundle))

    assert result.success
    assert len(result.files) == 8
    assert peak == 3


def test_retryable_errors():
    request = httpx.Request("PUT", "https://storage.test/x")
    assert is_retryable_upload_error(UploadHTTPError(500))
    assert is_retryable_upload_error(httpx.ReadTimeout("slow", request=request))
    assert not is_retryable_upload_error(UploadHTTPError(403))
    assert not is_retryable_upload_error(ValueError("x"))


def test_missing_api_key():
    with pytest.raises(RuntimeError, match="MULMO_MEDIA_API_KEY"):
        UploadManager("")


def test_find_bundle_dir(tmp_path):
    bundle = _bundle_dir(tmp_path, [])

    assert find_bundle_dir(tmp_path / "output", "talk") == bundle
    with pytest.raises(FileNotFoundError):
        find_bundle_dir(tmp_path / "output", "other")
