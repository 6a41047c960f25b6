"""
Uploading finished bundles through presigned URLs.

Protocol: ask the API for signed upload targets, PUT every file through a
fixed-size worker pool, then mark the upload complete.
"""

import asyncio
import json
import logging
from pathlib import Path

import httpx
from tqdm import tqdm

from .manifest import MANIFEST_NAME
from .models import FileUploadResult, SignedFile, UploadManifest, UploadResult
from .retry import RetryPolicy

logger = logging.getLogger("beatbundle")

DEFAULT_API_BASE_URL = "https://mulmocast-app-dev.web.app/api/1.0"
MAX_CONCURRENT_UPLOADS = 5


class UploadError(RuntimeError):
    """The upload API rejected a request."""


class UploadHTTPError(UploadError):
    """A PUT to a signed URL returned a non-2xx status."""

    def __init__(self, status: int, reason: str = "") -> None:
        super().__init__(f"{status} {reason}".strip())
        self.status = status


def is_retryable_upload_error(exc: BaseException) -> bool:
    """Only server errors and network failures are worth another PUT."""
    if isinstance(exc, UploadHTTPError):
        return exc.status >= 500
    return isinstance(exc, httpx.TransportError)


def find_bundle_dir(output_root: str | Path, basename: str) -> Path:
    """Locate ``<output_root>/<basename>/<sub>/`` holding mulmo_view.json."""
    output_dir = Path(output_root) / basename
    if not output_dir.is_dir():
        raise FileNotFoundError(f"Output directory not found: {output_dir}")
    for entry in sorted(output_dir.iterdir()):
        if entry.is_dir() and (entry / MANIFEST_NAME).is_file():
            return entry
    raise FileNotFoundError(f"{MANIFEST_NAME} not found in {output_dir}")


class UploadManager:
    """Pushes one bundle directory to remote storage."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_BASE_URL,
        concurrency: int = MAX_CONCURRENT_UPLOADS,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 120.0,
    ) -> None:
        if not api_key:
            raise RuntimeError("MULMO_MEDIA_API_KEY is not set.")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.concurrency = concurrency
        self.retry = (retry or RetryPolicy()).with_predicate(is_retryable_upload_error)
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout, follow_redirects=True)

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}

    async def request_upload(self, client: httpx.AsyncClient, viewer: dict) -> UploadManifest:
        logger.info("Requesting upload URLs...")
        r = await client.post(
            f"{self.base_url}/me/uploads", json={"viewer": viewer}, headers=self._auth_headers
        )
        if r.is_error:
            raise UploadError(f"Server error: {r.status_code} {r.text[:300]}")
        return UploadManifest.from_response(r.json())

    async def complete(self, client: httpx.AsyncClient, content_id: str) -> None:
        logger.info("Completing upload...")
        r = await client.post(
            f"{self.base_url}/me/uploads/{content_id}/complete",
            json={"contentId": content_id},
            headers=self._auth_headers,
        )
        if r.is_error:
            raise UploadError(f"Failed to complete upload: {r.status_code} {r.text[:300]}")

    async def upload_file(
        self, client: httpx.AsyncClient, sign: SignedFile, bundle_dir: Path
    ) -> FileUploadResult:
        path = bundle_dir / sign.file_name
        result = FileUploadResult(file_name=sign.file_name, success=False)
        if not path.is_file():
            logger.error(f"  Failed to upload: {sign.file_name} not found")
            result.error = "file not found"
            return result

        async def _put() -> httpx.Response:
            result.attempts += 1
            r = await client.put(sign.url, content=body, headers={"Content-Type": sign.content_type})
            result.status = r.status_code
            if r.is_error:
                raise UploadHTTPError(r.status_code, r.reason_phrase)
            return r

        # every failure is recorded on this file; other workers and completion carry on
        try:
            body = path.read_bytes()
            await self.retry.acall(_put)
        except Exception as e:
            logger.error(f"  Failed to upload {sign.file_name}: {e}")
            result.error = str(e)
            return result
        logger.debug(f"  Uploaded: {sign.file_name}")
        result.success = True
        return result

    async def upload_files(
        self, client: httpx.AsyncClient, signs: list[SignedFile], bundle_dir: Path
    ) -> list[FileUploadResult]:
        """Upload every file; workers share one advancing index into ``signs``."""
        results: list[FileUploadResult | None] = [None] * len(signs)
        next_index = 0
        progress = tqdm(total=len(signs), desc="Uploading", unit="file")

        async def worker() -> None:
            nonlocal next_index
            while next_index < len(signs):
                i = next_index
                next_index += 1
                results[i] = await self.upload_file(client, signs[i], bundle_dir)
                progress.update(1)

        try:
            await asyncio.gather(*(worker() for _ in range(min(self.concurrency, len(signs)))))
        finally:
            progress.close()
        return [r for r in results if r is not None]

    async def upload_bundle_dir(self, bundle_dir: str | Path) -> UploadResult:
        bundle_dir = Path(bundle_dir)
        manifest_path = bundle_dir / MANIFEST_NAME
        if not manifest_path.is_file():
            raise FileNotFoundError(f"{MANIFEST_NAME} not found in {bundle_dir}")
        viewer = json.loads(manifest_path.read_text(encoding="utf-8"))

        async with self._client() as client:
            manifest = await self.request_upload(client, viewer)
            if not manifest.content_id:
                raise UploadError("Failed to extract contentId from uploadPath")

            files: list[FileUploadResult] = []
            if manifest.signs:
                logger.info(
                    f"Uploading {len(manifest.signs)} files ({self.concurrency} concurrent)..."
                )
                files = await self.upload_files(client, manifest.signs, bundle_dir)

            await self.complete(client, manifest.content_id)

        fail_count = sum(1 for f in files if not f.success)
        if fail_count:
            logger.error(f"Failed to upload {fail_count} out of {len(files)} files")
        return UploadResult(
            success=fail_count == 0,
            upload_path=manifest.upload_path,
            content_id=manifest.content_id,
            fail_count=fail_count,
            files=files,
        )
