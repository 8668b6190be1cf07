"""HTTP adapter for the Bee node gateway API."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, AsyncIterator, BinaryIO, Dict, Optional

import httpx

from ..exceptions import UploadError
from ..models import GatewayUploadOptions, TransferProgress, UploadResult
from ..protocols import ProgressCallback

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
UPLOAD_CHUNK_SIZE = 64 * 1024


def _bool_header(value: bool) -> str:
    return "true" if value else "false"


def _remaining_size(stream: BinaryIO, start: int) -> Optional[int]:
    """Bytes left in a file-backed stream; None for streams without a descriptor."""
    try:
        return os.fstat(stream.fileno()).st_size - start
    except (AttributeError, OSError, ValueError):
        return None


def build_upload_headers(batch_id: str, options: GatewayUploadOptions) -> Dict[str, str]:
    """Map resolved upload options onto Bee request headers."""
    headers = {
        "swarm-postage-batch-id": batch_id,
        "content-type": options.content_type or DEFAULT_CONTENT_TYPE,
    }
    if options.pin is not None:
        headers["swarm-pin"] = _bool_header(options.pin)
    if options.encrypt is not None:
        headers["swarm-encrypt"] = _bool_header(options.encrypt)
    if options.deferred is not None:
        headers["swarm-deferred-upload"] = _bool_header(options.deferred)
    if options.redundancy_level is not None:
        headers["swarm-redundancy-level"] = str(options.redundancy_level)
    if options.tag is not None:
        headers["swarm-tag"] = str(options.tag)
    if options.size is not None:
        headers["content-length"] = str(options.size)
    return headers


class BeeGatewayClient:
    """
    HTTP client adapter for a Bee node.

    Implements IGatewayClient protocol.

    Usage:
        async with BeeGatewayClient(bee_node_url) as gateway:
            tag = await gateway.create_tag()
            result = await gateway.upload_file(batch_id, fh, "report.pdf", options)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 300,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self

    async def __aexit__(self, *args):
        if self._owns_client and self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("BeeGatewayClient not initialized. Use 'async with' context.")
        return self._client

    async def _post(
        self,
        endpoint: str,
        rewind=None,
        content_factory=None,
        **kwargs,
    ) -> httpx.Response:
        """POST with retries on 5xx and transport errors."""
        client = self._require_client()
        last_exception: Optional[Exception] = None

        for attempt in range(self._max_retries):
            if rewind is not None:
                rewind()
            if content_factory is not None:
                kwargs["content"] = content_factory()
            try:
                response = await client.post(endpoint, **kwargs)

                if response.status_code >= 500 and attempt < self._max_retries - 1:
                    logger.debug(f"POST {endpoint} returned {response.status_code}, retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                if response.status_code >= 400:
                    try:
                        error_detail = response.json()
                    except Exception:
                        error_detail = response.text
                    raise UploadError(
                        f"gateway error {response.status_code} on POST {endpoint}: {error_detail}",
                        status_code=response.status_code,
                    )

                return response
            except httpx.HTTPError as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    logger.debug(f"POST {endpoint} failed ({exc!r}), retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise UploadError(f"gateway unreachable on POST {endpoint}: {exc!r}") from exc

        if last_exception:
            raise UploadError(f"gateway unreachable on POST {endpoint}: {last_exception!r}")
        raise UploadError(f"Failed to POST {endpoint} after {self._max_retries} attempts")

    async def create_tag(self) -> int:
        """Create a tag used to track upload propagation."""
        response = await self._post("/tags")
        try:
            body: Dict[str, Any] = response.json()
            return int(body["uid"])
        except (ValueError, KeyError, TypeError) as exc:
            raise UploadError(f"unexpected tag response from gateway: {response.text}") from exc

    async def upload_file(
        self,
        batch_id: str,
        stream: BinaryIO,
        filename: str,
        options: Optional[GatewayUploadOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """
        Upload file content via POST /bzz.

        Args:
            batch_id: Postage stamp batch ID
            stream: Binary file object positioned at the start of the content
            filename: Name stored in the manifest
            options: Resolved upload options
            progress_callback: Optional upload progress callback

        Returns:
            UploadResult with the content reference
        """
        options = options or GatewayUploadOptions()
        headers = build_upload_headers(batch_id, options)
        start = stream.tell()
        total = options.size if options.size is not None else _remaining_size(stream, start)

        async def body() -> AsyncIterator[bytes]:
            progress = TransferProgress(phase="upload", filename=filename, total_bytes=total)
            while True:
                chunk = await asyncio.to_thread(stream.read, UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                progress.bytes_done += len(chunk)
                if progress_callback is not None:
                    try:
                        progress_callback(
                            TransferProgress(
                                phase="upload",
                                filename=filename,
                                bytes_done=progress.bytes_done,
                                total_bytes=progress.total_bytes,
                            )
                        )
                    except Exception as e:
                        logger.debug(f"Progress listener failed for {filename}: {e}")
                yield chunk

        logger.info(f"Uploading {filename} to {self._base_url}")
        response = await self._post(
            "/bzz",
            rewind=lambda: stream.seek(start),
            content_factory=body,
            params={"name": filename},
            headers=headers,
        )

        try:
            data = response.json()
        except ValueError:
            data = None
        reference = data.get("reference") if isinstance(data, dict) else None
        if not reference:
            raise UploadError(f"gateway returned no reference for {filename}: {response.text}")

        tag_uid = options.tag
        if tag_uid is None and response.headers.get("swarm-tag"):
            try:
                tag_uid = int(response.headers["swarm-tag"])
            except ValueError:
                tag_uid = None

        return UploadResult(reference=reference, filename=filename, tag_uid=tag_uid)
