"""
Source Fetcher - Single Responsibility: bring one source into a local temp file.

HTTP(S) sources are streamed with httpx, ftp sources go through urllib in a
worker thread, local sources are copied. The temp file is fully written and
closed before ``fetch`` returns.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import mimetypes
import re
import tempfile
import time
import urllib.error
import urllib.request
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional
from urllib.parse import unquote, urlsplit

import httpx

from ..exceptions import DownloadError, LocalReadError
from ..models import FetchedPayload, TransferProgress, UploadItem, UploaderConfig
from ..protocols import ProgressCallback
from .resolver import infer_name, is_valid_url

logger = logging.getLogger(__name__)

_counter = itertools.count()
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def extension_from_content_type(content_type: Optional[str]) -> str:
    """Derive an extension from a MIME subtype (image/png -> .png)."""
    if not content_type or "/" not in content_type:
        return ""
    subtype = content_type.split(";", 1)[0].split("/", 1)[1].strip().lower()
    subtype = subtype.split("+", 1)[0]
    return f".{subtype}" if subtype else ""


def extension_from_ref(ref: str) -> str:
    """Extension of the URL path or local file, lowercased ('' if none)."""
    if is_valid_url(ref):
        return PurePosixPath(unquote(urlsplit(ref).path)).suffix.lower()
    return Path(ref).suffix.lower()


def _parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        size = int(value)
    except ValueError:
        return None
    return size if size >= 0 else None


class _ProgressReporter:
    """Throttles progress notifications; delivery failures are ignored."""

    def __init__(
        self,
        callback: Optional[ProgressCallback],
        phase: str,
        filename: str,
        total: Optional[int],
        step: int,
    ):
        self._callback = callback
        self._progress = TransferProgress(phase=phase, filename=filename, total_bytes=total)
        self._step = max(step, 1)
        self._last_percent = -self._step

    def advance(self, nbytes: int) -> None:
        self._progress.bytes_done += nbytes
        if self._callback is None:
            return
        percent = self._progress.percent
        if percent is not None:
            if percent < 100 and percent - self._last_percent < self._step:
                return
            self._last_percent = percent
        self._notify()

    def finish(self) -> None:
        if self._callback is None:
            return
        if self._progress.percent is None or self._last_percent < 100:
            self._notify()

    def _notify(self) -> None:
        try:
            self._callback(
                TransferProgress(
                    phase=self._progress.phase,
                    filename=self._progress.filename,
                    bytes_done=self._progress.bytes_done,
                    total_bytes=self._progress.total_bytes,
                )
            )
        except Exception as e:
            logger.debug(f"Progress listener failed for {self._progress.filename}: {e}")


class SourceFetcher:
    """
    Fetches an UploadItem's content into a uniquely named temp file.

    Usage:
        async with SourceFetcher(config) as fetcher:
            payload = await fetcher.fetch(item, progress_callback)
    """

    def __init__(
        self,
        config: Optional[UploaderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._config = config or UploaderConfig()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.download_timeout,
                follow_redirects=True,
            )
        return self

    async def __aexit__(self, *args):
        if self._owns_client and self._client:
            await self._client.aclose()
            self._client = None

    def _temp_path(self, name: str, extension: str) -> Path:
        if self._config.temp_dir:
            base = Path(self._config.temp_dir)
            base.mkdir(parents=True, exist_ok=True)
        else:
            base = Path(tempfile.gettempdir())
        safe_name = _UNSAFE_CHARS.sub("_", name).strip("_")[:80] or "file"
        return base / f"temp-{safe_name}-{time.time_ns()}-{next(_counter)}{extension}"

    async def fetch(
        self,
        item: UploadItem,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> FetchedPayload:
        """
        Fetch one item to a temp file.

        Raises:
            DownloadError: non-2xx status, network error or timeout
            LocalReadError: local source missing or unreadable
        """
        ref = item.source_ref
        name = item.display_name or infer_name(ref)
        scheme = urlsplit(ref).scheme.lower() if is_valid_url(ref) else ""

        if scheme in ("http", "https"):
            return await self._fetch_http(item, name, progress_callback)
        if scheme == "ftp":
            return await self._fetch_ftp(item, name, progress_callback)
        return await self._fetch_local(item, name, progress_callback)

    async def _fetch_http(
        self,
        item: UploadItem,
        name: str,
        progress_callback: Optional[ProgressCallback],
    ) -> FetchedPayload:
        if self._client is None:
            raise RuntimeError("SourceFetcher not initialized. Use 'async with' context.")

        url = item.source_ref
        logger.info(f"[{item.number}] Fetching {url}")
        temp_path: Optional[Path] = None
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"failed to download file No. {item.number} from {url}: "
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                    )

                content_type = response.headers.get("content-type")
                content_type = content_type.split(";", 1)[0].strip() if content_type else None
                size = _parse_content_length(response.headers.get("content-length"))
                extension = extension_from_ref(url) or extension_from_content_type(content_type)
                temp_path = self._temp_path(name, extension)
                reporter = _ProgressReporter(
                    progress_callback, "download", name, size, self._config.progress_step
                )

                fh = await asyncio.to_thread(open, temp_path, "wb")
                try:
                    async for chunk in response.aiter_bytes(self._config.chunk_size):
                        await asyncio.to_thread(fh.write, chunk)
                        reporter.advance(len(chunk))
                finally:
                    await asyncio.to_thread(fh.close)
                reporter.finish()
        except DownloadError:
            self._discard(temp_path)
            raise
        except httpx.HTTPError as exc:
            self._discard(temp_path)
            raise DownloadError(
                f"failed to download file No. {item.number} from {url}: {exc!r}"
            ) from exc
        except OSError as exc:
            self._discard(temp_path)
            raise DownloadError(
                f"could not write temp file for file No. {item.number} ({url}): {exc}"
            ) from exc

        logger.debug(f"[{item.number}] Saved {url} to {temp_path}")
        return FetchedPayload(
            item=item,
            temp_path=temp_path,
            display_name=name,
            extension=extension,
            content_type=content_type,
            size_bytes=size,
        )

    async def _fetch_ftp(
        self,
        item: UploadItem,
        name: str,
        progress_callback: Optional[ProgressCallback],
    ) -> FetchedPayload:
        url = item.source_ref
        extension = extension_from_ref(url)
        temp_path = self._temp_path(name, extension)
        logger.info(f"[{item.number}] Fetching {url}")

        def _download() -> Optional[int]:
            with urllib.request.urlopen(url, timeout=self._config.download_timeout) as response:
                size = _parse_content_length(response.headers.get("content-length"))
                reporter = _ProgressReporter(
                    progress_callback, "download", name, size, self._config.progress_step
                )
                with open(temp_path, "wb") as fh:
                    self._copy(response, fh, reporter)
                reporter.finish()
                return size

        try:
            size = await asyncio.to_thread(_download)
        except (urllib.error.URLError, OSError, ValueError) as exc:
            self._discard(temp_path)
            raise DownloadError(
                f"failed to download file No. {item.number} from {url}: {exc}"
            ) from exc

        return FetchedPayload(
            item=item,
            temp_path=temp_path,
            display_name=name,
            extension=extension,
            content_type=mimetypes.guess_type(url)[0],
            size_bytes=size,
        )

    async def _fetch_local(
        self,
        item: UploadItem,
        name: str,
        progress_callback: Optional[ProgressCallback],
    ) -> FetchedPayload:
        source = Path(item.source_ref)
        if not source.is_file():
            reason = "is not a regular file" if source.exists() else "does not exist"
            raise LocalReadError(f"file No. {item.number} ({item.source_ref}) {reason}")

        extension = source.suffix.lower()
        temp_path = self._temp_path(name, extension)

        def _copy_local() -> int:
            size = source.stat().st_size
            reporter = _ProgressReporter(
                progress_callback, "download", name, size, self._config.progress_step
            )
            with open(source, "rb") as src, open(temp_path, "wb") as dst:
                self._copy(src, dst, reporter)
            reporter.finish()
            return size

        try:
            size = await asyncio.to_thread(_copy_local)
        except OSError as exc:
            self._discard(temp_path)
            raise LocalReadError(
                f"could not read file No. {item.number} ({item.source_ref}): {exc}"
            ) from exc

        return FetchedPayload(
            item=item,
            temp_path=temp_path,
            display_name=name,
            extension=extension,
            content_type=mimetypes.guess_type(source.name)[0],
            size_bytes=size,
        )

    def _copy(self, src: BinaryIO, dst: BinaryIO, reporter: _ProgressReporter) -> None:
        while True:
            chunk = src.read(self._config.chunk_size)
            if not chunk:
                break
            dst.write(chunk)
            reporter.advance(len(chunk))

    @staticmethod
    def _discard(temp_path: Optional[Path]) -> None:
        """Remove a partially written temp file."""
        if temp_path is None:
            return
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove partial temp file {temp_path}: {e}")
