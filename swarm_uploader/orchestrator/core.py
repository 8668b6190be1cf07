"""Core orchestrator - drives resolve, fetch, upload and cleanup for every item."""
import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import LogWriteError, UploadError
from ..models import (
    FetchedPayload,
    GatewayUploadOptions,
    ItemOutcome,
    TransferProgress,
    UploaderConfig,
    UploadItem,
    UploadRequest,
)
from ..protocols import IGatewayClient, IResultLogger, ISourceFetcher
from ..services.fetcher import SourceFetcher
from ..services.gateway import BeeGatewayClient
from ..services.resolver import InputResolver
from ..utils.events import EventEmitter
from .models import BatchUploadResult
from .parallel import get_worker_count

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Orchestrates uploads using injected services.

    Items run concurrently on a bounded worker pool. One item's failure
    never aborts its siblings: every item yields an ItemOutcome and ``run``
    returns them all in resolution order.

    Usage:
        orchestrator = UploadOrchestrator(config=config, result_logger=ResultLogger(log_dir))
        orchestrator.on("item_complete", lambda outcome: print(outcome.filename))
        batch = await orchestrator.run(request)

    Events:
        item_start(item), item_progress(item, TransferProgress),
        item_complete(outcome), item_fail(outcome), finish(batch)
    """

    def __init__(
        self,
        config: Optional[UploaderConfig] = None,
        gateway: Optional[IGatewayClient] = None,
        fetcher: Optional[ISourceFetcher] = None,
        result_logger: Optional[IResultLogger] = None,
        resolver: Optional[InputResolver] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Runtime configuration
            gateway: Gateway client; a BeeGatewayClient for the request's
                node URL is opened per run when omitted
            fetcher: Source fetcher; a SourceFetcher is opened per run when omitted
            result_logger: Audit log for successful uploads (optional)
            resolver: Input resolver
        """
        self._config = config or UploaderConfig()
        self._gateway = gateway
        self._fetcher = fetcher
        self._result_logger = result_logger
        self._resolver = resolver or InputResolver()
        self._events = EventEmitter()

    def on(self, event_name: str, callback: Callable) -> "UploadOrchestrator":
        """Subscribe to an orchestrator event."""
        self._events.on(event_name, callback)
        return self

    async def run(self, request: UploadRequest) -> BatchUploadResult:
        """
        Resolve the request's source and process every item.

        Resolution errors (InvalidInputError, MissingNameError,
        SourceNotFoundError, LocalReadError on the manifest) propagate;
        per-item errors become failed outcomes.
        """
        items = self._resolver.resolve(request.source, request.explicit_file_name)
        workers = get_worker_count(len(items), self._config.worker_count)
        logger.info(f"Processing {len(items)} item(s) with {workers} worker(s)")

        async with AsyncExitStack() as stack:
            gateway = self._gateway
            if gateway is None:
                gateway = await stack.enter_async_context(
                    BeeGatewayClient(
                        request.bee_node_url,
                        timeout=self._config.upload_timeout,
                        max_retries=self._config.max_retries,
                    )
                )
            fetcher = self._fetcher
            if fetcher is None:
                fetcher = await stack.enter_async_context(SourceFetcher(self._config))

            semaphore = asyncio.Semaphore(workers)
            outcomes = await asyncio.gather(
                *(
                    self._process_item(item, request, gateway, fetcher, semaphore)
                    for item in items
                )
            )

        await self._events.drain()
        batch = BatchUploadResult(outcomes=list(outcomes))
        logger.info(f"Uploads complete: {batch.uploaded} successful, {batch.failed} failed")
        await self._events.emit("finish", batch)
        return batch

    async def _process_item(
        self,
        item: UploadItem,
        request: UploadRequest,
        gateway: IGatewayClient,
        fetcher: ISourceFetcher,
        semaphore: asyncio.Semaphore,
    ) -> ItemOutcome:
        async with semaphore:
            await self._events.emit("item_start", item)

            loop = asyncio.get_running_loop()

            # Called from the loop and from fetcher worker threads.
            def on_progress(progress: TransferProgress) -> None:
                self._events.emit_threadsafe(loop, "item_progress", item, progress)

            tag = await self._create_tag(item, gateway)
            payload: Optional[FetchedPayload] = None
            try:
                payload = await fetcher.fetch(item, on_progress)
                options = GatewayUploadOptions.build(request.options, payload, tag)
                logger.info(f"[{item.number}] Uploading {payload.filename} to gateway")
                with open(payload.temp_path, "rb") as fh:
                    result = await gateway.upload_file(
                        request.postage_batch_id,
                        fh,
                        payload.filename,
                        options,
                        on_progress,
                    )
                if not result.reference:
                    raise UploadError(f"gateway returned no reference for {payload.filename}")
            except Exception as exc:
                # Temp file stays on disk for inspection.
                outcome = ItemOutcome.fail(
                    item,
                    exc,
                    filename=payload.filename if payload else None,
                    temp_path=payload.temp_path if payload else None,
                )
                logger.error(
                    f"[{item.number}] {type(exc).__name__} for {item.source_ref}: {exc}"
                )
                await self._events.emit("item_fail", outcome)
                return outcome

            self._remove_temp_file(item, payload.temp_path)
            self._record(item, result)
            outcome = ItemOutcome.ok(item, result)
            logger.info(f"[{item.number}] ✓ {result.filename} -> {result.reference}")
            await self._events.emit("item_complete", outcome)
            return outcome

    async def _create_tag(self, item: UploadItem, gateway: IGatewayClient) -> Optional[int]:
        """Request a tracking tag; failures degrade to an untracked upload."""
        if not self._config.track_uploads:
            return None
        try:
            tag = await gateway.create_tag()
            logger.debug(f"[{item.number}] Tracking upload with tag {tag}")
            return tag
        except Exception as e:
            logger.warning(f"[{item.number}] Could not create tag, uploading untracked: {e}")
            return None

    @staticmethod
    def _remove_temp_file(item: UploadItem, temp_path: Path) -> None:
        try:
            temp_path.unlink()
            logger.debug(f"[{item.number}] Removed temporary file {temp_path}")
        except OSError as e:
            logger.warning(f"[{item.number}] Could not remove temporary file {temp_path}: {e}")

    def _record(self, item: UploadItem, result) -> None:
        """Write the audit record; a log failure never fails the upload."""
        if self._result_logger is None:
            return
        try:
            self._result_logger.record(item, result)
        except LogWriteError as exc:
            logger.error(str(exc))
            print(f"WARNING: {exc}", file=sys.stderr)
