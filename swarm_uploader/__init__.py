"""
swarm_uploader - fetch files from URLs or local paths and upload them to a
Swarm network gateway (Bee node).

Usage:
    from swarm_uploader import UploadOrchestrator, UploadRequest, UploadOptions

    request = UploadRequest(
        source="https://example.com/report.pdf",
        bee_node_url="http://localhost:1633",
        postage_batch_id="f1e4...",
        options=UploadOptions(pin=True),
    )
    batch = await UploadOrchestrator().run(request)
    for outcome in batch.outcomes:
        print(outcome.filename, outcome.result.reference if outcome.success else outcome.error)
"""
from .orchestrator import UploadOrchestrator, BatchUploadResult
from .models import (
    FetchedPayload,
    GatewayUploadOptions,
    ItemOutcome,
    TransferProgress,
    UploadItem,
    UploadOptions,
    UploadRequest,
    UploadResult,
    UploadStatus,
    UploaderConfig,
)
from .exceptions import (
    ConfigError,
    DownloadError,
    InvalidInputError,
    LocalReadError,
    LogWriteError,
    MissingNameError,
    SourceNotFoundError,
    UploadError,
    UploaderError,
)
from .services import (
    BeeGatewayClient,
    InputResolver,
    ResultLogger,
    SourceFetcher,
)

__version__ = "0.3.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "BatchUploadResult",
    # Models
    "FetchedPayload",
    "GatewayUploadOptions",
    "ItemOutcome",
    "TransferProgress",
    "UploadItem",
    "UploadOptions",
    "UploadRequest",
    "UploadResult",
    "UploadStatus",
    "UploaderConfig",
    # Errors
    "ConfigError",
    "DownloadError",
    "InvalidInputError",
    "LocalReadError",
    "LogWriteError",
    "MissingNameError",
    "SourceNotFoundError",
    "UploadError",
    "UploaderError",
    # Services
    "BeeGatewayClient",
    "InputResolver",
    "ResultLogger",
    "SourceFetcher",
]
