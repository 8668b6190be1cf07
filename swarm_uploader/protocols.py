"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator only depends on these small capabilities, so the Bee
gateway, the fetcher and the result log can be swapped in tests.
"""
from typing import BinaryIO, Callable, Optional, Protocol, runtime_checkable

from .models import (
    FetchedPayload,
    GatewayUploadOptions,
    TransferProgress,
    UploadItem,
    UploadResult,
)

ProgressCallback = Callable[[TransferProgress], None]


@runtime_checkable
class IGatewayClient(Protocol):
    """Interface for the storage network gateway."""

    async def create_tag(self) -> int:
        """Create a tracking identifier for a future upload."""
        ...

    async def upload_file(
        self,
        batch_id: str,
        stream: BinaryIO,
        filename: str,
        options: Optional[GatewayUploadOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Upload file content and return its content reference."""
        ...


@runtime_checkable
class ISourceFetcher(Protocol):
    """Interface for retrieving a source into a temporary file."""

    async def fetch(
        self,
        item: UploadItem,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> FetchedPayload:
        ...


@runtime_checkable
class IResultLogger(Protocol):
    """Interface for the upload audit trail."""

    def record(self, item: UploadItem, result: UploadResult) -> None:
        ...
