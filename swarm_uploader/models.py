"""
Models for swarm_uploader.

Immutable dataclasses; absence (None) of an optional field means
"not forwarded" to the gateway.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError


MIN_REDUNDANCY_LEVEL = 0
MAX_REDUNDANCY_LEVEL = 4

DEFAULT_ACCESS_URL_PREFIX = "https://gateway.ethswarm.org/access/"
DEFAULT_LOG_DIR_NAME = "swarm_upload_logs"


class UploadStatus(Enum):
    """Per-item outcome status."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadOptions:
    """Optional upload flags given on the command line."""
    pin: Optional[bool] = None
    encrypt: Optional[bool] = None
    deferred: Optional[bool] = None
    content_type: Optional[bool] = None  # forward detected MIME type
    size: Optional[bool] = None  # forward detected Content-Length
    redundancy_level: Optional[int] = None

    def __post_init__(self):
        level = self.redundancy_level
        if level is not None and not MIN_REDUNDANCY_LEVEL <= level <= MAX_REDUNDANCY_LEVEL:
            raise ValueError(
                f"redundancy level must be between {MIN_REDUNDANCY_LEVEL} and "
                f"{MAX_REDUNDANCY_LEVEL}, got {level}"
            )


@dataclass(frozen=True)
class UploadRequest:
    """One CLI invocation."""
    source: str
    bee_node_url: str
    postage_batch_id: str
    explicit_file_name: Optional[str] = None
    options: UploadOptions = field(default_factory=UploadOptions)


@dataclass(frozen=True)
class UploadItem:
    """A single resolved source, in resolution order."""
    index: int
    source_ref: str
    display_name: Optional[str] = None  # None: inferred at fetch time

    @property
    def number(self) -> int:
        return self.index + 1


@dataclass(frozen=True)
class FetchedPayload:
    """Local temporary copy of one item's content."""
    item: UploadItem
    temp_path: Path
    display_name: str
    extension: str = ""
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None

    @property
    def filename(self) -> str:
        """Name stored on the network."""
        if Path(self.display_name).suffix or not self.extension:
            return self.display_name
        return f"{self.display_name}{self.extension}"


@dataclass(frozen=True)
class GatewayUploadOptions:
    """Options resolved against a fetched payload, as sent to the gateway."""
    pin: Optional[bool] = None
    encrypt: Optional[bool] = None
    deferred: Optional[bool] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    redundancy_level: Optional[int] = None
    tag: Optional[int] = None

    @classmethod
    def build(
        cls,
        options: UploadOptions,
        payload: FetchedPayload,
        tag: Optional[int] = None,
    ) -> "GatewayUploadOptions":
        """
        Resolve the size/content-type flags against discovered values.

        A flag that is set but whose value was not discovered is omitted
        rather than sent as a false or zero value.
        """
        content_type = payload.content_type if options.content_type else None
        size = payload.size_bytes if options.size else None
        return cls(
            pin=options.pin,
            encrypt=options.encrypt,
            deferred=options.deferred,
            content_type=content_type or None,
            size=size,
            redundancy_level=options.redundancy_level,
            tag=tag,
        )


@dataclass(frozen=True)
class UploadResult:
    """Immutable result returned by the gateway."""
    reference: str
    filename: str
    tag_uid: Optional[int] = None

    @property
    def success(self) -> bool:
        return bool(self.reference)


@dataclass(frozen=True)
class ItemOutcome:
    """Outcome of processing one item (success or failure)."""
    item: UploadItem
    status: UploadStatus
    filename: str
    result: Optional[UploadResult] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    temp_path: Optional[Path] = None  # retained on upload failure

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @classmethod
    def ok(cls, item: UploadItem, result: UploadResult):
        return cls(
            item=item,
            status=UploadStatus.SUCCESS,
            filename=result.filename,
            result=result,
        )

    @classmethod
    def fail(
        cls,
        item: UploadItem,
        error: BaseException,
        filename: Optional[str] = None,
        temp_path: Optional[Path] = None,
    ):
        return cls(
            item=item,
            status=UploadStatus.FAILED,
            filename=filename or item.display_name or item.source_ref,
            error=str(error),
            error_type=type(error).__name__,
            temp_path=temp_path,
        )


@dataclass
class TransferProgress:
    """Progress information for a single transfer."""
    phase: str  # download, upload
    filename: str
    bytes_done: int = 0
    total_bytes: Optional[int] = None

    @property
    def percent(self) -> Optional[float]:
        if not self.total_bytes:
            return None
        return min(self.bytes_done * 100.0 / self.total_bytes, 100.0)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def parse_bool(value: str) -> bool:
    """Parse a CLI/env boolean (true/false, yes/no, on/off, 1/0)."""
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse_bool(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a boolean, got {raw!r}") from exc


@dataclass(frozen=True)
class UploaderConfig:
    """Immutable runtime configuration."""
    max_workers: int = 4
    download_timeout: float = 60.0
    upload_timeout: float = 300.0
    max_retries: int = 3
    chunk_size: int = 64 * 1024
    progress_step: int = 5  # percent between download progress events
    log_dir: Path = Path(DEFAULT_LOG_DIR_NAME)
    access_url_prefix: str = DEFAULT_ACCESS_URL_PREFIX
    temp_dir: Optional[Path] = None  # system temp dir when None
    track_uploads: bool = False

    @property
    def worker_count(self) -> int:
        return max(1, self.max_workers)

    @classmethod
    def from_env(cls, **overrides) -> "UploaderConfig":
        """Build config from SWARM_UPLOAD_* environment variables."""
        temp_dir = os.getenv("SWARM_UPLOAD_TEMP_DIR")
        values = {
            "max_workers": _env_int("SWARM_UPLOAD_WORKERS", cls.max_workers),
            "download_timeout": _env_float("SWARM_UPLOAD_DOWNLOAD_TIMEOUT", cls.download_timeout),
            "upload_timeout": _env_float("SWARM_UPLOAD_UPLOAD_TIMEOUT", cls.upload_timeout),
            "log_dir": Path(os.getenv("SWARM_UPLOAD_LOG_DIR") or Path.cwd() / DEFAULT_LOG_DIR_NAME),
            "access_url_prefix": os.getenv("SWARM_UPLOAD_ACCESS_URL") or cls.access_url_prefix,
            "temp_dir": Path(temp_dir) if temp_dir else None,
            "track_uploads": _env_bool("SWARM_UPLOAD_TRACK", cls.track_uploads),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
