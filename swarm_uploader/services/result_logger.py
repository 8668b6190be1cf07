"""
Result Logger - human-readable audit trail of completed uploads.

One plain-text file per run; every successful item appends one block.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..exceptions import LogWriteError
from ..models import DEFAULT_ACCESS_URL_PREFIX, UploadItem, UploadResult

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 30


def access_url(reference: str, prefix: str = DEFAULT_ACCESS_URL_PREFIX) -> str:
    """Gateway URL under which the uploaded content can be opened."""
    if not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return f"{prefix}{reference}"


def format_record(item: UploadItem, result: UploadResult, prefix: str = DEFAULT_ACCESS_URL_PREFIX) -> str:
    lines = [
        f"{SEPARATOR} File {item.number} {SEPARATOR}",
        f"Filename: {result.filename}",
        f"ReferenceHash: {result.reference}",
        f"Access file: {access_url(result.reference, prefix)}",
    ]
    if result.tag_uid is not None:
        lines.append(f"TagUID: {result.tag_uid}")
    return "\n".join(lines) + "\n\n"


class ResultLogger:
    """
    Appends upload records to ``<log_dir>/upload-<run stamp>.txt``.

    The directory is created on first use; existing entries are never
    overwritten.
    """

    def __init__(
        self,
        log_dir: Path,
        access_url_prefix: str = DEFAULT_ACCESS_URL_PREFIX,
        run_stamp: Optional[str] = None,
    ):
        self._log_dir = Path(log_dir)
        self._prefix = access_url_prefix
        stamp = run_stamp or datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        self._log_path = self._log_dir / f"upload-{stamp}.txt"

    @property
    def log_path(self) -> Path:
        return self._log_path

    def record(self, item: UploadItem, result: UploadResult) -> None:
        """
        Append one record.

        Raises:
            LogWriteError: directory or file could not be written
        """
        block = format_record(item, result, self._prefix)
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            with open(self._log_path, "a", encoding="utf-8") as fh:
                fh.write(block)
        except OSError as exc:
            raise LogWriteError(
                f"could not write log for file No. {item.number} ({result.filename}) "
                f"to {self._log_path}: {exc}"
            ) from exc
        logger.info(f"Log {item.number} written to {self._log_path}")
