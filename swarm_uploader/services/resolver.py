"""
Input resolution - turns the CLI --file-path value into upload items.

A source is either a single URL, a single local file, or a local ``.txt``
manifest whose non-empty lines each name one item::

    https://example.com/a.bin myname
    https://example.com/report.pdf
    ./local/photo.jpg holiday
"""
import logging
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import List, Optional
from urllib.parse import unquote, urlsplit

from ..exceptions import (
    InvalidInputError,
    LocalReadError,
    MissingNameError,
    SourceNotFoundError,
)
from ..models import UploadItem

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"^(https?|ftp)://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
MANIFEST_EXTENSION = ".txt"
TIMESTAMP_NAME_FORMAT = "%Y-%m-%dT%H-%M-%SZ"


def is_valid_url(value: str) -> bool:
    """Check if value is an http, https or ftp URL."""
    return bool(value) and URL_PATTERN.match(value) is not None


def is_manifest(path: Path) -> bool:
    """A local file is a manifest iff its extension is exactly .txt."""
    return path.suffix.lower() == MANIFEST_EXTENSION


def _last_segment(ref: str) -> str:
    if is_valid_url(ref):
        path = urlsplit(ref).path
        segment = PurePosixPath(path).name if not path.endswith("/") else ""
    else:
        segment = Path(ref).name
    return unquote(segment)


def infer_name(ref: str, timestamp_fallback: bool = True) -> str:
    """
    Infer a display name from a URL or file path.

    Takes the last path segment, percent-decodes it and cuts it at the
    first dot ("report.pdf" -> "report"). Falls back to a dot-free UTC
    timestamp ("2026-10-19T05-24-13Z") when nothing usable remains.

    Raises:
        MissingNameError: nothing inferable and timestamp_fallback is off
    """
    name = _last_segment(ref).split(".")[0].strip()
    if name:
        return name
    if not timestamp_fallback:
        raise MissingNameError(
            f"cannot infer a filename from {ref!r}; provide one with --filename"
        )
    return datetime.now(timezone.utc).strftime(TIMESTAMP_NAME_FORMAT)


class InputResolver:
    """Resolves a source string into an ordered list of UploadItems."""

    def __init__(self, cwd: Optional[Path] = None, timestamp_fallback: bool = True):
        self._cwd = Path(cwd) if cwd else None
        self._timestamp_fallback = timestamp_fallback

    def _normalize(self, source: str, base: Optional[Path] = None) -> Path:
        path = Path(source).expanduser()
        if path.is_absolute():
            return path
        return (base or self._cwd or Path.cwd()) / path

    def resolve(self, source: str, explicit_file_name: Optional[str] = None) -> List[UploadItem]:
        """
        Resolve a source into upload items, in order.

        Raises:
            InvalidInputError: blank source, directory, or empty manifest
            SourceNotFoundError: local path does not exist
            MissingNameError: no name given and none inferable
            LocalReadError: manifest could not be read
        """
        source = (source or "").strip()
        name = (explicit_file_name or "").strip() or None
        if not source:
            raise InvalidInputError("source is empty: expected a URL or a local file path")

        if is_valid_url(source):
            self._check_name(source, name)
            logger.debug(f"Resolved URL source {source}")
            return [UploadItem(index=0, source_ref=source, display_name=name)]

        path = self._normalize(source)
        if not path.exists():
            raise SourceNotFoundError(
                f"source {source!r} is neither a valid URL nor an existing file ({path})"
            )
        if not path.is_file():
            raise InvalidInputError(f"source {source!r} is not a regular file ({path})")

        if not is_manifest(path):
            self._check_name(str(path), name)
            return [UploadItem(index=0, source_ref=str(path), display_name=name)]

        items = self._read_manifest(path)
        logger.info(f"Manifest {path} lists {len(items)} item(s)")
        return items

    def _check_name(self, ref: str, name: Optional[str]) -> None:
        if name is None:
            infer_name(ref, timestamp_fallback=self._timestamp_fallback)

    def _read_manifest(self, path: Path) -> List[UploadItem]:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise LocalReadError(f"could not read manifest {path}: {exc}") from exc

        lines = [line.strip() for line in content.splitlines()]
        lines = [line for line in lines if line]
        if not lines:
            raise InvalidInputError(f"manifest {path} does not list any source")

        items = []
        for index, line in enumerate(lines):
            parts = line.split(None, 1)
            ref = parts[0]
            name = parts[1].strip() if len(parts) > 1 else None
            if not is_valid_url(ref):
                # Existence is checked at fetch time so one bad line
                # fails only its own item.
                ref = str(self._normalize(ref, base=path.parent))
            items.append(UploadItem(index=index, source_ref=ref, display_name=name))
        return items
