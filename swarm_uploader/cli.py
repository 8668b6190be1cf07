"""Command line interface for swarm_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cli_progress import BatchUploadProgressDisplay, render_configuration_summary
from .exceptions import (
    ConfigError,
    InvalidInputError,
    LocalReadError,
    MissingNameError,
    SourceNotFoundError,
)
from .models import (
    MAX_REDUNDANCY_LEVEL,
    MIN_REDUNDANCY_LEVEL,
    UploaderConfig,
    UploadOptions,
    UploadRequest,
    parse_bool,
)
from .orchestrator import UploadOrchestrator
from .services.result_logger import ResultLogger


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _bool_arg(value: str) -> bool:
    try:
        return parse_bool(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"expected a boolean (true/false), got {value!r}"
        ) from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swarm-upload",
        description=(
            "Upload a file to the Swarm network via the file's URL, a local file, "
            "or a .txt file listing such URLs/paths (one per line, optionally "
            "followed by a name)."
        ),
    )
    parser.add_argument(
        "--file-path",
        default=None,
        help="A single URL, a local file, or a .txt file containing a list of URLs/paths",
    )
    parser.add_argument(
        "--filename",
        default=None,
        help="Name given to the file (inferred from the URL/path when omitted)",
    )
    parser.add_argument(
        "--bee-node-url",
        default=None,
        help="URL of the Bee node to use (default from BEE_NODE_URL)",
    )
    parser.add_argument(
        "--stamp-batch-id",
        default=None,
        help="ID of the postage stamp batch to use on the Bee node (default from STAMP_BATCH_ID)",
    )
    parser.add_argument(
        "--encrypt",
        type=_bool_arg,
        default=None,
        metavar="BOOL",
        help="Encrypt the uploaded data; the returned reference includes the decryption key",
    )
    parser.add_argument(
        "--deferred",
        type=_bool_arg,
        default=None,
        metavar="BOOL",
        help="Let the node push the data to the network asynchronously",
    )
    parser.add_argument(
        "--content-type",
        type=_bool_arg,
        default=None,
        metavar="BOOL",
        help="Forward the detected Content-Type so browsers render the file correctly",
    )
    parser.add_argument(
        "--pin",
        type=_bool_arg,
        default=None,
        metavar="BOOL",
        help="Pin the data locally on the Bee node",
    )
    parser.add_argument(
        "--size",
        type=_bool_arg,
        default=None,
        metavar="BOOL",
        help="Forward the detected Content-Length",
    )
    parser.add_argument(
        "--redundancy-level",
        type=int,
        default=None,
        metavar=f"{MIN_REDUNDANCY_LEVEL}-{MAX_REDUNDANCY_LEVEL}",
        help="Erasure coding redundancy level",
    )
    parser.add_argument(
        "--track",
        type=_bool_arg,
        default=None,
        metavar="BOOL",
        help="Create a tag per upload so propagation can be followed (default from SWARM_UPLOAD_TRACK)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of items processed concurrently (default from SWARM_UPLOAD_WORKERS or 4)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for upload result logs (default ./swarm_upload_logs)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"swarm-upload {__version__}",
    )
    return parser


def _build_request(args: argparse.Namespace) -> UploadRequest:
    """Validate parsed arguments; no network activity happens before this passes."""
    file_path = (args.file_path or "").strip()
    if not file_path:
        raise CLIError(
            "File path or location is required. Please provide one using "
            "--file-path <url | path-to-file | path-to-txt-list>."
        )

    bee_node_url = (args.bee_node_url or os.getenv("BEE_NODE_URL") or "").strip()
    if not bee_node_url:
        raise CLIError(
            "Bee node url is required. Please provide one using --bee-node-url <bee-node-url>."
        )

    stamp_batch_id = (args.stamp_batch_id or os.getenv("STAMP_BATCH_ID") or "").strip()
    if not stamp_batch_id:
        raise CLIError(
            "Stamp Batch ID is required. Please provide one using --stamp-batch-id <stamp-batch-id>."
        )

    level = args.redundancy_level
    if level is not None and not MIN_REDUNDANCY_LEVEL <= level <= MAX_REDUNDANCY_LEVEL:
        raise CLIError(
            f"Redundancy level must be between {MIN_REDUNDANCY_LEVEL} and "
            f"{MAX_REDUNDANCY_LEVEL}, got {level}."
        )

    if args.workers is not None and args.workers < 1:
        raise CLIError(f"Worker count must be at least 1, got {args.workers}.")

    return UploadRequest(
        source=file_path,
        explicit_file_name=args.filename,
        bee_node_url=bee_node_url,
        postage_batch_id=stamp_batch_id,
        options=UploadOptions(
            pin=args.pin,
            encrypt=args.encrypt,
            deferred=args.deferred,
            content_type=args.content_type,
            size=args.size,
            redundancy_level=level,
        ),
    )


async def _run_upload(request: UploadRequest, config: UploaderConfig) -> int:
    result_logger = ResultLogger(config.log_dir, config.access_url_prefix)
    display = BatchUploadProgressDisplay(config.access_url_prefix)

    orchestrator = UploadOrchestrator(config=config, result_logger=result_logger)
    orchestrator.on("item_start", display.on_item_start)
    orchestrator.on("item_progress", display.on_item_progress)
    orchestrator.on("item_complete", display.on_item_complete)
    orchestrator.on("item_fail", display.on_item_fail)
    orchestrator.on("finish", display.on_finish)

    try:
        batch = await orchestrator.run(request)
    except (InvalidInputError, MissingNameError, SourceNotFoundError, LocalReadError) as exc:
        display.on_error(exc)
        raise CLIError(str(exc)) from exc

    if batch.uploaded:
        print(f"\nLogs are written to {result_logger.log_path}")
    if batch.all_success:
        return 0

    for outcome in batch.failures:
        print(
            f"ERROR: file No. {outcome.item.number} ({outcome.item.source_ref}) failed: "
            f"{outcome.error_type}: {outcome.error}",
            file=sys.stderr,
        )
    return 1


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    try:
        request = _build_request(args)
        config = UploaderConfig.from_env(
            max_workers=args.workers,
            log_dir=args.log_dir,
            track_uploads=args.track,
        )
    except (CLIError, ConfigError) as exc:
        print(f"\nError: {exc}\n", file=sys.stderr)
        return 1

    options = request.options
    render_configuration_summary(
        {
            "Source": request.source,
            "Filename": request.explicit_file_name or "(inferred)",
            "Bee Node": request.bee_node_url,
            "Stamp Batch": request.postage_batch_id,
            "Pin": options.pin,
            "Encrypt": options.encrypt,
            "Deferred": options.deferred,
            "Content-Type": options.content_type,
            "Size": options.size,
            "Redundancy": options.redundancy_level,
            "Track": "yes" if config.track_uploads else "no",
            "Workers": config.worker_count,
            "Log Dir": str(config.log_dir),
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(request, config))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
