"""Tests for swarm_uploader CLI helpers."""
import logging
import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from swarm_uploader.cli import (
    CLIError,
    _build_parser,
    _build_request,
    _load_env_file,
    _run_upload,
    _setup_logging,
    run_cli,
)
from swarm_uploader.exceptions import SourceNotFoundError
from swarm_uploader.models import (
    ItemOutcome,
    UploaderConfig,
    UploadItem,
    UploadRequest,
    UploadResult,
)
from swarm_uploader.orchestrator import BatchUploadResult

REQUIRED = [
    "--file-path", "https://example.com/a.bin",
    "--bee-node-url", "http://localhost:1633",
    "--stamp-batch-id", "batch-1",
]


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("BEE_NODE_URL", "STAMP_BATCH_ID", "SWARM_UPLOAD_WORKERS", "SWARM_UPLOAD_TRACK"):
        # set first so values written by _load_env_file are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    yield
    logging.disable(logging.NOTSET)
    logging.getLogger().setLevel(logging.WARNING)


def _args(*argv):
    return _build_parser().parse_args(list(argv))


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# node settings",
                "BEE_NODE_URL=http://localhost:1633",
                "STAMP_BATCH_ID='abc123'",
                "export SWARM_UPLOAD_WORKERS=8",
                "not a pair",
            ]
        ),
        encoding="utf-8",
    )

    _load_env_file(env_path)

    assert os.environ["BEE_NODE_URL"] == "http://localhost:1633"
    assert os.environ["STAMP_BATCH_ID"] == "abc123"
    assert os.environ["SWARM_UPLOAD_WORKERS"] == "8"


def test_load_env_file_keeps_existing_values(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("BEE_NODE_URL=http://from-file:1633\n", encoding="utf-8")
    monkeypatch.setenv("BEE_NODE_URL", "http://from-shell:1633")

    _load_env_file(env_path)

    assert os.environ["BEE_NODE_URL"] == "http://from-shell:1633"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="not found"):
        _load_env_file(tmp_path / "nope.env")


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_explicit_level():
    assert _setup_logging(debug=False, silent=False, log_level="info") == "INFO"


class TestBuildRequest:
    def test_minimal(self):
        request = _build_request(_args(*REQUIRED))

        assert request.source == "https://example.com/a.bin"
        assert request.bee_node_url == "http://localhost:1633"
        assert request.postage_batch_id == "batch-1"
        assert request.explicit_file_name is None
        assert request.options.pin is None
        assert request.options.redundancy_level is None

    def test_all_options(self):
        request = _build_request(
            _args(
                *REQUIRED,
                "--filename", "myfile",
                "--pin", "true",
                "--encrypt", "false",
                "--deferred", "yes",
                "--content-type", "1",
                "--size", "off",
                "--redundancy-level", "2",
            )
        )

        assert request.explicit_file_name == "myfile"
        options = request.options
        assert options.pin is True
        assert options.encrypt is False
        assert options.deferred is True
        assert options.content_type is True
        assert options.size is False
        assert options.redundancy_level == 2

    @pytest.mark.parametrize(
        "missing,message",
        [
            ("--file-path", "File path or location is required"),
            ("--bee-node-url", "Bee node url is required"),
            ("--stamp-batch-id", "Stamp Batch ID is required"),
        ],
    )
    def test_missing_required(self, missing, message):
        argv = list(REQUIRED)
        position = argv.index(missing)
        del argv[position:position + 2]

        with pytest.raises(CLIError, match=message):
            _build_request(_args(*argv))

    def test_environment_fallbacks(self, monkeypatch):
        monkeypatch.setenv("BEE_NODE_URL", "http://env-node:1633")
        monkeypatch.setenv("STAMP_BATCH_ID", "env-batch")

        request = _build_request(_args("--file-path", "list.txt"))

        assert request.bee_node_url == "http://env-node:1633"
        assert request.postage_batch_id == "env-batch"

    @pytest.mark.parametrize("level", ["-1", "5"])
    def test_redundancy_out_of_range(self, level):
        with pytest.raises(CLIError, match="between 0 and 4"):
            _build_request(_args(*REQUIRED, "--redundancy-level", level))

    def test_workers_must_be_positive(self):
        with pytest.raises(CLIError, match="at least 1"):
            _build_request(_args(*REQUIRED, "--workers", "0"))


class TestRunCli:
    def test_no_arguments_prints_help(self, capsys):
        assert run_cli([]) == 0
        assert "--file-path" in capsys.readouterr().out

    def test_help_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_cli(["--help"])
        assert exc_info.value.code == 0
        assert "--redundancy-level" in capsys.readouterr().out

    def test_invalid_boolean_is_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_cli([*REQUIRED, "--pin", "maybe"])
        assert exc_info.value.code == 2
        assert "expected a boolean" in capsys.readouterr().err

    def test_invalid_redundancy_makes_no_network_calls(self, capsys):
        with patch("swarm_uploader.cli.UploadOrchestrator") as orchestrator_cls:
            code = run_cli([*REQUIRED, "--redundancy-level", "5"])

        assert code == 1
        orchestrator_cls.assert_not_called()
        assert "Redundancy level must be between 0 and 4" in capsys.readouterr().err

    def test_missing_stamp_returns_error(self, capsys):
        code = run_cli(["--file-path", "x.txt", "--bee-node-url", "http://localhost:1633"])

        assert code == 1
        assert "Stamp Batch ID is required" in capsys.readouterr().err

    def test_invalid_env_config(self, monkeypatch, capsys):
        monkeypatch.setenv("SWARM_UPLOAD_WORKERS", "many")

        assert run_cli(REQUIRED) == 1
        assert "SWARM_UPLOAD_WORKERS" in capsys.readouterr().err

    def test_runs_upload(self, tmp_path):
        with patch("swarm_uploader.cli._run_upload", new=AsyncMock(return_value=0)) as run_upload:
            code = run_cli([*REQUIRED, "--workers", "2", "--log-dir", str(tmp_path / "logs")])

        assert code == 0
        request, config = run_upload.await_args.args
        assert request.source == "https://example.com/a.bin"
        assert config.max_workers == 2
        assert config.log_dir == tmp_path / "logs"

    def test_loads_default_env_file(self, tmp_path):
        (tmp_path / ".env").write_text(
            "BEE_NODE_URL=http://dotenv:1633\nSTAMP_BATCH_ID=dotenv-batch\n",
            encoding="utf-8",
        )

        with patch("swarm_uploader.cli._run_upload", new=AsyncMock(return_value=0)) as run_upload:
            code = run_cli(["--file-path", "https://example.com/a.bin"])

        assert code == 0
        request, _ = run_upload.await_args.args
        assert request.bee_node_url == "http://dotenv:1633"
        assert request.postage_batch_id == "dotenv-batch"

    def test_missing_env_file(self, tmp_path, capsys):
        code = run_cli([*REQUIRED, "--env-file", str(tmp_path / "missing.env")])

        assert code == 1
        assert "env file not found" in capsys.readouterr().err

    def test_resolution_error_returns_one(self, capsys):
        with patch(
            "swarm_uploader.cli._run_upload",
            new=AsyncMock(side_effect=CLIError("could not find file at nope.txt")),
        ):
            code = run_cli([*REQUIRED])

        assert code == 1
        assert "nope.txt" in capsys.readouterr().err


def _request():
    return UploadRequest(
        source="list.txt",
        bee_node_url="http://localhost:1633",
        postage_batch_id="batch-1",
    )


def _orchestrator_returning(batch=None, error=None):
    instance = MagicMock()
    instance.on.return_value = instance
    instance.run = AsyncMock(return_value=batch, side_effect=error)
    return MagicMock(return_value=instance)


class TestRunUpload:
    @pytest.mark.asyncio
    async def test_all_success(self, tmp_path):
        item = UploadItem(index=0, source_ref="https://example.com/a.bin")
        batch = BatchUploadResult(
            outcomes=[ItemOutcome.ok(item, UploadResult(reference="ref", filename="a.bin"))]
        )
        config = UploaderConfig(log_dir=tmp_path)

        with patch("swarm_uploader.cli.UploadOrchestrator", _orchestrator_returning(batch)):
            assert await _run_upload(_request(), config) == 0

    @pytest.mark.asyncio
    async def test_failures_return_one(self, tmp_path, capsys):
        first = UploadItem(index=0, source_ref="https://example.com/a.bin")
        second = UploadItem(index=1, source_ref="https://example.com/b.bin")
        batch = BatchUploadResult(
            outcomes=[
                ItemOutcome.ok(first, UploadResult(reference="ref", filename="a.bin")),
                ItemOutcome.fail(second, RuntimeError("HTTP 500")),
            ]
        )
        config = UploaderConfig(log_dir=tmp_path)

        with patch("swarm_uploader.cli.UploadOrchestrator", _orchestrator_returning(batch)):
            assert await _run_upload(_request(), config) == 1

        err = capsys.readouterr().err
        assert "file No. 2" in err
        assert "https://example.com/b.bin" in err
        assert "HTTP 500" in err

    @pytest.mark.asyncio
    async def test_resolution_error_becomes_cli_error(self, tmp_path):
        orchestrator_cls = _orchestrator_returning(
            error=SourceNotFoundError("could not find file at nope.txt")
        )
        config = UploaderConfig(log_dir=Path(tmp_path))

        with patch("swarm_uploader.cli.UploadOrchestrator", orchestrator_cls):
            with pytest.raises(CLIError, match="nope.txt"):
                await _run_upload(_request(), config)
