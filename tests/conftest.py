"""Shared fixtures for swarm_uploader tests."""
import pytest

from swarm_uploader.models import UploaderConfig


@pytest.fixture
def upload_config(tmp_path):
    """Config writing temp files and logs under tmp_path."""
    return UploaderConfig(
        max_workers=4,
        temp_dir=tmp_path / "tmp",
        log_dir=tmp_path / "logs",
        max_retries=1,
    )


@pytest.fixture
def temp_files(upload_config):
    """Return a callable listing temp files currently on disk."""
    def _list():
        if not upload_config.temp_dir.exists():
            return []
        return sorted(upload_config.temp_dir.iterdir())
    return _list
