"""Pytest configuration and shared fixtures."""

import os
import shutil
import tempfile

import pytest
import yaml

from personal_server.config import ConfigManager
from personal_server.utils.process import CancellationToken


@pytest.fixture
def temp_directory():
    """Create a temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    # Cleanup
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def sample_config_data():
    """Sample configuration for testing."""
    return {
        "general": {
            "domain": "example.org",
            "namespaces": ["infra"],
        },
        "backup": {
            "webdav_host": "https://dav.example.org/backups",
            "webdav_username": "backup-user",
            "webdav_password": "dav-secret",
            "passphrase": "correct horse battery staple",
            "cron": "0 3 * * *",
        },
        "modules": [
            {"name": "postgres", "namespace": "databases"},
            {"name": "redis", "secrets": {"redis_password": "redis-secret"}},
            {"name": "gitea"},
            {"name": "cloudflare"},
        ],
        "pet-projects": [],
    }


@pytest.fixture
def config_file(temp_directory, sample_config_data):
    """Write the sample configuration to disk."""
    path = os.path.join(temp_directory, "config.yaml")
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(sample_config_data, f)
    return path


@pytest.fixture
def sample_config(config_file):
    """Loaded sample configuration."""
    return ConfigManager().load_config(config_file)


@pytest.fixture
def token():
    """Fresh cancellation token."""
    return CancellationToken()


@pytest.fixture
def require_binaries():
    """Skip a test when one of the named executables is not installed."""

    def _require(*names):
        for name in names:
            if shutil.which(name) is None:
                pytest.skip(f"{name} is not installed")

    return _require


@pytest.fixture(autouse=True)
def isolate_filesystem(temp_directory, monkeypatch):
    """Isolate filesystem operations to temporary directory."""
    monkeypatch.chdir(temp_directory)
    return temp_directory
