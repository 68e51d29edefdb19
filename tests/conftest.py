"""
Pytest configuration and shared fixtures for ws-loadkit tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator, Dict

# Add src to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ws_loadkit.utils.metrics import MetricsCollector


TEST_SECRET = "secret"

TEST_CONFIG = {
    "jwt_secret": TEST_SECRET,
    "ws_url": "ws://localhost:8000/connection/websocket",
    "api_url": "http://localhost:8000/api/broadcast",
    "api_key": "test-api-key",
    "vus": 10,
    "extra_channels_amount": 2,
    "user_per_extra_channel": 3,
    "logging": {
        "level": "DEBUG",
        "format": "console"
    }
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def empty_env() -> Dict[str, str]:
    """Environment without any harness variables."""
    return {}


@pytest.fixture
def collector() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def secret() -> str:
    return TEST_SECRET
