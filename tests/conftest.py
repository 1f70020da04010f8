"""Pytest configuration for AirPods BLE tests."""

import os
from pathlib import Path

import pytest


def _load_dotenv() -> None:
    """Load .env file if it exists."""
    env_path = Path(__file__).parent.parent / ".env"
    if env_path.exists():
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    os.environ.setdefault(key.strip(), value.strip())


# Load .env at import time
_load_dotenv()


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command-line options for E2E tests."""
    parser.addoption(
        "--adapter",
        action="store",
        default=None,
        help="Local Bluetooth adapter for E2E tests (e.g., hci1)",
    )
    parser.addoption(
        "--proxy-host",
        action="store",
        default=None,
        help="ESPHome proxy hostname/IP for remote BLE scanning",
    )
    parser.addoption(
        "--proxy-key",
        action="store",
        default=None,
        help="ESPHome proxy API key (noise_psk)",
    )


@pytest.fixture
def adapter(request: pytest.FixtureRequest) -> str | None:
    """Fixture providing the local adapter from CLI, env, or None for the default."""
    return request.config.getoption("--adapter") or os.environ.get("AIRPODS_ADAPTER")


@pytest.fixture
def proxy_host(request: pytest.FixtureRequest) -> str | None:
    """Fixture providing the proxy host from CLI or env."""
    return request.config.getoption("--proxy-host") or os.environ.get("ESPHOME_PROXY_HOST")


@pytest.fixture
def proxy_key(request: pytest.FixtureRequest) -> str | None:
    """Fixture providing the proxy API key from CLI or env."""
    return request.config.getoption("--proxy-key") or os.environ.get("ESPHOME_API_KEY")
