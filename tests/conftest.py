"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import date
from fastapi.testclient import TestClient

from fincalc.main import app


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def start_date():
    """Fixed schedule anchor so payment dates are deterministic."""
    return date(2025, 1, 1)
