from __future__ import annotations

import random

import numpy as np
import pytest
from hypothesis import HealthCheck, settings

from chunkmap.utils.settings import reload_settings

# ---- Markers ------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "hypothesis: property-based test")
    config.addinivalue_line("markers", "processes: starts loky worker processes")


# ---- Settings isolation -------------------------------------------


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point settings at an absent file so defaults apply in every test."""
    monkeypatch.setenv("CHUNKMAP_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("CHUNKMAP_WORKERS", raising=False)
    monkeypatch.delenv("CHUNKMAP_BACKEND", raising=False)
    reload_settings()
    yield
    reload_settings()


# ---- Deterministic Testing Configuration ---------------------

# Global deterministic seed
DETERMINISTIC_SEED = 42


@pytest.fixture(autouse=True)
def set_deterministic_seed():
    """Set deterministic seed for all tests"""
    random.seed(DETERMINISTIC_SEED)
    np.random.seed(DETERMINISTIC_SEED)
    yield
    # Reset after test
    random.seed()
    np.random.seed()


# Hypothesis settings for all property-based tests
settings.register_profile(
    "deterministic",
    deadline=None,
    max_examples=50,
    derandomize=True,
    database=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("deterministic")
