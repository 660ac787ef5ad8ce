"""Pytest configuration and fixtures for the clt_skew tests."""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from clt_skew.populations import Beta, Exponential, Gamma, LogNormal, Normal

CONFIG_DIR = Path(__file__).parent.parent / "configs"


@pytest.fixture
def all_families():
    """One valid member of every supported family."""
    return [Gamma(4.0, 0.5), LogNormal(0.0, 0.5), Exponential(2.0), Normal(1.0, 2.0), Beta(2.0, 5.0)]


@pytest.fixture
def small_grid():
    return [Normal(0.0, 1.0), Exponential(1.0), Beta(2.0, 5.0)], [2, 5, 30]


@pytest.fixture
def config_dir():
    return CONFIG_DIR
