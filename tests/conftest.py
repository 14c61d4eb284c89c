"""Pytest configuration and fixtures for romintersect tests.

This module provides pytest hooks and fixtures that apply across all tests.
"""

import gc
import logging

import numpy as np
import pytest

console_logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def seed_numpy_random():
    """Make randomly sampled test points reproducible."""
    np.random.seed(0)
    yield


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_teardown(item, nextitem):
    """Force garbage collection after each test to clean up Drake C++ objects."""
    gc.collect()
    console_logger.debug(f"Garbage collection completed after test: {item.nodeid}")
