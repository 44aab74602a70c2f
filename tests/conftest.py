"""Pytest configuration and shared fixtures for photoprint tests."""

import numpy as np
import pytest

from photoprint import pack_rgba


def pytest_addoption(parser):
    parser.addoption(
        "--run-gpu", action="store_true", default=False,
        help="Run tests that require a CUDA GPU",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "gpu: requires a CUDA-capable GPU")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--run-gpu"):
        skip_gpu = pytest.mark.skip(reason="needs --run-gpu option to run")
        for item in items:
            if "gpu" in item.keywords:
                item.add_marker(skip_gpu)


@pytest.fixture
def four_colour_image():
    """2x2 image: red, green / blue, white (row-major)."""
    rgba = np.array([
        [[255, 0, 0, 255], [0, 255, 0, 255]],
        [[0, 0, 255, 255], [255, 255, 255, 255]],
    ], dtype=np.uint8)
    return pack_rgba(rgba), 2, 2
