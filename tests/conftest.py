"""
conftest.py
~~~~~~~~~~~

Shared fixtures for the neural_net test suite.
"""

import os
import sys

import numpy as np
import pytest

# Make the package importable without installing it
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from neural_net import Network, ActivationType


@pytest.fixture
def temp_model_dir(tmp_path):
    """Create a temporary directory for parameter files."""
    model_dir = tmp_path / "test_models"
    model_dir.mkdir()
    return str(model_dir)


@pytest.fixture
def simple_network():
    """Create a small seeded 3-layer network for testing."""
    return Network([3, 4, 2], ActivationType.SIGMOID, rng=0)


@pytest.fixture
def trained_network(simple_network):
    """Create a small network with some training applied."""
    rng = np.random.default_rng(1)
    for i in range(10):
        x = rng.standard_normal(3)
        y = np.zeros(2)
        y[i % 2] = 1.0
        simple_network.train(x, y, 0.1)
    return simple_network
