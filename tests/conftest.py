"""Shared fixtures for the SoilBento test suite."""

import jax

jax.config.update("jax_enable_x64", True)

import pytest
from soilbento.utils import ColumnGrid, UniformSpacing


@pytest.fixture
def grid():
    return ColumnGrid(UniformSpacing(dz = 0.1, N = 10), num_columns = 2)
