"""Test the diagnostic helpers."""

import logging

import pytest
import jax.numpy as jnp
from numpy.testing import assert_allclose
from soilbento.core import Clock, VarDims, allocate, prognostic
from soilbento.diagnostics import (
    check_finite,
    column_integral,
    conservation_residual,
    find_nonfinite
)

def test_import():
    assert True

@pytest.fixture
def state(grid):
    return allocate((prognostic('heat', VarDims.COLUMN, default = 2.0),), grid.shape)

def test_column_integral(grid, state):
    assert_allclose(column_integral(grid, state.heat), [2.0, 2.0])

def test_conservation_residual(grid, state, caplog):
    after = state.with_clock(Clock(time = 10.0))
    assert conservation_residual(grid, state, after, 'heat') == 0.0

    # A boundary flux of 0.1 over 10 s adds 1.0 to each column
    after = after.set('heat', 3.0)
    assert_allclose(conservation_residual(grid, state, after, 'heat', boundary_flux = 0.1), 0.0, atol = 1e-12)

    with caplog.at_level(logging.WARNING, logger = 'soilbento'):
        residual = conservation_residual(grid, state, after, 'heat')

    assert_allclose(residual, 0.5)
    assert "changed by a relative" in caplog.text

def test_find_nonfinite(state):
    assert find_nonfinite(state) == []

    state = state.set('heat', jnp.inf)
    assert find_nonfinite(state) == ['heat']

    state = state.add_tendency('heat', jnp.nan)
    assert find_nonfinite(state) == ['heat', 'tendency of heat']

def test_check_finite(state, caplog):
    with caplog.at_level(logging.WARNING, logger = 'soilbento'):
        assert check_finite(state) == []
        assert check_finite(state.set('heat', jnp.nan)) == ['heat']

    assert caplog.text.count("Non-finite") == 1
