"""Test the HomogeneousStratigraphy component."""

import pytest
import jax.numpy as jnp
from numpy.testing import assert_allclose
from soilbento.components import HomogeneousStratigraphy, ConstantSoilPorosity, SURFEXSoilPorosity
from soilbento.composition import SoilTexture
from soilbento.core import VarDims, allocate, input_variable

def test_import():
    assert True

@pytest.fixture
def state(grid):
    model = HomogeneousStratigraphy(grid)
    variables = model.variables() + (
        input_variable('soil_organic_carbon', VarDims.COLUMN, default = 65.0),
    )
    return allocate(variables, grid.shape)

def test_variables(grid):
    names = [var.name for var in HomogeneousStratigraphy(grid).variables()]
    assert names == ['porosity', 'organic_fraction']

def test_compute_auxiliary(grid, state):
    model = HomogeneousStratigraphy(grid)
    state = model.compute_auxiliary(state)

    # 65 / ((1 - 0.9) * 1300)
    assert_allclose(state.organic_fraction, 0.5)
    assert_allclose(state.porosity, 0.5 * 0.49 + 0.5 * 0.9)

def test_mineral_soil_without_carbon(grid):
    model = HomogeneousStratigraphy(grid)
    state = model.compute_auxiliary(allocate(model.variables(), grid.shape))

    assert_allclose(state.organic_fraction, 0.0)
    assert_allclose(state.porosity, 0.49)

def test_organic_fraction_is_limited(grid, state):
    model = HomogeneousStratigraphy(grid)
    state = model.compute_auxiliary(state.set('soil_organic_carbon', 1000.0))

    assert_allclose(state.organic_fraction, 1.0)
    assert_allclose(state.porosity, 0.9)

def test_surfex_porosity(grid):
    model = HomogeneousStratigraphy(grid, texture = 'sand', porosity = SURFEXSoilPorosity())
    state = model.compute_auxiliary(allocate(model.variables(), grid.shape))

    assert_allclose(state.porosity, 0.49 - 0.11)

    loam = SoilTexture.preset('loam')
    assert_allclose(SURFEXSoilPorosity().mineral(loam), 0.49 - 0.11 * 0.4)

def test_update_param(grid, state):
    model = HomogeneousStratigraphy(grid).update_param('organic_density', 650.0)
    state = model.compute_auxiliary(state.set('soil_organic_carbon', 32.5))

    assert_allclose(state.organic_fraction, 0.5)

    with pytest.raises(KeyError):
        model.update_param('missing', 1.0)

def test_constant_porosity(grid):
    model = HomogeneousStratigraphy(grid, porosity = ConstantSoilPorosity(mineral_porosity = 0.3))
    state = model.initialize(allocate(model.variables(), grid.shape))

    assert_allclose(state.porosity, 0.3)
