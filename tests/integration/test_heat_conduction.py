"""Integration tests of heat conduction in soil columns."""

import datetime

import pytest
import numpy as np
import jax.numpy as jnp
import jax.scipy.special
from numpy.testing import assert_allclose
from soilbento import Simulation, SoilModel
from soilbento.boundary_conditions import PrescribedValue
from soilbento.components import ConstantSoilPorosity, HomogeneousStratigraphy, SoilEnergyBalance
from soilbento.diagnostics import conservation_residual
from soilbento.inputs import ConstantInput
from soilbento.timesteppers import ForwardEuler, Heun
from soilbento.utils import ColumnGrid, UniformSpacing

def test_import():
    assert True

def test_dirichlet_step_response():
    """A dry mineral column warmed from the surface follows the erfc solution."""
    grid = ColumnGrid(UniformSpacing(dz = 0.02, N = 100))
    model = SoilModel(
        grid,
        stratigraphy = HomogeneousStratigraphy(grid, porosity = ConstantSoilPorosity(0.0, 0.0)),
        energy = SoilEnergyBalance(grid, top = PrescribedValue())
    )
    sim = Simulation(
        model,
        ForwardEuler(dt = 30.0),
        inputs = [ConstantInput('surface_temperature', 2.0)],
        initializers = {'temperature': 1.0}
    )
    sim.initialize()
    state = sim.run(period = datetime.timedelta(hours = 24))

    assert_allclose(state.time, 86400.0)

    diffusivity = 3.8 / 2.0e6
    z = grid.depth
    exact = 1.0 + 1.0 * jax.scipy.special.erfc(z / (2 * jnp.sqrt(diffusivity * 86400.0)))

    T = state.temperature[0]
    assert np.max(np.abs(np.asarray(T - exact))) < 0.1
    assert np.all(np.asarray(T) >= 1.0 - 1e-10)
    assert np.all(np.asarray(T) <= 2.0 + 1e-10)

@pytest.mark.parametrize('stepper', [ForwardEuler(dt = 600.0), Heun(dt = 600.0)])
def test_insulated_column_conserves_energy(grid, stepper):
    model = SoilModel(grid)
    sim = Simulation(model, stepper, initializers = {'temperature': lambda z: 5.0 - 10.0 * z})

    before = sim.initialize()
    after = sim.run(steps = 144)

    assert conservation_residual(grid, before, after, 'internal_energy') < 1e-10

    # Heat has moved from the warm top to the cold bottom
    assert jnp.all(after.temperature[:, 0] < before.temperature[:, 0])
    assert jnp.all(after.temperature[:, -1] > before.temperature[:, -1])

def test_freezing_from_the_surface(grid):
    model = SoilModel(grid, energy = SoilEnergyBalance(grid, top = PrescribedValue()))
    sim = Simulation(
        model,
        ForwardEuler(dt = 300.0),
        inputs = [ConstantInput('surface_temperature', -5.0)],
        initializers = {'temperature': 2.0}
    )
    sim.initialize()
    state = sim.run(period = 86400.0)

    liquid = np.asarray(state.liquid_water_fraction)
    T = np.asarray(state.temperature)

    assert np.all(liquid[:, 0] < 1.0)
    assert np.all((liquid >= 0.0) & (liquid <= 1.0))
    assert np.all((T >= -5.0 - 1e-8) & (T <= 2.0 + 1e-8))
