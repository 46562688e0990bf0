"""Test the temperature-energy closure under Free Water freezing."""

import pytest
import numpy as np
import jax.numpy as jnp
from numpy.testing import assert_allclose, assert_array_equal
from soilbento.closures import (
    FreeWater,
    TemperatureEnergyClosure,
    energy_to_temperature,
    temperature_to_energy
)
from soilbento.composition import compose, volumetric_fractions
from soilbento.constants import PhysicalConstants
from soilbento.core import VarDims, allocate, input_variable, prognostic
from soilbento.errors import ConfigurationError
from soilbento.thermal import SoilThermalProperties, bulk_heat_capacity

L = 1000.0 * 3.34e5

def capacity(p, s, l, o):
    return bulk_heat_capacity(SoilThermalProperties(), volumetric_fractions(compose(p, s, l, o)))

def test_volumetric_latent_heat():
    assert PhysicalConstants().volumetric_latent_heat == L

@pytest.mark.parametrize('porosity', [0.0, 0.3, 0.5, 0.9])
@pytest.mark.parametrize('saturation', [0.0, 0.5, 1.0])
def test_round_trip(porosity, saturation):
    T = jnp.array([-20.0, -5.0, -0.1, 0.1, 2.0, 25.0])

    U, liquid = temperature_to_energy(T, porosity, saturation, 0.1)
    T_back, liquid_back = energy_to_temperature(U, porosity, saturation, 0.1)

    assert_allclose(T_back, T, rtol = 1e-10)
    assert_array_equal(liquid_back, liquid)

def test_idempotence():
    U = jnp.linspace(-3e8, 1e8, 101)

    first = energy_to_temperature(U, 0.5, 0.8, 0.1)
    second = energy_to_temperature(U, 0.5, 0.8, 0.1)

    assert_array_equal(first[0], second[0])
    assert_array_equal(first[1], second[1])

@pytest.mark.parametrize('saturation', [0.0, 0.4, 1.0])
def test_monotonic(saturation):
    U = jnp.linspace(-4e8, 2e8, 2001)
    T, liquid = energy_to_temperature(U, 0.5, saturation, 0.0)

    assert np.all(np.diff(np.asarray(T)) >= 0)
    assert np.all(np.diff(np.asarray(liquid)) >= 0)

def test_zero_energy_is_thawed():
    T, liquid = energy_to_temperature(0.0, 0.5, 1.0, 0.0)

    assert float(T) == 0.0
    assert float(liquid) == 1.0

def test_frozen_branch():
    p, s = 0.5, 1.0
    Ltheta = L * p * s
    U = -Ltheta - 5e7

    T, liquid = energy_to_temperature(U, p, s, 0.0)

    assert float(liquid) == 0.0
    assert_allclose(T, (U + Ltheta) / capacity(p, s, 0.0, 0.0))
    assert float(T) < 0

def test_phase_change_band():
    p, s = 0.5, 1.0
    Ltheta = L * p * s
    U = jnp.array([-0.75, -0.5, -0.25]) * Ltheta

    T, liquid = energy_to_temperature(U, p, s, 0.0)

    assert_array_equal(T, 0.0)
    assert_allclose(liquid, [0.25, 0.5, 0.75])

def test_band_edges():
    p, s = 0.5, 1.0
    Ltheta = L * p * s

    T, liquid = energy_to_temperature(-Ltheta, p, s, 0.0)

    assert float(T) == 0.0
    assert float(liquid) == 0.0

def test_dry_soil():
    U = jnp.array([-1e7, -1.0, 0.0, 1e7])
    T, liquid = energy_to_temperature(U, 0.4, 0.0, 0.0)

    assert np.all(np.isfinite(np.asarray(T)))
    assert np.all(np.isfinite(np.asarray(liquid)))
    assert_allclose(T, U / capacity(0.4, 0.0, 1.0, 0.0))

def test_forward_liquid_fraction():
    T = jnp.array([-1.0, 0.0, 1.0])
    _, liquid = temperature_to_energy(T, 0.5, 1.0, 0.0)

    assert_array_equal(liquid, [0.0, 0.0, 1.0])

def test_freeze_curve_is_checked():
    with pytest.raises(ConfigurationError):
        TemperatureEnergyClosure(freeze_curve = object())

def test_derived_variables():
    names = [var.name for var in TemperatureEnergyClosure().derived_variables()]
    assert names == ['temperature', 'liquid_water_fraction']

@pytest.fixture
def state(grid):
    closure = TemperatureEnergyClosure()
    variables = (
        prognostic('internal_energy', VarDims.COLUMN, closure = closure),
        input_variable('porosity', VarDims.COLUMN, default = 0.5),
        input_variable('saturation_water_ice', VarDims.COLUMN, default = 1.0),
        input_variable('organic_fraction', VarDims.COLUMN, default = 0.0)
    )
    return allocate(variables, grid.shape)

def test_closure_on_state(state):
    closure = TemperatureEnergyClosure()
    T = jnp.broadcast_to(jnp.linspace(-10, 10, 10), state.temperature.shape)

    state = closure.forward(state.set('temperature', T))
    assert_array_equal(state.liquid_water_fraction, jnp.where(T > 0, 1.0, 0.0))

    state = closure.inverse(state.set('temperature', 0.0))
    assert_allclose(state.temperature, T, atol = 1e-10)
