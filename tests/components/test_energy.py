"""Test the SoilEnergyBalance component."""

import pytest
import jax.numpy as jnp
from numpy.testing import assert_allclose
from soilbento.boundary_conditions import NoFlux, PrescribedFlux, PrescribedValue
from soilbento.components import SoilEnergyBalance
from soilbento.core import VarDims, allocate, input_variable
from soilbento.errors import ConfigurationError

def test_import():
    assert True

def composition_inputs(porosity = 0.0):
    return (
        input_variable('porosity', VarDims.COLUMN, default = porosity),
        input_variable('saturation_water_ice', VarDims.COLUMN, default = 1.0),
        input_variable('organic_fraction', VarDims.COLUMN, default = 0.0)
    )

def make_state(grid, model, temperature = 1.0, porosity = 0.0):
    state = allocate(model.variables() + composition_inputs(porosity), grid.shape)
    state = state.set('temperature', temperature)
    state = model.closure.forward(state)
    return model.compute_auxiliary(state)

def test_variables(grid):
    model = SoilEnergyBalance(grid, top = PrescribedValue(), bottom = PrescribedFlux('geothermal_heat_flux'))
    names = [var.name for var in model.variables()]

    assert names == [
        'internal_energy', 'thermal_conductivity', 'ground_temperature',
        'surface_temperature', 'geothermal_heat_flux'
    ]
    assert model.variables()[0].closure is model.closure

def test_compute_auxiliary(grid):
    model = SoilEnergyBalance(grid)
    T = jnp.broadcast_to(jnp.linspace(1.0, 2.0, 10), grid.shape(VarDims.COLUMN))
    state = make_state(grid, model, T)

    assert_allclose(state.thermal_conductivity, 3.8)
    assert_allclose(state.ground_temperature, [1.0, 1.0])
    assert_allclose(state.internal_energy, T * 2.0e6)

def test_uniform_temperature_no_flux(grid):
    model = SoilEnergyBalance(grid)
    state = model.compute_tendencies(make_state(grid, model, 3.0, porosity = 0.4))

    assert_allclose(state.tendencies['internal_energy'], 0.0)

def test_prescribed_flux(grid):
    model = SoilEnergyBalance(grid, top = PrescribedFlux())
    state = make_state(grid, model, 3.0).set('ground_heat_flux', 50.0)
    state = model.compute_tendencies(state)

    dUdt = state.tendencies['internal_energy']
    assert_allclose(dUdt[:, 0], 50.0 / 0.1)
    assert_allclose(dUdt[:, 1:], 0.0)
    assert_allclose(jnp.sum(dUdt * grid.dz, axis = -1), 50.0)

def test_prescribed_bottom_flux(grid):
    model = SoilEnergyBalance(grid, bottom = PrescribedFlux('geothermal_heat_flux'))
    state = make_state(grid, model, 3.0).set('geothermal_heat_flux', 0.05)
    state = model.compute_tendencies(state)

    dUdt = state.tendencies['internal_energy']
    assert_allclose(dUdt[:, -1], 0.05 / 0.1)
    assert_allclose(dUdt[:, :-1], 0.0, atol = 1e-12)

def test_prescribed_value(grid):
    model = SoilEnergyBalance(grid, top = PrescribedValue())
    state = make_state(grid, model, 1.0).set('surface_temperature', 2.0)
    state = model.compute_tendencies(state)

    # k (T_s - T_0) / (dz / 2), into the top layer
    dUdt = state.tendencies['internal_energy']
    assert_allclose(dUdt[:, 0], 3.8 * 1.0 / 0.05 / 0.1)
    assert_allclose(dUdt[:, 1:], 0.0, atol = 1e-12)

def test_heat_flows_down_gradient(grid):
    model = SoilEnergyBalance(grid)
    T = jnp.broadcast_to(jnp.linspace(5.0, -5.0, 10), grid.shape(VarDims.COLUMN))
    state = model.compute_tendencies(make_state(grid, model, T, porosity = 0.3))

    dUdt = state.tendencies['internal_energy']
    assert jnp.all(dUdt[:, 0] < 0)
    assert jnp.all(dUdt[:, -1] > 0)
    assert_allclose(jnp.sum(dUdt * grid.dz, axis = -1), 0.0, atol = 1e-6)

def test_no_flux_boundary():
    bc = NoFlux()
    assert bc.variables() == ()
    assert_allclose(bc.flux(None, jnp.ones(3), jnp.ones(3), 0.1), 0.0)

def test_boundary_inputs_are_named_by_side(grid):
    model = SoilEnergyBalance(grid, top = PrescribedValue(), bottom = PrescribedValue())
    inputs = {var.name: var for var in model.variables()[3:]}

    assert list(inputs) == ['surface_temperature', 'bottom_temperature']
    assert inputs['bottom_temperature'].units == 'degC'

    model = SoilEnergyBalance(grid, top = PrescribedFlux(), bottom = PrescribedFlux())
    names = [var.name for var in model.variables()[3:]]
    assert names == ['ground_heat_flux', 'geothermal_heat_flux']

def test_prescribed_bottom_value(grid):
    model = SoilEnergyBalance(grid, top = PrescribedValue(), bottom = PrescribedValue())
    state = make_state(grid, model, 1.0).update({'surface_temperature': 1.0, 'bottom_temperature': 3.0})
    state = model.compute_tendencies(state)

    # k (T_b - T_N) / (dz / 2), into the bottom layer
    dUdt = state.tendencies['internal_energy']
    assert_allclose(dUdt[:, -1], 3.8 * 2.0 / 0.05 / 0.1)
    assert_allclose(dUdt[:, :-1], 0.0, atol = 1e-12)

def test_explicit_boundary_names_are_kept(grid):
    model = SoilEnergyBalance(grid, bottom = PrescribedValue('permafrost_temperature', units = 'K'))

    assert model.bottom.name == 'permafrost_temperature'
    assert model.bottom.units == 'K'

def test_unnamed_boundary_outside_a_process():
    with pytest.raises(ConfigurationError):
        PrescribedValue().variables()
