"""Test soil composition and bulk thermal properties."""

import pytest
import numpy as np
import jax.numpy as jnp
from numpy.testing import assert_allclose
from soilbento.composition import (
    SoilTexture,
    TEXTURE_PRESETS,
    VolumetricFractions,
    compose,
    volumetric_fractions
)
from soilbento.thermal import (
    DEFAULT_CONDUCTIVITIES,
    DEFAULT_HEAT_CAPACITIES,
    SoilThermalProperties,
    LinearWeighting,
    bulk_conductivity,
    bulk_heat_capacity,
    heat_capacity,
    thermal_conductivity
)
from soilbento.errors import ConfigurationError, RangeError

CONSTITUENTS = ('water', 'ice', 'air', 'mineral', 'organic')

@pytest.fixture
def props():
    return SoilThermalProperties()

def pure(constituent):
    return VolumetricFractions(**{name: float(name == constituent) for name in CONSTITUENTS})

def test_fractions_sum_to_one():
    values = np.linspace(0, 1, 6)
    p, s, l, o = (jnp.asarray(x.ravel()) for x in np.meshgrid(values, values, values, values))

    fractions = volumetric_fractions(compose(p, s, l, o))

    assert_allclose(fractions.total(), 1.0, atol = 1e-12)
    for value in fractions:
        assert np.all(np.asarray(value) >= 0)

def test_fractions():
    fractions = volumetric_fractions(compose(0.5, 0.8, 0.25, 0.1))

    assert_allclose(fractions.water, 0.1)
    assert_allclose(fractions.ice, 0.3)
    assert_allclose(fractions.air, 0.1)
    assert_allclose(fractions.mineral, 0.45)
    assert_allclose(fractions.organic, 0.05)

@pytest.mark.parametrize('name', ['porosity', 'saturation', 'liquid', 'organic'])
@pytest.mark.parametrize('value', [-0.1, 1.1, np.nan])
def test_compose_validates(name, value):
    args = {'porosity': 0.5, 'saturation': 0.5, 'liquid': 0.5, 'organic': 0.5}
    args[name] = value

    with pytest.raises(RangeError):
        compose(**args)

def test_compose_validates_arrays():
    with pytest.raises(RangeError):
        compose(jnp.array([0.2, 0.4, 1.01]), 1.0, 1.0, 0.0)

def test_texture():
    texture = SoilTexture(0.4, 0.4, 0.2)
    assert texture.clay == 0.2

    with pytest.raises(RangeError):
        SoilTexture(0.5, 0.5, 0.5)

    with pytest.raises(RangeError):
        SoilTexture(1.2, -0.2, 0.0)

@pytest.mark.parametrize('name', sorted(TEXTURE_PRESETS))
def test_texture_presets(name):
    texture = SoilTexture.preset(name)
    assert_allclose(texture.sand + texture.silt + texture.clay, 1.0)

def test_unknown_texture_preset():
    with pytest.raises(ConfigurationError):
        SoilTexture.preset('gravel')

@pytest.mark.parametrize('constituent', CONSTITUENTS)
def test_pure_constituents(props, constituent):
    fractions = pure(constituent)

    assert_allclose(
        bulk_heat_capacity(props, fractions), getattr(DEFAULT_HEAT_CAPACITIES, constituent), rtol = 1e-12
    )
    assert_allclose(
        bulk_conductivity(props, fractions), getattr(DEFAULT_CONDUCTIVITIES, constituent), rtol = 1e-12
    )

def test_defaults(props):
    assert props.conductivities.mineral == 3.8
    assert props.heat_capacities.water == 4.2e6
    assert props.heat_capacities.air == 1.25e3

def test_non_decreasing_in_better_constituent(props):
    # Replace air by water step by step
    theta = np.linspace(0, 0.5, 11)
    fractions = VolumetricFractions(
        water = jnp.asarray(theta), ice = 0.0, air = jnp.asarray(0.5 - theta), mineral = 0.5, organic = 0.0
    )

    assert np.all(np.diff(np.asarray(bulk_conductivity(props, fractions))) >= 0)
    assert np.all(np.diff(np.asarray(bulk_heat_capacity(props, fractions))) >= 0)

def test_mixing_rule(props):
    fractions = volumetric_fractions(compose(0.4, 1.0, 1.0, 0.0))
    expected = (0.4 * np.sqrt(0.57) + 0.6 * np.sqrt(3.8))**2

    assert_allclose(bulk_conductivity(props, fractions), expected)

    linear = SoilThermalProperties(conductivity_mixing = LinearWeighting())
    assert_allclose(bulk_conductivity(linear, fractions), 0.4 * 0.57 + 0.6 * 3.8)

def test_composition_shortcuts(props):
    composition = compose(0.4, 0.5, 1.0, 0.0)
    fractions = volumetric_fractions(composition)

    assert_allclose(heat_capacity(props, composition), bulk_heat_capacity(props, fractions))
    assert_allclose(thermal_conductivity(props, composition), bulk_conductivity(props, fractions))

def test_properties_must_be_positive():
    with pytest.raises(ConfigurationError):
        SoilThermalProperties(heat_capacities = DEFAULT_HEAT_CAPACITIES._replace(mineral = 0.0))

    with pytest.raises(ConfigurationError):
        SoilThermalProperties(conductivities = DEFAULT_CONDUCTIVITIES._replace(air = -1.0))
