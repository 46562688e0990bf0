"""Test the StateContainer."""

import copy

import pytest
import jax
import jax.numpy as jnp
import equinox as eqx
from numpy.testing import assert_array_equal, assert_array_almost_equal
from soilbento.core import VarDims, prognostic, auxiliary, input_variable, allocate, Clock

@pytest.fixture
def state(grid):
    variables = (
        prognostic('u', VarDims.COLUMN, default = 1.0),
        auxiliary('v', VarDims.COLUMN),
        input_variable('w', VarDims.SURFACE, default = 3.0)
    )
    return allocate(variables, grid.shape)

def test_flat_access(state):
    assert_array_equal(state.u, 1.0)
    assert_array_equal(state['w'], 3.0)
    assert_array_equal(state.get('v'), 0.0)
    assert state.get('missing') is None
    assert state.get('missing', 5.0) == 5.0
    assert 'u' in state
    assert 'missing' not in state
    assert state.names == ('u', 'v', 'w')

def test_missing_variable(state):
    with pytest.raises(AttributeError):
        state.missing

    with pytest.raises(KeyError):
        state['missing']

def test_group_of(state):
    assert state.group_of('u') == 'prognostic'
    assert state.group_of('v') == 'auxiliary'
    assert state.group_of('w') == 'inputs'

def test_set_is_functional(state):
    new = state.set('v', 2.0)

    assert_array_equal(new.v, 2.0)
    assert_array_equal(state.v, 0.0)
    assert new.v.shape == state.v.shape

def test_set_unknown_name(state):
    with pytest.raises(KeyError):
        state.set('missing', 1.0)

def test_set_wrong_shape(state):
    with pytest.raises(ValueError):
        state.set('w', jnp.ones(7))

def test_update(state):
    new = state.update({'u': 2.0, 'w': jnp.array([1.0, 2.0])})

    assert_array_equal(new.u, 2.0)
    assert_array_equal(new.w, [1.0, 2.0])

def test_add_tendency(state):
    new = state.add_tendency('u', 1.0).add_tendency('u', 0.5)

    assert_array_equal(new.tendencies['u'], 1.5)
    assert_array_equal(state.tendencies['u'], 0.0)

    with pytest.raises(KeyError):
        state.add_tendency('v', 1.0)

def test_reset_tendencies(state):
    new = state.add_tendency('u', 4.0).reset_tendencies()
    assert_array_equal(new.tendencies['u'], 0.0)

def test_replace_group(state):
    new = state.replace_group('prognostic', {'u': state.u * 3})
    assert_array_equal(new.u, 3.0)

    with pytest.raises(KeyError):
        state.replace_group('prognostic', {'u': state.u, 'x': state.u})

def test_tick(state):
    new = state.tick(60.0).tick(60.0)

    assert float(new.time) == 120.0
    assert int(new.iteration) == 2
    assert float(state.time) == 0.0

def test_clock():
    clock = Clock().tick(1.5)
    assert float(clock.time) == 1.5
    assert int(clock.iteration) == 1

def test_tendencies_not_flat(state):
    # Tendencies share names with their variables and are only reachable by group
    assert_array_equal(state.u, 1.0)
    assert_array_equal(state.tendencies['u'], 0.0)

def test_copy(state):
    copied = jax.tree_util.tree_map(jnp.copy, state)
    deep = copy.deepcopy(state)

    for other in (copied, deep):
        assert other.names == state.names
        assert_array_almost_equal(other.u, state.u)
        assert float(other.time) == float(state.time)

def test_jit(state):

    @eqx.filter_jit
    def update(state):
        return state.set('v', state.u * 2).add_tendency('u', state.w[:, None]).tick(1.0)

    new = update(state)

    assert_array_equal(new.v, 2.0)
    assert_array_equal(new.tendencies['u'], 3.0)
    assert float(new.time) == 1.0
