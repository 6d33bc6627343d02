import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.topology import build_stencils
from modules.elasticity.edge_lengths import (
    FreeBodyLengths,
    HostCoupledLengths,
    squared_lengths,
)
from runtime.host import FlexEdgeHandle, update_flex_edge_lengths
from sample_meshes import RIGHT_TET, solid_host

ONE_TET = [0, 1, 2, 3]


def _moved(delta=0.1):
    x = RIGHT_TET.copy()
    x[3, 2] += delta
    return x


def test_squared_lengths():
    mesh = build_stencils(ONE_TET)
    sq = squared_lengths(RIGHT_TET, mesh.edges)
    # (0,1) (1,2) (0,2) (2,3) (0,3) (1,3)
    assert np.allclose(sq, [1.0, 2.0, 1.0, 2.0, 1.0, 2.0])


def test_reference_lengths_are_immutable():
    mesh = build_stencils(ONE_TET)
    lengths = FreeBodyLengths(mesh.edges, RIGHT_TET)
    with pytest.raises(ValueError):
        lengths.reference[0] = 5.0


def test_free_body_elongation_is_zero_at_rest():
    model, data = solid_host(RIGHT_TET, ONE_TET, damping=0.5)
    mesh = build_stencils(ONE_TET)
    lengths = FreeBodyLengths(mesh.edges, RIGHT_TET, damping=0.5, timestep=model.timestep)

    lengths.begin_step(model, data, RIGHT_TET)
    elong = lengths.elongation(mesh.element_edges)
    assert elong.shape == (1, 6)
    assert np.all(elong == 0.0)


def test_free_body_damping_uses_previous_step():
    model, data = solid_host(RIGHT_TET, ONE_TET, timestep=0.01)
    mesh = build_stencils(ONE_TET)
    lengths = FreeBodyLengths(mesh.edges, RIGHT_TET, damping=0.02, timestep=0.01)
    x = _moved()

    lengths.begin_step(model, data, x)
    first = lengths.elongation(mesh.element_edges)
    static = lengths.deformed[mesh.element_edges] - lengths.reference[mesh.element_edges]
    # previous == reference on the first step, kD = damping / timestep = 2
    assert np.allclose(first, 3.0 * static)
    lengths.end_step()
    assert np.array_equal(lengths.previous, lengths.deformed)

    lengths.begin_step(model, data, x)
    second = lengths.elongation(mesh.element_edges)
    assert np.allclose(second, static)


def test_free_body_reference_survives_steps():
    model, data = solid_host(RIGHT_TET, ONE_TET)
    mesh = build_stencils(ONE_TET)
    lengths = FreeBodyLengths(mesh.edges, RIGHT_TET)
    reference = lengths.reference.copy()

    for delta in (0.1, 0.2, -0.05):
        lengths.begin_step(model, data, _moved(delta))
        lengths.elongation(mesh.element_edges)
        lengths.end_step()

    assert np.array_equal(lengths.reference, reference)


def test_host_coupled_reads_flex_cache():
    model, data = solid_host(RIGHT_TET, ONE_TET, flex=True)
    mesh = build_stencils(ONE_TET)
    handle = FlexEdgeHandle(flex=0, address=int(model.flex_edgeadr[0]), count=mesh.n_edges)
    lengths = HostCoupledLengths(handle)

    data.xpos[1:] = _moved()
    lengths.begin_step(model, data, data.xpos[1:])
    # the host has not refreshed its cache yet
    assert np.allclose(lengths.elongation(mesh.element_edges), 0.0)

    update_flex_edge_lengths(model, data)
    elong = lengths.elongation(mesh.element_edges)
    expected = squared_lengths(_moved(), mesh.edges) - squared_lengths(RIGHT_TET, mesh.edges)
    assert np.allclose(elong[0], expected[mesh.element_edges[0]])
    lengths.end_step()


def test_host_coupled_requires_begin_step():
    lengths = HostCoupledLengths(FlexEdgeHandle(flex=0, address=0, count=6))
    with pytest.raises(RuntimeError):
        lengths.elongation(np.zeros((1, 6), dtype=int))
