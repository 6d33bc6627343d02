import math
import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.exceptions import DegenerateElementError
from geometry.invariants import (
    compute_basis,
    compute_invariants,
    compute_volumes,
    first_invariant,
    second_invariant,
)
from sample_meshes import CUBE_FACES, CUBE_VERTICES, REGULAR_TET, RIGHT_TET

ONE_TET = np.array([[0, 1, 2, 3]])


def _rotation(a: float, b: float, c: float) -> np.ndarray:
    ca, sa = math.cos(a), math.sin(a)
    cb, sb = math.cos(b), math.sin(b)
    cc, sc = math.cos(c), math.sin(c)
    rz = np.array([[ca, -sa, 0.0], [sa, ca, 0.0], [0.0, 0.0, 1.0]])
    ry = np.array([[cb, 0.0, sb], [0.0, 1.0, 0.0], [-sb, 0.0, cb]])
    rx = np.array([[1.0, 0.0, 0.0], [0.0, cc, -sc], [0.0, sc, cc]])
    return rz @ ry @ rx


def test_right_tetrahedron_volume():
    vol = compute_volumes(RIGHT_TET, ONE_TET)
    assert np.isclose(abs(vol[0]), 1.0 / 6.0)


def test_regular_tetrahedron_volume():
    vol = compute_volumes(REGULAR_TET, ONE_TET)
    assert np.isclose(abs(vol[0]), 1.0 / (6.0 * math.sqrt(2.0)))


def test_volume_sign_follows_vertex_order():
    forward = compute_volumes(RIGHT_TET, ONE_TET)[0]
    swapped = compute_volumes(RIGHT_TET, np.array([[1, 0, 2, 3]]))[0]
    assert np.isclose(forward, -swapped)


def test_cube_volumes_sum_to_one():
    elements = np.asarray(CUBE_FACES).reshape(-1, 4)
    vol = compute_volumes(CUBE_VERTICES, elements)
    assert np.isclose(np.abs(vol).sum(), 1.0)
    # corner tets are 1/6 each, the central one 1/3
    assert np.isclose(abs(vol[1]), 1.0 / 3.0)


def test_coplanar_vertices_are_degenerate():
    flat = RIGHT_TET.copy()
    flat[3] = [0.25, 0.25, 0.0]
    with pytest.raises(DegenerateElementError) as excinfo:
        compute_invariants(flat, ONE_TET)
    assert excinfo.value.element == 0
    assert excinfo.value.volume == pytest.approx(0.0)


def test_degenerate_element_is_reported_by_index():
    points = np.vstack([RIGHT_TET, [[2.0, 0.0, 0.0]]])
    elements = np.array([[0, 1, 2, 3], [0, 1, 4, 2]])  # 0, 1, 4 collinear
    with pytest.raises(DegenerateElementError) as excinfo:
        compute_invariants(points, elements)
    assert excinfo.value.element == 1


def test_coincident_vertices_are_degenerate():
    points = np.zeros((4, 3))
    with pytest.raises(DegenerateElementError):
        compute_invariants(points, ONE_TET)


def test_basis_tensors_are_symmetric():
    vol = compute_volumes(REGULAR_TET, ONE_TET)
    basis = compute_basis(REGULAR_TET, ONE_TET, vol)
    assert basis.shape == (1, 6, 3, 3)
    assert np.allclose(basis, np.swapaxes(basis, -1, -2))


def test_invariant_shapes_and_symmetry():
    elements = np.asarray(CUBE_FACES).reshape(-1, 4)
    inv = compute_invariants(CUBE_VERTICES, elements)

    assert inv.volume.shape == (5,)
    assert inv.trace.shape == (5, 6)
    assert inv.trace_product.shape == (5, 6, 6)
    assert np.allclose(inv.trace_product, np.swapaxes(inv.trace_product, 1, 2))
    assert np.allclose(inv.trace, first_invariant(inv.basis))
    assert np.allclose(inv.trace_product, second_invariant(inv.basis))


def test_regular_tetrahedron_invariants_are_edge_symmetric():
    inv = compute_invariants(REGULAR_TET, ONE_TET)
    # all edges are equivalent in a regular tetrahedron
    assert np.allclose(inv.trace[0], inv.trace[0, 0])
    diag = np.diag(inv.trace_product[0])
    assert np.allclose(diag, diag[0])


def test_invariants_do_not_depend_on_the_frame():
    rotated = REGULAR_TET @ _rotation(0.3, -1.1, 2.0).T + np.array([3.0, -2.0, 0.5])
    base = compute_invariants(REGULAR_TET, ONE_TET)
    moved = compute_invariants(rotated, ONE_TET)

    assert np.allclose(base.trace, moved.trace)
    assert np.allclose(base.trace_product, moved.trace_product)


def test_basis_scales_with_inverse_square_length():
    base = compute_invariants(RIGHT_TET, ONE_TET)
    scaled = compute_invariants(2.0 * RIGHT_TET, ONE_TET)

    assert np.allclose(scaled.trace, base.trace / 4.0)
    assert np.allclose(scaled.trace_product, base.trace_product / 16.0)
