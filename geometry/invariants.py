"""Rest-pose geometric quantities of tetrahedral elements.

The strain basis of a local edge is the symmetrized tensor product of the
area normals of the two faces not adjacent to that edge, divided by
``72 V^2``. This is equivalent to a linear tetrahedral finite element, but
expressed without a coordinate frame: strain is a combination of the six
basis tensors weighted by the changes of the squared edge lengths.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from core.exceptions import DegenerateElementError
from geometry.entities import EDGE, EDGE_TO_FACES, FACE, _fast_cross

logger = logging.getLogger("solid_elasticity")

DEFAULT_VOLUME_TOL = 1e-10


@dataclass(frozen=True)
class ElementInvariants:
    """Per-element volume, edge strain bases and their trace invariants."""

    volume: np.ndarray  # (n,)
    basis: np.ndarray  # (n, 6, 3, 3)
    trace: np.ndarray  # (n, 6)
    trace_product: np.ndarray  # (n, 6, 6)


def _element_points(positions: np.ndarray, elements: np.ndarray) -> np.ndarray:
    return np.asarray(positions, dtype=float)[np.asarray(elements, dtype=int)]


def compute_volumes(positions: np.ndarray, elements: np.ndarray) -> np.ndarray:
    """Signed volume of each tetrahedron, ``dot(e2 x e1, e3) / 6``."""
    P = _element_points(positions, elements)
    e1 = P[:, 1] - P[:, 0]
    e2 = P[:, 2] - P[:, 0]
    e3 = P[:, 3] - P[:, 0]
    normal = _fast_cross(e2, e1)
    return np.einsum("ij,ij->i", normal, e3) / 6.0


def check_degenerate(
    positions: np.ndarray,
    elements: np.ndarray,
    volumes: np.ndarray,
    volume_tol: float = DEFAULT_VOLUME_TOL,
) -> None:
    """Raise :class:`DegenerateElementError` for flat or collapsed elements.

    The threshold is relative to the cube of the longest edge so that it does
    not depend on the mesh units.
    """
    P = _element_points(positions, elements)
    edge_vecs = P[:, EDGE[:, 1]] - P[:, EDGE[:, 0]]
    longest = np.linalg.norm(edge_vecs, axis=2).max(axis=1)
    scale = longest**3
    bad = (np.abs(volumes) <= volume_tol * scale) | ~np.isfinite(volumes)
    bad |= scale == 0.0
    if np.any(bad):
        t = int(np.flatnonzero(bad)[0])
        logger.error("Degenerate tetrahedron %d with volume %g", t, volumes[t])
        raise DegenerateElementError(t, float(volumes[t]))


def face_normals(positions: np.ndarray, elements: np.ndarray) -> np.ndarray:
    """Unnormalized area normals of the 4 local faces, shape ``(n, 4, 3)``."""
    P = _element_points(positions, elements)
    a = P[:, FACE[:, 0]]
    b = P[:, FACE[:, 1]]
    c = P[:, FACE[:, 2]]
    return _fast_cross(b - a, c - a)


def compute_basis(
    positions: np.ndarray, elements: np.ndarray, volumes: np.ndarray
) -> np.ndarray:
    """Strain basis tensor of every local edge, shape ``(n, 6, 3, 3)``."""
    normals = face_normals(positions, elements)
    nL = normals[:, EDGE_TO_FACES[:, 0]]
    nR = normals[:, EDGE_TO_FACES[:, 1]]

    outer = nL[..., :, None] * nR[..., None, :]
    denom = 72.0 * np.asarray(volumes, dtype=float) ** 2
    return (outer + np.swapaxes(outer, -1, -2)) / denom[:, None, None, None]


def first_invariant(basis: np.ndarray) -> np.ndarray:
    """trace(basis[e]) for every local edge."""
    return np.einsum("teii->te", basis)


def second_invariant(basis: np.ndarray) -> np.ndarray:
    """trace(basis[e1] . basis[e2]) for every pair of local edges."""
    return np.einsum("taij,tbji->tab", basis, basis)


def compute_invariants(
    positions: np.ndarray,
    elements: np.ndarray,
    *,
    volume_tol: float = DEFAULT_VOLUME_TOL,
) -> ElementInvariants:
    """Volumes, bases and trace invariants for all ``elements``."""
    volumes = compute_volumes(positions, elements)
    check_degenerate(positions, elements, volumes, volume_tol=volume_tol)

    basis = compute_basis(positions, elements, volumes)
    return ElementInvariants(
        volume=volumes,
        basis=basis,
        trace=first_invariant(basis),
        trace_product=second_invariant(basis),
    )


__all__ = [
    "ElementInvariants",
    "check_degenerate",
    "compute_basis",
    "compute_invariants",
    "compute_volumes",
    "face_normals",
    "first_invariant",
    "second_invariant",
]
