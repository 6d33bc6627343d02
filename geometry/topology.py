"""Edge extraction and element stencils for tetrahedral meshes."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from core.exceptions import InvalidEdgeIndexError, MeshTopologyError
from geometry.entities import EDGE, NUM_EDGES, NUM_VERTS, TetMesh

logger = logging.getLogger("solid_elasticity")


def _as_simplex_array(simplex: Sequence[int]) -> np.ndarray:
    arr = np.asarray(simplex, dtype=int).ravel()
    if arr.size == 0:
        raise MeshTopologyError("Tetrahedron list is empty.")
    if arr.size % NUM_VERTS != 0:
        raise MeshTopologyError(
            f"Tetrahedron list has {arr.size} entries; expected a multiple of {NUM_VERTS}."
        )
    if np.any(arr < 0):
        raise MeshTopologyError("Tetrahedron vertex ids must be non-negative.")
    elements = arr.reshape(-1, NUM_VERTS)
    for t, v in enumerate(elements):
        if len(set(v.tolist())) != NUM_VERTS:
            raise MeshTopologyError(
                f"Tetrahedron {t} repeats a vertex: {v.tolist()}"
            )
    return elements


def check_edge_indices(mesh: TetMesh, edge_index: Sequence[int]) -> None:
    """Compare caller-supplied edge ids against the recomputed stencils.

    Raises :class:`InvalidEdgeIndexError` on the first disagreement.
    """
    supplied = np.asarray(edge_index, dtype=int).ravel()
    expected = mesh.element_edges.ravel()
    if supplied.size != expected.size:
        raise MeshTopologyError(
            f"Edge index list has {supplied.size} entries; "
            f"expected {NUM_EDGES} per tetrahedron ({expected.size})."
        )
    bad = np.flatnonzero(supplied != expected)
    if bad.size:
        first = int(bad[0])
        element, local_edge = divmod(first, NUM_EDGES)
        raise InvalidEdgeIndexError(
            int(supplied[first]),
            int(expected[first]),
            element=element,
            local_edge=local_edge,
        )


def build_stencils(
    simplex: Sequence[int], edge_index: Sequence[int] | None = None
) -> TetMesh:
    """Build the element -> vertex/edge maps and the deduplicated edge list.

    Edge ids are assigned in first-visit order: tetrahedra in input order,
    local edges in ``EDGE`` order.
    """
    elements = _as_simplex_array(simplex)
    n_elements = elements.shape[0]

    element_edges = np.empty((n_elements, NUM_EDGES), dtype=int)
    edge_ids: dict[tuple[int, int], int] = {}
    edges: list[tuple[int, int]] = []

    for t in range(n_elements):
        v = elements[t]
        for e in range(NUM_EDGES):
            a = int(v[EDGE[e, 0]])
            b = int(v[EDGE[e, 1]])
            key = (min(a, b), max(a, b))
            eid = edge_ids.get(key)
            if eid is None:
                eid = len(edges)
                edge_ids[key] = eid
                edges.append(key)
            element_edges[t, e] = eid

    mesh = TetMesh(
        elements=elements,
        element_edges=element_edges,
        edges=np.array(edges, dtype=int).reshape(-1, 2),
    )

    if edge_index is not None and len(edge_index) > 0:
        check_edge_indices(mesh, edge_index)

    logger.debug(
        "Built stencils for %d tetrahedra with %d unique edges",
        mesh.n_elements,
        mesh.n_edges,
    )
    return mesh


__all__ = ["build_stencils", "check_edge_indices"]
