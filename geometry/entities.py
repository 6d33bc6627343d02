# entities.py

import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np

logger = logging.getLogger("solid_elasticity")

# Local tetrahedron numbering. The order of EDGE is part of the edge-id
# contract: ids are handed out in (element, local edge) visiting order.
NUM_VERTS = 4
NUM_EDGES = 6

EDGE = np.array([[0, 1], [1, 2], [2, 0], [2, 3], [0, 3], [1, 3]], dtype=int)
FACE = np.array([[2, 1, 0], [0, 1, 3], [1, 2, 3], [2, 0, 3]], dtype=int)
# The two faces that do not contain each local edge.
EDGE_TO_FACES = np.array(
    [[2, 3], [1, 3], [2, 1], [1, 0], [0, 2], [0, 3]], dtype=int
)


def _fast_cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Compute cross product of two arrays of 3D vectors along the last axis.
    Inputs must be shape (..., 3) or (3,).
    """
    x = a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1]
    y = a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2]
    z = a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]

    out = np.empty(x.shape + (3,), dtype=np.result_type(x, float))
    out[..., 0] = x
    out[..., 1] = y
    out[..., 2] = z
    return out


@dataclass
class TetMesh:
    """Tetrahedral stencils of one plugin instance.

    ``elements`` holds local vertex ids (relative to the instance's first
    body), ``element_edges`` the global edge id of each local edge and
    ``edges`` the canonical ``(min, max)`` vertex pair of each edge id.
    """

    elements: np.ndarray
    element_edges: np.ndarray
    edges: np.ndarray

    vertex_to_edges: Dict[int, set] = field(default_factory=dict)
    vertex_to_elements: Dict[int, set] = field(default_factory=dict)
    edge_to_elements: Dict[int, set] = field(default_factory=dict)

    @property
    def n_elements(self) -> int:
        return int(self.elements.shape[0])

    @property
    def n_edges(self) -> int:
        return int(self.edges.shape[0])

    @property
    def n_vertices(self) -> int:
        """Number of distinct vertices referenced by the elements."""
        return int(np.unique(self.elements).size)

    def local_edge_pairs(self, element: int) -> np.ndarray:
        """Canonical global vertex pairs of the 6 local edges of ``element``."""
        v = self.elements[element]
        pairs = v[EDGE]
        return np.sort(pairs, axis=1)

    def edge_key(self, edge_id: int) -> Tuple[int, int]:
        a, b = self.edges[edge_id]
        return int(a), int(b)

    def build_connectivity_maps(self) -> None:
        """Populate vertex/edge/element adjacency sets."""
        self.vertex_to_edges = {}
        self.vertex_to_elements = {}
        self.edge_to_elements = {}

        for eid, (a, b) in enumerate(self.edges):
            self.vertex_to_edges.setdefault(int(a), set()).add(eid)
            self.vertex_to_edges.setdefault(int(b), set()).add(eid)

        for t in range(self.n_elements):
            for v in self.elements[t]:
                self.vertex_to_elements.setdefault(int(v), set()).add(t)
            for eid in self.element_edges[t]:
                self.edge_to_elements.setdefault(int(eid), set()).add(t)

        logger.debug(
            "Connectivity maps built: %d vertices, %d edges, %d elements",
            len(self.vertex_to_elements),
            self.n_edges,
            self.n_elements,
        )
