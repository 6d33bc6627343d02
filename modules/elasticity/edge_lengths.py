"""Edge-length bookkeeping for the solid elasticity plugin.

Two exclusive sources of edge elongation exist, chosen once per instance:

``FreeBodyLengths``
    Squared lengths are recomputed from body positions every step. A
    backward difference against the previous step adds Rayleigh damping.
``HostCoupledLengths``
    A host flex primitive already maintains current and rest lengths; they
    are read, not recomputed, and no damping is applied.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from runtime.host import FlexEdgeHandle, HostData, HostModel


def squared_lengths(positions: np.ndarray, edges: np.ndarray) -> np.ndarray:
    """Squared Euclidean length of each ``(a, b)`` vertex pair."""
    vec = positions[edges[:, 1]] - positions[edges[:, 0]]
    return np.einsum("ij,ij->i", vec, vec)


class EdgeLengthMode(ABC):
    """Source of per-edge elongations for one plugin instance."""

    @abstractmethod
    def begin_step(
        self, model: HostModel, data: HostData, positions: np.ndarray
    ) -> None:
        """Refresh the lengths of the current step."""

    @abstractmethod
    def elongation(self, element_edges: np.ndarray) -> np.ndarray:
        """Elongation of every local edge, shape ``element_edges.shape``."""

    def end_step(self) -> None:
        """Called once after all elements have been processed."""


class FreeBodyLengths(EdgeLengthMode):
    def __init__(
        self,
        edges: np.ndarray,
        rest_positions: np.ndarray,
        *,
        damping: float = 0.0,
        timestep: float = 1.0,
    ):
        self.edges = np.asarray(edges, dtype=int)
        self.reference = squared_lengths(np.asarray(rest_positions, float), self.edges)
        self.reference.setflags(write=False)
        self.deformed = self.reference.copy()
        self.previous = self.reference.copy()
        self.damping = float(damping)
        self.timestep = float(timestep)

    @property
    def damping_ratio(self) -> float:
        return self.damping / self.timestep

    def begin_step(self, model, data, positions) -> None:
        self.timestep = float(model.timestep)
        self.deformed[:] = squared_lengths(positions, self.edges)

    def elongation(self, element_edges: np.ndarray) -> np.ndarray:
        # generalized Rayleigh damping from the change since the last step
        # (Kharevych et al., "Geometric, Variational Integrators for Computer
        # Animation", section 5.2)
        deformed = self.deformed[element_edges]
        reference = self.reference[element_edges]
        previous = self.previous[element_edges]
        return (deformed - reference) + (deformed - previous) * self.damping_ratio

    def end_step(self) -> None:
        self.previous[:] = self.deformed


class HostCoupledLengths(EdgeLengthMode):
    def __init__(self, handle: FlexEdgeHandle):
        self.handle = handle
        self._model: HostModel | None = None
        self._data: HostData | None = None

    def begin_step(self, model, data, positions) -> None:
        self._model = model
        self._data = data

    def elongation(self, element_edges: np.ndarray) -> np.ndarray:
        if self._model is None or self._data is None:
            raise RuntimeError("begin_step must be called before elongation")
        current = self.handle.current(self._data, element_edges)
        rest = self.handle.rest(self._model, element_edges)
        return current * current - rest * rest

    def end_step(self) -> None:
        self._model = None
        self._data = None


__all__ = [
    "EdgeLengthMode",
    "FreeBodyLengths",
    "HostCoupledLengths",
    "squared_lengths",
]
