"""Passive elastic forces of a tetrahedral soft body.

Registered as the ``elasticity.solid`` plugin. At construction the rest
geometry is reduced to one 6x6 metric per tetrahedron; every step the forces
are a bilinear contraction of that metric with the current edge elongations.

Attributes
----------
face : str | list[int]
    Tetrahedron vertex ids, 4 per element, local to the instance's bodies.
edge : str | list[int], optional
    Edge id of each local edge of each element; checked against the ids
    recomputed from ``face``.
young : float
    Young's modulus.
poisson : float
    Poisson's ratio in (-1, 0.5).
damping : float, optional
    Rayleigh damping coefficient (default 0).
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from core.exceptions import (
    DegenerateElementError,
    MeshTopologyError,
    PluginConfigError,
)
from core.parameters.plugin_config import PluginConfig
from geometry.entities import EDGE, NUM_EDGES, TetMesh
from geometry.invariants import DEFAULT_VOLUME_TOL, compute_invariants
from geometry.topology import build_stencils
from modules.elasticity.edge_lengths import (
    EdgeLengthMode,
    FreeBodyLengths,
    HostCoupledLengths,
)
from modules.elasticity.metric import assemble_metric, validate_material
from runtime.host import BodyRange, FlexEdgeHandle, HostData, HostModel
from runtime.plugin_manager import PassiveForcePlugin, register_plugin

logger = logging.getLogger("solid_elasticity")

REQUIRED_ATTRIBUTES = ("face", "young", "poisson")


def squared_length_gradients(
    positions: np.ndarray, elements: np.ndarray
) -> np.ndarray:
    """Gradient of each local squared edge length w.r.t. its first vertex.

    The gradient w.r.t. the second vertex is the negation.
    Shape ``(n_elements, 6, 3)``.
    """
    P = positions[elements]
    return 2.0 * (P[:, EDGE[:, 0]] - P[:, EDGE[:, 1]])


def contract_metric(
    metric: np.ndarray, elongation: np.ndarray, gradient: np.ndarray
) -> np.ndarray:
    """Per-element nodal forces ``sum_e1,e2 elong[e1] metric[e1,e2] grad[e2,v]``.

    Returns shape ``(n_elements, 4, 3)``; this is the gradient of the elastic
    energy, so the host receives its negation.
    """
    weights = np.einsum("ta,tab->tb", elongation, metric)
    contrib = weights[:, :, None] * gradient
    force = np.zeros((gradient.shape[0], 4, 3), dtype=float)
    for e in range(NUM_EDGES):
        force[:, EDGE[e, 0]] += contrib[:, e]
        force[:, EDGE[e, 1]] -= contrib[:, e]
    return force


@register_plugin
class Solid(PassiveForcePlugin):
    name = "elasticity.solid"
    attributes = ("face", "edge", "young", "poisson", "damping")

    @classmethod
    def create(
        cls, model: HostModel, data: HostData, instance: int
    ) -> Optional["Solid"]:
        raw = model.plugin_configs[instance] if instance < len(model.plugin_configs) else {}
        config = PluginConfig(
            raw, required=REQUIRED_ATTRIBUTES, defaults={"damping": 0.0}
        )
        try:
            config.check_required()
            young = config.get_float("young")
            poisson = config.get_float("poisson")
            damping = config.get_float("damping", 0.0)
            if not np.isfinite(damping) or damping < 0.0:
                raise PluginConfigError(
                    f"Attribute 'damping' must be non-negative; got {damping}",
                    attribute="damping",
                )
            validate_material(young, poisson)
            return cls(
                model,
                instance,
                young=young,
                poisson=poisson,
                damping=damping,
                simplex=config.get_int_list("face"),
                edge_index=config.get_int_list("edge"),
            )
        except (PluginConfigError, MeshTopologyError, DegenerateElementError) as exc:
            logger.warning(
                f"Invalid attributes for solid plugin instance {instance}: {exc}"
            )
            return None

    def __init__(
        self,
        model: HostModel,
        instance: int,
        *,
        young: float,
        poisson: float,
        damping: float,
        simplex: Sequence[int],
        edge_index: Sequence[int] | None = None,
        volume_tol: float = DEFAULT_VOLUME_TOL,
    ):
        self.instance = instance
        self.young = float(young)
        self.poisson = float(poisson)
        self.damping = float(damping)

        self.bodies = BodyRange.from_model(model, instance)
        self.mesh: TetMesh = build_stencils(simplex, edge_index)

        # fatal, propagates past create()
        self.bodies.check_ownership(model, self.mesh.elements)

        rest = self.bodies.positions(model.body_pos)
        invariants = compute_invariants(
            rest, self.mesh.elements, volume_tol=volume_tol
        )
        self.volume = invariants.volume
        self.metric = assemble_metric(invariants, self.young, self.poisson)

        dofadr = self.bodies.dof_addresses(model, self.mesh.elements.ravel())
        self.element_dofs = dofadr.reshape(self.mesh.elements.shape)

        handle = FlexEdgeHandle.find(model, self.bodies, self.mesh.n_edges)
        if handle is None:
            self.lengths: EdgeLengthMode = FreeBodyLengths(
                self.mesh.edges,
                rest,
                damping=self.damping,
                timestep=model.timestep,
            )
        else:
            self.lengths = HostCoupledLengths(handle)

        logger.info(
            f"Solid instance {instance}: {self.mesh.n_elements} tetrahedra, "
            f"{self.mesh.n_edges} edges, bodies {self.bodies.start}.."
            f"{self.bodies.start + self.bodies.count - 1}, "
            f"{'host-coupled' if self.host_coupled else 'free-body'} mode"
        )

    @property
    def host_coupled(self) -> bool:
        return isinstance(self.lengths, HostCoupledLengths)

    def element_forces(self, positions: np.ndarray, elongation: np.ndarray) -> np.ndarray:
        gradient = squared_length_gradients(positions, self.mesh.elements)
        return contract_metric(self.metric, elongation, gradient)

    def compute(self, model: HostModel, data: HostData, instance: int) -> None:
        x = self.bodies.positions(data.xpos)
        self.lengths.begin_step(model, data, x)

        elongation = self.lengths.elongation(self.mesh.element_edges)
        force = self.element_forces(x, elongation)

        dofs = self.element_dofs[:, :, None] + np.arange(3)
        np.add.at(data.qfrc_passive, dofs, -force)

        self.lengths.end_step()
        logger.debug(
            f"Solid instance {instance}: max |elongation| "
            f"{float(np.abs(elongation).max()):.3e}"
        )

    def destroy(self) -> None:
        self.metric = None
        self.lengths = None


__all__ = ["Solid", "contract_metric", "squared_length_gradients"]
