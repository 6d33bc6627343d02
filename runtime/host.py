"""Host-side simulation arrays seen by passive-force plugins.

``HostModel`` holds the immutable description (rest positions, body to
plugin assignment, dof addresses, flex edge layout); ``HostData`` the per-step
state (current positions, passive force accumulator, flex edge lengths).
Plugins never do offset arithmetic on these arrays directly: they go through
the validated :class:`BodyRange` and :class:`FlexEdgeHandle` value objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from core.exceptions import PluginConfigError, PluginOwnershipError

logger = logging.getLogger("solid_elasticity")


def _int_array(values, shape=(0,)) -> np.ndarray:
    if values is None:
        return np.zeros(shape, dtype=int)
    return np.asarray(values, dtype=int)


@dataclass
class HostModel:
    body_pos: np.ndarray
    body_plugin: np.ndarray
    body_dofadr: np.ndarray
    timestep: float = 0.002
    plugin_names: List[str] = field(default_factory=list)
    plugin_configs: List[Dict[str, Any]] = field(default_factory=list)

    # Flex primitives that maintain their own edge lengths.
    flex_vertadr: np.ndarray = None
    flex_vertnum: np.ndarray = None
    flex_vertbodyid: np.ndarray = None
    flex_edgeadr: np.ndarray = None
    flex_edgenum: np.ndarray = None
    flex_edge: np.ndarray = None
    flexedge_length0: np.ndarray = None

    def __post_init__(self):
        self.body_pos = np.asarray(self.body_pos, dtype=float).reshape(-1, 3)
        self.body_plugin = _int_array(self.body_plugin)
        self.body_dofadr = _int_array(self.body_dofadr)
        if not (
            len(self.body_plugin) == len(self.body_dofadr) == len(self.body_pos)
        ):
            raise ValueError("body_pos, body_plugin and body_dofadr must align")
        if not self.timestep > 0.0:
            raise ValueError(f"timestep must be positive; got {self.timestep}")
        self.flex_vertadr = _int_array(self.flex_vertadr)
        self.flex_vertnum = _int_array(self.flex_vertnum)
        self.flex_vertbodyid = _int_array(self.flex_vertbodyid)
        self.flex_edgeadr = _int_array(self.flex_edgeadr)
        self.flex_edgenum = _int_array(self.flex_edgenum)
        self.flex_edge = _int_array(self.flex_edge, shape=(0, 2)).reshape(-1, 2)
        if self.flexedge_length0 is None:
            self.flexedge_length0 = np.zeros(0, dtype=float)
        self.flexedge_length0 = np.asarray(self.flexedge_length0, dtype=float)

    @property
    def nbody(self) -> int:
        return len(self.body_pos)

    @property
    def nflex(self) -> int:
        return len(self.flex_vertadr)

    @property
    def nplugin(self) -> int:
        return len(self.plugin_names)

    @property
    def nv(self) -> int:
        """Number of degrees of freedom."""
        if not np.any(self.body_dofadr >= 0):
            return 0
        return int(self.body_dofadr.max()) + 3


@dataclass
class HostData:
    xpos: np.ndarray
    qfrc_passive: np.ndarray
    flexedge_length: np.ndarray

    @classmethod
    def from_model(cls, model: HostModel) -> "HostData":
        return cls(
            xpos=model.body_pos.copy(),
            qfrc_passive=np.zeros(model.nv, dtype=float),
            flexedge_length=model.flexedge_length0.copy(),
        )

    def clear_passive(self) -> None:
        self.qfrc_passive[:] = 0.0

    def body_forces(self, model: HostModel) -> np.ndarray:
        """Passive forces reshaped per body, zero for bodies without dofs."""
        out = np.zeros((model.nbody, 3), dtype=float)
        for b in range(model.nbody):
            adr = model.body_dofadr[b]
            if adr >= 0:
                out[b] = self.qfrc_passive[adr : adr + 3]
        return out


def update_flex_edge_lengths(model: HostModel, data: HostData) -> None:
    """Refresh the host's own flex edge-length cache from ``data.xpos``."""
    for f in range(model.nflex):
        bodies = model.flex_vertbodyid[
            model.flex_vertadr[f] : model.flex_vertadr[f] + model.flex_vertnum[f]
        ]
        adr = model.flex_edgeadr[f]
        edges = model.flex_edge[adr : adr + model.flex_edgenum[f]]
        if edges.size == 0:
            continue
        a = data.xpos[bodies[edges[:, 0]]]
        b = data.xpos[bodies[edges[:, 1]]]
        data.flexedge_length[adr : adr + len(edges)] = np.linalg.norm(b - a, axis=1)


@dataclass(frozen=True)
class BodyRange:
    """Contiguous block of host bodies owned by one plugin instance."""

    instance: int
    start: int
    count: int

    @classmethod
    def from_model(cls, model: HostModel, instance: int) -> "BodyRange":
        # body 0 is the world
        owned = np.flatnonzero(model.body_plugin[1:] == instance) + 1
        if owned.size == 0:
            raise PluginConfigError(
                f"No bodies are assigned to plugin instance {instance}"
            )
        return cls(instance=instance, start=int(owned[0]), count=int(owned.size))

    def body(self, vertex: int) -> int:
        return self.start + int(vertex)

    def bodies(self, vertices) -> np.ndarray:
        return self.start + np.asarray(vertices, dtype=int)

    def check_ownership(self, model: HostModel, vertices) -> None:
        """Every referenced body must exist and carry this instance."""
        for body in np.unique(self.bodies(vertices)):
            body = int(body)
            owner = int(model.body_plugin[body]) if body < model.nbody else None
            if owner != self.instance:
                raise PluginOwnershipError(body, self.instance, owner)

    def positions(self, xpos: np.ndarray) -> np.ndarray:
        """View of the positions of bodies ``start .. nbody`` of the host.

        Local vertex ``v`` maps to row ``v`` of the result.
        """
        return xpos[self.start :]

    def dof_addresses(self, model: HostModel, vertices) -> np.ndarray:
        dofadr = model.body_dofadr[self.bodies(vertices)]
        if np.any(dofadr < 0):
            body = int(self.bodies(vertices)[np.flatnonzero(dofadr < 0)[0]])
            raise PluginOwnershipError(body, self.instance)
        return dofadr


@dataclass(frozen=True)
class FlexEdgeHandle:
    """Read access to one flex's slice of the host edge-length cache."""

    flex: int
    address: int
    count: int

    @classmethod
    def find(
        cls, model: HostModel, bodies: BodyRange, n_edges: int
    ) -> Optional["FlexEdgeHandle"]:
        """Return the flex whose first vertex is the range's first body."""
        for f in range(model.nflex):
            if model.flex_vertbodyid[model.flex_vertadr[f]] == bodies.start:
                address = int(model.flex_edgeadr[f])
                count = int(model.flex_edgenum[f])
                if count < n_edges:
                    raise PluginConfigError(
                        f"Flex {f} has {count} edges; plugin instance "
                        f"{bodies.instance} needs {n_edges}"
                    )
                return cls(flex=f, address=address, count=count)
        return None

    def _slice(self, edge_ids: np.ndarray) -> np.ndarray:
        return self.address + edge_ids

    def current(self, data: HostData, edge_ids: np.ndarray) -> np.ndarray:
        return data.flexedge_length[self._slice(edge_ids)]

    def rest(self, model: HostModel, edge_ids: np.ndarray) -> np.ndarray:
        return model.flexedge_length0[self._slice(edge_ids)]


__all__ = [
    "BodyRange",
    "FlexEdgeHandle",
    "HostData",
    "HostModel",
    "update_flex_edge_lengths",
]
