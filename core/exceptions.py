"""Custom exception types for the solid elasticity plugin."""

from __future__ import annotations

from typing import Iterable


class ElasticityError(Exception):
    """Base class for domain-specific errors."""


class PluginConfigError(ElasticityError):
    """Raised when plugin attributes are missing or out of range.

    This is recoverable: the host skips the instance and keeps simulating.
    """

    def __init__(
        self,
        message: str,
        *,
        missing: Iterable[str] = (),
        attribute: str | None = None,
    ) -> None:
        super().__init__(message)
        self.missing = tuple(missing)
        self.attribute = attribute


class MeshTopologyError(ElasticityError):
    """Raised when the tetrahedron vertex list cannot form valid stencils."""


class InvalidEdgeIndexError(MeshTopologyError):
    """Raised when a supplied edge index disagrees with the recomputed one."""

    def __init__(
        self,
        index: int,
        expected: int,
        *,
        element: int | None = None,
        local_edge: int | None = None,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = (
                f"Edge index {index} does not match recomputed edge id {expected}"
            )
            if element is not None:
                message += f" (element {element}, local edge {local_edge})"
        super().__init__(message)
        self.index = index
        self.expected = expected
        self.element = element
        self.local_edge = local_edge


class DegenerateElementError(ElasticityError):
    """Raised when a tetrahedron has (near) zero rest volume."""

    def __init__(self, element: int, volume: float, message: str | None = None):
        if message is None:
            message = (
                f"Tetrahedron {element} is degenerate (rest volume {volume:.3e}); "
                "its vertices are coplanar or coincident."
            )
        super().__init__(message)
        self.element = element
        self.volume = volume


class PluginOwnershipError(ElasticityError):
    """Raised when an element references a body owned by another instance.

    The simulation configuration is inconsistent; this is never recovered.
    """

    def __init__(self, body: int, instance: int, owner: int | None = None) -> None:
        super().__init__(
            f"Body {body} does not have the requested plugin instance {instance}"
            + (f" (owned by {owner})" if owner is not None and owner >= 0 else "")
        )
        self.body = body
        self.instance = instance
        self.owner = owner


__all__ = [
    "ElasticityError",
    "PluginConfigError",
    "MeshTopologyError",
    "InvalidEdgeIndexError",
    "DegenerateElementError",
    "PluginOwnershipError",
]
