"""Per-element strain metric for isotropic linear elasticity.

The metric is a symmetric 6x6 matrix per tetrahedron acting on edge
elongations (differences of squared lengths):

    metric[e1, e2] = mu * trace(T_e1 T_e2) + lambda * trace(T_e1) trace(T_e2)

With ``metric = diag(1 / reference)`` the same contraction would give a
mass-spring network; the dense metric couples all edges of an element.
"""

from __future__ import annotations

import numpy as np

from core.exceptions import PluginConfigError
from geometry.invariants import ElementInvariants


def validate_material(young: float, poisson: float) -> None:
    if not np.isfinite(young) or young <= 0.0:
        raise PluginConfigError(
            f"Young's modulus must be positive; got {young}", attribute="young"
        )
    if not np.isfinite(poisson) or not (-1.0 < poisson < 0.5):
        raise PluginConfigError(
            f"Poisson's ratio must lie in (-1, 0.5); got {poisson}",
            attribute="poisson",
        )


def lame_parameters(
    young: float, poisson: float, volume: np.ndarray | float = 1.0
) -> tuple[np.ndarray, np.ndarray]:
    """Volume-weighted Lamé moduli ``(mu, lambda)``.

    ``abs(volume)`` is used so that the orientation of the vertex ordering does
    not flip the sign of the elastic energy.
    """
    vol = np.abs(np.asarray(volume, dtype=float))
    mu = young / (2.0 * (1.0 + poisson)) * vol
    la = young * poisson / ((1.0 + poisson) * (1.0 - 2.0 * poisson)) * vol
    return mu, la


def assemble_metric(
    invariants: ElementInvariants, young: float, poisson: float
) -> np.ndarray:
    """Return the read-only ``(n_elements, 6, 6)`` metric array."""
    validate_material(young, poisson)
    mu, la = lame_parameters(young, poisson, invariants.volume)

    trT = invariants.trace
    trTT = invariants.trace_product
    metric = (
        mu[:, None, None] * trTT
        + la[:, None, None] * trT[:, :, None] * trT[:, None, :]
    )
    # remove round-off asymmetry from the einsum in trTT
    metric = 0.5 * (metric + np.swapaxes(metric, 1, 2))
    metric.setflags(write=False)
    return metric


__all__ = ["assemble_metric", "lame_parameters", "validate_material"]
