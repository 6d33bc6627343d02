# geom_io.py
import json
import logging

import numpy as np
import yaml

from core.exceptions import MeshTopologyError, PluginConfigError
from core.parameters.plugin_config import parse_float, parse_int_list
from geometry.topology import build_stencils
from runtime.host import HostData, HostModel

logger = logging.getLogger("solid_elasticity")

DEFAULT_PLUGIN = "elasticity.solid"


def load_data(filename):
    """Load a scene from a JSON or YAML file.

    Expected format:
    {
        "timestep": 0.002,
        "plugins": [
            {
                "name": "elasticity.solid",
                "vertices": [[x, y, z], ...],
                "config": {"face": "0 1 2 3", "young": 1000, "poisson": 0.3},
                "flex": false
            }
        ],
        "vertices": [[x, y, z], ...]     # optional bodies without a plugin
    }"""
    filename_str = str(filename)
    with open(filename_str, "r") as f:
        if filename_str.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif filename_str.endswith(".json"):
            data = json.load(f)
        else:
            logger.error(f"Unsupported file format for: {filename_str}")
            raise ValueError(f"Unsupported file format for: {filename_str}")

    return data


def _positions(values, *, label: str) -> np.ndarray:
    arr = np.asarray(values if values is not None else [], dtype=float)
    if arr.size == 0:
        return np.zeros((0, 3), dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"{label} must be a list of [x, y, z] triples")
    return arr


def parse_scene(data: dict) -> tuple[HostModel, HostData]:
    """Build host model/data from a scene mapping.

    Body 0 is the world. Each plugin's vertices become consecutive free
    bodies with three translational dofs, followed by any plugin-less
    ``vertices``. A plugin entry with ``flex: true`` also gets a host flex
    whose edges follow the plugin's own edge numbering.
    """
    timestep = parse_float(data.get("timestep", 0.002), name="timestep")

    body_pos = [np.zeros(3)]
    body_plugin = [-1]
    body_dofadr = [-1]
    plugin_names = []
    plugin_configs = []

    flex_vertadr, flex_vertnum, flex_vertbodyid = [], [], []
    flex_edgeadr, flex_edgenum, flex_edge, flexedge_length0 = [], [], [], []

    def _add_body(pos, plugin):
        body_dofadr.append(3 * (len(body_pos) - 1))
        body_pos.append(np.asarray(pos, dtype=float))
        body_plugin.append(plugin)
        return len(body_pos) - 1

    for instance, entry in enumerate(data.get("plugins", []) or []):
        name = entry.get("name", DEFAULT_PLUGIN)
        positions = _positions(entry.get("vertices"), label=f"plugins[{instance}].vertices")
        bodies = [_add_body(p, instance) for p in positions]
        config = dict(entry.get("config", {}) or {})
        plugin_names.append(name)
        plugin_configs.append(config)

        if entry.get("flex", False):
            if not bodies:
                raise ValueError(f"plugins[{instance}] has a flex but no vertices")
            try:
                mesh = build_stencils(parse_int_list(config.get("face"), name="face"))
            except (PluginConfigError, MeshTopologyError) as exc:
                logger.warning(f"No flex created for plugins[{instance}]: {exc}")
                continue
            if mesh.elements.max() >= len(bodies):
                logger.warning(
                    f"No flex created for plugins[{instance}]: face references "
                    f"vertex {int(mesh.elements.max())} of {len(bodies)}"
                )
                continue
            flex_vertadr.append(len(flex_vertbodyid))
            flex_vertnum.append(len(bodies))
            flex_vertbodyid.extend(bodies)
            flex_edgeadr.append(len(flex_edge))
            flex_edgenum.append(mesh.n_edges)
            flex_edge.extend(mesh.edges.tolist())
            vec = positions[mesh.edges[:, 1]] - positions[mesh.edges[:, 0]]
            flexedge_length0.extend(np.linalg.norm(vec, axis=1).tolist())
            logger.debug(f"Flex {len(flex_vertadr) - 1} with {mesh.n_edges} edges for instance {instance}")

    for pos in _positions(data.get("vertices"), label="vertices"):
        _add_body(pos, -1)

    model = HostModel(
        body_pos=np.array(body_pos),
        body_plugin=np.array(body_plugin),
        body_dofadr=np.array(body_dofadr),
        timestep=timestep,
        plugin_names=plugin_names,
        plugin_configs=plugin_configs,
        flex_vertadr=flex_vertadr,
        flex_vertnum=flex_vertnum,
        flex_vertbodyid=flex_vertbodyid,
        flex_edgeadr=flex_edgeadr,
        flex_edgenum=flex_edgenum,
        flex_edge=flex_edge,
        flexedge_length0=flexedge_length0,
    )
    logger.info(
        f"Loaded scene: {model.nbody - 1} bodies, {model.nplugin} plugin instance(s), "
        f"{model.nflex} flex(es), timestep {timestep}"
    )
    return model, HostData.from_model(model)


def save_forces(filename, model: HostModel, data: HostData, compact: bool = False):
    """Write per-body passive forces and positions to JSON."""
    forces = data.body_forces(model)
    payload = {
        "timestep": model.timestep,
        "bodies": [
            {
                "body": b,
                "plugin": int(model.body_plugin[b]),
                "position": data.xpos[b].tolist(),
                "force": forces[b].tolist(),
            }
            for b in range(1, model.nbody)
        ],
        "qfrc_passive": data.qfrc_passive.tolist(),
    }
    with open(filename, "w") as f:
        if compact:
            json.dump(payload, f, separators=(",", ":"))
        else:
            json.dump(payload, f, indent=2)
    logger.info(f"Saved forces to {filename}")
    return payload


__all__ = ["load_data", "parse_scene", "save_forces"]
