import argparse
import logging
import os
import sys

import numpy as np

from geometry.geom_io import load_data, parse_scene, save_forces
from runtime.host import update_flex_edge_lengths
from runtime.logging_config import setup_logging
from runtime.plugin_manager import PluginInstanceManager

logger = logging.getLogger("solid_elasticity")


def resolve_scene_path(path: str) -> str:
    """Return a valid scene path, allowing a path without extension."""
    if os.path.isfile(path):
        return path
    for ext in (".json", ".yaml", ".yml"):
        alt = path + ext
        if os.path.isfile(alt):
            return alt
    raise FileNotFoundError(f"Cannot find scene file '{path}' (.json/.yaml/.yml)")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Evaluate tetrahedral soft-body passive forces for a scene"
    )
    parser.add_argument("-i", "--input", required=True, help="Scene JSON/YAML file")
    parser.add_argument("-o", "--output", default=None, help="Output forces JSON file")
    parser.add_argument(
        "--compact-output-json",
        action="store_true",
        help="Write output JSON in compact (single-line) form.",
    )
    parser.add_argument(
        "--displace",
        nargs=4,
        action="append",
        metavar=("BODY", "DX", "DY", "DZ"),
        default=[],
        help="Move BODY by (DX, DY, DZ) before evaluating forces. Repeatable.",
    )
    parser.add_argument(
        "--steps",
        type=int,
        default=1,
        help="Number of passive-force evaluations (forces are cleared before each).",
    )
    parser.add_argument(
        "--properties",
        action="store_true",
        help="Print element/edge counts and volumes of each instance and exit",
    )
    parser.add_argument("--viz", action="store_true", help="Plot the final forces.")
    parser.add_argument(
        "--viz-save",
        default=None,
        help="Save the visualization image to PATH instead of only showing it.",
    )
    parser.add_argument("--log", default=None, help="Optional log file")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress console output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable verbose debug logging"
    )
    return parser


def apply_displacements(model, data, displacements) -> None:
    for body, dx, dy, dz in displacements:
        b = int(body)
        if not 0 < b < model.nbody:
            raise ValueError(f"Body {b} does not exist (1..{model.nbody - 1})")
        data.xpos[b] += np.array([float(dx), float(dy), float(dz)])
        logger.info(f"Displaced body {b} by ({dx}, {dy}, {dz})")


def print_properties(manager: PluginInstanceManager) -> None:
    for instance, plugin in manager.instances.items():
        mesh = plugin.mesh
        volume = np.abs(plugin.volume)
        mesh.build_connectivity_maps()
        valence = [len(elems) for elems in mesh.vertex_to_elements.values()]
        print(f"Instance {instance} ({plugin.name}):")
        print(f"  tetrahedra: {mesh.n_elements}")
        print(f"  edges:      {mesh.n_edges}")
        print(f"  vertices:   {mesh.n_vertices}")
        print(f"  valence:    {min(valence)}..{max(valence)} tetrahedra per vertex")
        print(f"  volume:     {volume.sum():.6g} (min element {volume.min():.3g})")
        print(f"  mode:       {'host-coupled' if plugin.host_coupled else 'free-body'}")


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)
    if args.steps < 1:
        parser.error(f"--steps must be at least 1; got {args.steps}")

    try:
        args.input = resolve_scene_path(args.input)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)

    global logger
    logger = setup_logging(args.log, quiet=args.quiet, debug=args.debug)

    model, data = parse_scene(load_data(args.input))

    with PluginInstanceManager(model, data) as manager:
        if args.properties:
            print_properties(manager)
            return 0

        apply_displacements(model, data, args.displace)

        for step in range(args.steps):
            update_flex_edge_lengths(model, data)
            data.clear_passive()
            manager.compute_passive()
            logger.debug(
                f"Step {step}: |qfrc_passive| = {np.linalg.norm(data.qfrc_passive):.6e}"
            )

        norm = float(np.linalg.norm(data.qfrc_passive))
        logger.info(f"Passive force norm after {args.steps} step(s): {norm:.6e}")
        if not args.quiet:
            print(f"|qfrc_passive| = {norm:.6e}")

        if args.output:
            save_forces(args.output, model, data, compact=args.compact_output_json)

        if args.viz or args.viz_save:
            import matplotlib.pyplot as plt

            from visualization.plotting import plot_solid

            plot_solid(model, data, manager.instances, show=args.viz_save is None)
            if args.viz_save:
                plt.gcf().savefig(args.viz_save, bbox_inches="tight")
                logger.info("Saved visualization to %s", args.viz_save)

    return 0


if __name__ == "__main__":
    sys.exit(main())
