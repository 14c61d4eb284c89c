#!/usr/bin/env python3
"""Fit contact shapes for every affordance mesh in a directory.

Each affordance mesh is intersected with the ROM mesh (both at identity pose
unless offsets are given) and a circle or ellipse is fitted to the boundary of
the intersection region. One JSON record per affordance is written to the
output JSONL file; affordances that do not intersect the ROM get a record with
`"shape": null`.

Usage:
    python scripts/fit_affordance_shapes.py \
        --rom data/rom/right_arm.obj \
        --affordance-dir data/affordances \
        --output outputs/affordance_shapes.jsonl

    # Only ellipses, ROM shifted by 10 cm in z
    python scripts/fit_affordance_shapes.py \
        --rom data/rom/right_arm.obj \
        --affordance-dir data/affordances \
        --output outputs/affordance_shapes.jsonl \
        --shape ellipse \
        --rom-xyz 0 0 0.1
"""

import argparse
import json
import logging

from pathlib import Path

from tqdm import tqdm

from romintersect.errors import IntersectionError
from romintersect.fitting.shape_fit import fit_boundary_shape
from romintersect.intersection.mesh_intersection import (
    IntersectionConfig,
    compute_intersection_region,
)
from romintersect.intersection.rigid_mesh import TrimeshRigidBody
from romintersect.utils.mesh_loading import (
    load_rom_mesh,
    load_surface_mesh,
    pose_from_xyz_rpy,
)

console_logger = logging.getLogger(__name__)

MESH_SUFFIXES = {".obj", ".stl", ".ply", ".off", ".glb", ".gltf"}


def find_affordance_meshes(affordance_dir: Path) -> list[Path]:
    """List mesh files directly inside a directory, sorted by name."""
    return sorted(
        path
        for path in affordance_dir.iterdir()
        if path.is_file() and path.suffix.lower() in MESH_SUFFIXES
    )


def fit_affordance(
    rom: TrimeshRigidBody,
    affordance_path: Path,
    shape: str,
    config: IntersectionConfig,
) -> dict:
    """Intersect one affordance mesh with the ROM and fit its boundary shape.

    Returns:
        JSON-serializable record for the affordance.
    """
    affordance = TrimeshRigidBody(mesh=load_surface_mesh(affordance_path))
    region = compute_intersection_region(rom=rom, affordance=affordance, config=config)

    record = {
        "affordance": affordance_path.name,
        "num_boundary_points": len(region.boundary),
        "shape": None,
    }
    if not region.is_empty:
        record["shape"] = fit_boundary_shape(region.boundary, shape=shape).to_dict()
    return record


def fit_affordance_shapes(
    rom_path: Path,
    affordance_dir: Path,
    output_path: Path,
    shape: str,
    rom_xyz: list[float],
    rom_rpy_deg: list[float],
) -> None:
    rom = TrimeshRigidBody(
        mesh=load_rom_mesh(rom_path),
        X_WB=pose_from_xyz_rpy(rom_xyz, rom_rpy_deg),
    )
    affordance_paths = find_affordance_meshes(affordance_dir)
    console_logger.info(f"Found {len(affordance_paths)} affordance meshes")
    if not affordance_paths:
        console_logger.error("No affordance meshes found, exiting")
        return

    config = IntersectionConfig()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    num_fitted = 0
    num_failed = 0
    with open(output_path, "w") as f:
        for affordance_path in tqdm(affordance_paths, desc="Fitting affordances"):
            try:
                record = fit_affordance(rom, affordance_path, shape, config)
            except (IntersectionError, ValueError) as e:
                console_logger.warning(f"Failed on {affordance_path.name}: {e}")
                record = {"affordance": affordance_path.name, "error": str(e)}
                num_failed += 1
            else:
                if record["shape"] is not None:
                    num_fitted += 1
            f.write(json.dumps(record) + "\n")

    console_logger.info(
        f"Fitted {num_fitted} shapes, {num_failed} failures, "
        f"{len(affordance_paths) - num_fitted - num_failed} without intersection. "
        f"Saved to {output_path}"
    )


def main():
    parser = argparse.ArgumentParser(
        description="Fit contact shapes between a ROM mesh and affordance meshes."
    )
    parser.add_argument(
        "--rom", type=Path, required=True, help="Path to the ROM mesh."
    )
    parser.add_argument(
        "--affordance-dir",
        type=Path,
        required=True,
        help="Directory with affordance meshes.",
    )
    parser.add_argument(
        "--output", type=Path, required=True, help="Output JSONL file."
    )
    parser.add_argument(
        "--shape",
        type=str,
        default="auto",
        choices=["auto", "ellipse", "circle"],
        help="Shape fitted to every boundary.",
    )
    parser.add_argument(
        "--rom-xyz",
        type=float,
        nargs=3,
        default=[0.0, 0.0, 0.0],
        help="ROM translation in meters.",
    )
    parser.add_argument(
        "--rom-rpy",
        type=float,
        nargs=3,
        default=[0.0, 0.0, 0.0],
        help="ROM roll, pitch, yaw in degrees.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    args = parser.parse_args()

    # Configure logging.
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if not args.affordance_dir.is_dir():
        console_logger.error(f"Affordance directory does not exist: {args.affordance_dir}")
        return

    fit_affordance_shapes(
        rom_path=args.rom,
        affordance_dir=args.affordance_dir,
        output_path=args.output,
        shape=args.shape,
        rom_xyz=args.rom_xyz,
        rom_rpy_deg=args.rom_rpy,
    )


if __name__ == "__main__":
    main()
