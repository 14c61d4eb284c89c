"""Mesh file loading and pose parsing for the command-line entry points.

The intersection code only sees triangle arrays, so every loaded file is
reduced to one `trimesh.Trimesh`. ROM meshes additionally get their winding
made outward-facing, which the half-space builder relies on.
"""

import logging

from pathlib import Path

import numpy as np
import trimesh

from pydrake.math import RigidTransform, RollPitchYaw

console_logger = logging.getLogger(__name__)


def load_surface_mesh(mesh_path: Path) -> trimesh.Trimesh:
    """Load a mesh file as one triangle surface.

    Files holding several geometries (GLTF scenes, multi-object OBJ) are
    concatenated, since an affordance is intersected as a single surface.

    Args:
        mesh_path: Path to a mesh file (OBJ, STL, PLY, GLB, ...).

    Returns:
        Trimesh with at least one face.

    Raises:
        FileNotFoundError: If mesh_path does not exist.
        ValueError: If the file cannot be parsed or holds no triangles.
    """
    mesh_path = Path(mesh_path)
    if not mesh_path.exists():
        raise FileNotFoundError(f"Mesh file not found: {mesh_path}")

    try:
        loaded = trimesh.load(mesh_path, force="mesh")
    except Exception as e:
        raise ValueError(f"Failed to load mesh from {mesh_path}: {e}") from e

    if isinstance(loaded, trimesh.Scene):
        parts = [
            geometry
            for geometry in loaded.geometry.values()
            if isinstance(geometry, trimesh.Trimesh) and len(geometry.faces) > 0
        ]
        console_logger.debug(f"Merging {len(parts)} geometries from {mesh_path}")
        loaded = trimesh.util.concatenate(parts) if parts else None

    if not isinstance(loaded, trimesh.Trimesh) or len(loaded.faces) == 0:
        raise ValueError(f"No triangles found in {mesh_path}")

    console_logger.info(
        f"Loaded {mesh_path.name}: {len(loaded.vertices)} vertices, "
        f"{len(loaded.faces)} faces"
    )
    return loaded


def load_rom_mesh(mesh_path: Path) -> trimesh.Trimesh:
    """Load a reachable-volume mesh with outward-facing triangles.

    The containment test treats every face as a half-space, so the surface
    must be closed and convex. Violations are logged, not fixed.

    Args:
        mesh_path: Path to the ROM mesh file.

    Returns:
        Trimesh whose face normals point out of the volume.

    Raises:
        FileNotFoundError: If mesh_path does not exist.
        ValueError: If the file cannot be parsed or holds no triangles.
    """
    mesh = load_surface_mesh(mesh_path)
    if not mesh.is_watertight:
        console_logger.warning(f"ROM mesh {mesh_path} is not closed")
    elif mesh.volume < 0.0:
        # Inward winding gives a negative signed volume.
        console_logger.info(f"Flipping inward winding of ROM mesh {mesh_path}")
        mesh.invert()
    if not mesh.is_convex:
        console_logger.warning(
            f"ROM mesh {mesh_path} is not convex, containment results will be wrong"
        )
    return mesh


def pose_from_xyz_rpy(xyz: list[float], rpy_deg: list[float]) -> RigidTransform:
    """Build a pose from a translation and roll-pitch-yaw angles in degrees."""
    return RigidTransform(
        rpy=RollPitchYaw(np.deg2rad(np.asarray(rpy_deg, dtype=float))),
        p=np.asarray(xyz, dtype=float),
    )
