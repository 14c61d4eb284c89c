"""
Compute the intersection region of an affordance mesh with a ROM mesh and fit a
shape to its boundary.

Example:
    python main.py rom_mesh=data/rom.obj affordance_mesh=data/table.obj \
        affordance_pose.xyz=[0.4,0.0,0.0]
"""

import json
import logging
import os
import time

from datetime import timedelta
from pathlib import Path

import hydra

from hydra.utils import to_absolute_path
from omegaconf import DictConfig, OmegaConf

from romintersect.errors import IntersectionError
from romintersect.fitting.shape_fit import fit_boundary_shape
from romintersect.intersection.mesh_intersection import (
    IntersectionConfig,
    compute_intersection_region,
)
from romintersect.intersection.rigid_mesh import TrimeshRigidBody
from romintersect.utils.logging import FileLoggingContext
from romintersect.utils.mesh_loading import (
    load_rom_mesh,
    load_surface_mesh,
    pose_from_xyz_rpy,
)

console_logger = logging.getLogger(__name__)


def load_rigid_body(
    mesh_path: str, pose_cfg: DictConfig, is_rom: bool = False
) -> TrimeshRigidBody:
    absolute_path = Path(to_absolute_path(mesh_path))
    mesh = load_rom_mesh(absolute_path) if is_rom else load_surface_mesh(absolute_path)
    return TrimeshRigidBody(
        mesh=mesh, X_WB=pose_from_xyz_rpy(pose_cfg.xyz, pose_cfg.rpy_deg)
    )


def run_local(cfg: DictConfig, output_dir: Path) -> dict:
    start_time = time.time()

    # Save config to output directory for reproducibility.
    resolved_config_yaml = OmegaConf.to_yaml(cfg, resolve=True)
    console_logger.info("Resolved configuration:\n" + resolved_config_yaml)
    config_file = output_dir / "resolved_config.yaml"
    with open(config_file, "w") as f:
        f.write(resolved_config_yaml)

    rom = load_rigid_body(cfg.rom_mesh, cfg.rom_pose, is_rom=True)
    affordance = load_rigid_body(cfg.affordance_mesh, cfg.affordance_pose)

    region = compute_intersection_region(
        rom=rom,
        affordance=affordance,
        config=IntersectionConfig.from_config(cfg.intersection),
    )

    result = {
        "rom_mesh": cfg.rom_mesh,
        "affordance_mesh": cfg.affordance_mesh,
        "in_collision": region.in_collision,
        "num_interior_vertices": region.num_interior_vertices,
        "boundary": region.boundary.tolist(),
        "shape": None,
    }
    if region.is_empty:
        console_logger.info("No intersection region, skipping shape fit")
    else:
        try:
            result["shape"] = fit_boundary_shape(
                region.boundary, shape=cfg.fit_shape
            ).to_dict()
        except IntersectionError as e:
            console_logger.error(f"Shape fit failed: {e}")
            result["shape_error"] = str(e)

    result_file = output_dir / "result.json"
    with open(result_file, "w") as f:
        json.dump(result, f, indent=2)
    console_logger.info(f"Saved result to: {result_file}")

    console_logger.info(
        f"Completed in {timedelta(seconds=time.time() - start_time)}"
    )
    return result


@hydra.main(version_base=None, config_path="configurations", config_name="config")
def run(cfg: DictConfig):
    # Configure logging level from LOGLEVEL environment variable.
    log_level = os.environ.get("LOGLEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    hydra_cfg = hydra.core.hydra_config.HydraConfig.get()
    output_dir = Path(hydra_cfg.runtime.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with FileLoggingContext(log_file_path=output_dir / "run.log"):
        console_logger.info(f"Outputs will be saved to: {output_dir}")
        run_local(cfg, output_dir)


if __name__ == "__main__":
    run()
