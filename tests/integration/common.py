import importlib.util

from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def has_fcl_installed() -> bool:
    """Check if python-fcl is available for the broad-phase collision check."""
    return importlib.util.find_spec("fcl") is not None


def load_script_module(name: str):
    """Import a file under scripts/ as a module."""
    script_path = REPO_ROOT / "scripts" / f"{name}.py"
    spec = importlib.util.spec_from_file_location(name, script_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
