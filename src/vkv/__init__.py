"""vkv - recursive list, export, import and snapshot of Vault KV secret engines."""

import re
from pathlib import Path

# Try to get version from installed package first
try:
    from importlib.metadata import version, PackageNotFoundError
    try:
        __version__ = version("vkv")
    except PackageNotFoundError:
        raise
except (ImportError, PackageNotFoundError):
    # Package not installed, read from pyproject.toml
    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        with open(pyproject_path, "r", encoding="utf-8") as f:
            match = re.search(r'version\s*=\s*["\']([^"\']+)["\']', f.read())
            __version__ = match.group(1) if match else "0.0.0"
    else:
        __version__ = "0.0.0"
