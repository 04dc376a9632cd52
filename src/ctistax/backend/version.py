"""Report the engine version from package metadata or the source checkout."""

from __future__ import annotations

import re
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Final

PACKAGE_NAME: Final = "ctistax"
PYPROJECT_PATH: Final = Path(__file__).resolve().parents[3] / "pyproject.toml"

_SECTION = re.compile(r"^\s*\[(?P<name>[^\]]+)\]\s*$")
_VERSION = re.compile(r"""^\s*version\s*=\s*["'](?P<value>[^"']+)["']""")


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed version, falling back to ``pyproject.toml``."""

    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return read_pyproject_version(PYPROJECT_PATH)


def read_pyproject_version(path: Path) -> str:
    """Return ``[project].version`` from the ``pyproject.toml`` at ``path``."""

    if not path.exists():
        raise RuntimeError(f"Unable to locate project metadata at {path}")

    in_project = False
    for line in path.read_text(encoding="utf-8").splitlines():
        section = _SECTION.match(line)
        if section:
            in_project = section.group("name").strip() == "project"
            continue
        if in_project:
            version = _VERSION.match(line)
            if version:
                return version.group("value")

    raise RuntimeError(f"No [project] version declared in {path.name}")


__all__ = ["PACKAGE_NAME", "get_project_version", "read_pyproject_version"]
