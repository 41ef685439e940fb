from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .models import PackageInfo


logger = logging.getLogger(__name__)

MAX_MANIFEST_DEPTH = 10


def package_name(specifier: str) -> str:
    """Bare package name of an import specifier.

    "@scope/pkg/sub" -> "@scope/pkg", "pkg/sub" -> "pkg".
    """
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return "/".join(parts[:2])
    return parts[0]


def detect_manager(project_root: Path) -> str:
    if (project_root / "pnpm-lock.yaml").exists():
        return "pnpm"
    if (project_root / "yarn.lock").exists():
        return "yarn"
    return "npm"


def _read_manifest(path: Path) -> dict | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Skipping unreadable manifest %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


class PackageResolver:
    """Resolve import specifiers against the nearest package.json manifests.

    Manifests are cached per path for the resolver's lifetime; create one
    resolver per scan.
    """

    def __init__(self, *, max_depth: int = MAX_MANIFEST_DEPTH):
        self.max_depth = int(max_depth)
        self._cache: dict[Path, dict | None] = {}

    def _manifest(self, path: Path) -> dict | None:
        if path not in self._cache:
            self._cache[path] = _read_manifest(path) if path.is_file() else None
        return self._cache[path]

    def resolve(self, specifier: str, from_file: str | os.PathLike[str]) -> PackageInfo | None:
        name = package_name(specifier)
        current = Path(from_file).parent
        for _ in range(self.max_depth + 1):
            manifest = self._manifest(current / "package.json")
            if manifest is not None:
                deps = manifest.get("dependencies") or {}
                dev_deps = manifest.get("devDependencies") or {}
                version = deps.get(name) or dev_deps.get(name)
                if isinstance(version, str) and version:
                    return PackageInfo(
                        name=name,
                        version=version.lstrip("^~"),
                        manager=detect_manager(current),
                        is_dev_dependency=name not in deps and name in dev_deps,
                    )
            parent = current.parent
            if parent == current:
                break
            current = parent
        return None
