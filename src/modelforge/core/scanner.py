import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from modelforge.errors import ModuleIndexError, ScanError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceUnit:
    path: Path
    lineage: tuple[str, ...]


def scan_declarations(
    root: str | Path,
    *,
    suffix: str = ".rs",
    module_index: str = "mod.rs",
) -> Iterator[SourceUnit]:
    """Lazily yield every declaration source file beneath ``root``.

    ``lineage`` is the chain of directory names between ``root`` and the file.
    Directories are visited depth-first in sorted order so repeated runs see
    files in the same order. Raises ``ModuleIndexError`` as soon as a
    hand-maintained module index is found and ``ScanError`` for directories
    that are missing or cannot be read.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise ScanError(f"Models directory not found: {root_path}")
    yield from _walk(root_path, (), suffix, module_index)


def _walk(directory: Path, lineage: tuple[str, ...], suffix: str, module_index: str) -> Iterator[SourceUnit]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        raise ScanError(f"Cannot read directory {directory}: {exc}") from exc

    for entry in entries:
        if entry.name.startswith("."):
            continue
        path = Path(entry.path)
        if entry.is_dir():
            yield from _walk(path, (*lineage, entry.name), suffix, module_index)
        elif entry.name == module_index:
            raise ModuleIndexError(path)
        elif entry.name.endswith(suffix):
            logger.debug("Discovered %s (lineage: %s)", path, "/".join(lineage) or ".")
            yield SourceUnit(path=path, lineage=lineage)


def discover_models_root(project_root: str | Path) -> Path:
    """Locate the models directory of a project.

    Looks for ``app/<name>/models`` first, then ``src/models``; falls back to
    ``project_root`` itself.
    """
    base = Path(project_root)
    app_dir = base / "app"
    if app_dir.is_dir():
        for candidate in sorted(app_dir.iterdir()):
            if (candidate / "models").is_dir():
                return candidate / "models"
    if (base / "src" / "models").is_dir():
        return base / "src" / "models"
    return base
