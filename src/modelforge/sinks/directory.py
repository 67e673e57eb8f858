import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from modelforge.emitters.artifact import Artifact
from modelforge.errors import EmissionError

logger = logging.getLogger(__name__)


def _relative(path: str) -> PurePosixPath:
    relative = PurePosixPath(path)
    if relative.is_absolute() or ".." in relative.parts:
        raise EmissionError(path, "Artifact paths must stay inside the output directory")
    return relative


class DirectorySink:
    """Writes artifacts below ``output_dir``.

    Everything is first written to a staging directory inside the output
    directory. Files are only moved into place once every artifact was
    written; replaced files are kept aside until all moves succeeded and are
    restored if one fails, so a failed commit leaves the previous output in place.
    """

    def __init__(self, output_dir: str | Path) -> None:
        self._output_dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def commit(self, artifacts: Sequence[Artifact]) -> None:
        relative = [(_relative(artifact.path), artifact.content) for artifact in artifacts]
        self._output_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix=".modelforge-", dir=self._output_dir) as staging:
            staged: list[tuple[Path, Path]] = []
            for path, content in relative:
                target = Path(staging, "incoming", *path.parts)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
                staged.append((target, self._output_dir.joinpath(*path.parts)))

            previous = Path(staging, "previous")
            previous.mkdir()
            moved: list[tuple[Path, Path | None]] = []
            try:
                for index, (source, destination) in enumerate(staged):
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    backup = None
                    if destination.exists():
                        backup = previous / str(index)
                        os.replace(destination, backup)
                    moved.append((destination, backup))
                    os.replace(source, destination)
            except OSError:
                logger.error("Commit to %s failed; restoring %d file(s)", self._output_dir, len(moved))
                _restore(moved)
                raise

        logger.info("Committed %d artifact(s) to %s", len(staged), self._output_dir)


def _restore(moved: list[tuple[Path, Path | None]]) -> None:
    for destination, backup in reversed(moved):
        if backup is None:
            destination.unlink(missing_ok=True)
        else:
            os.replace(backup, destination)
