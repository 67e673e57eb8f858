from collections.abc import Sequence
from typing import Protocol

from modelforge.emitters.artifact import Artifact


class ArtifactSink(Protocol):
    def commit(self, artifacts: Sequence[Artifact]) -> None: ...
