from collections.abc import Sequence

from modelforge.emitters.artifact import Artifact


class MemorySink:
    """Keeps committed artifacts in a dict. Each commit replaces the previous one."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.commits = 0

    def commit(self, artifacts: Sequence[Artifact]) -> None:
        self.files = {artifact.path: artifact.content for artifact in artifacts}
        self.commits += 1
