from dataclasses import dataclass


@dataclass(frozen=True)
class Artifact:
    """One generated file, addressed by its path relative to the output directory."""

    path: str
    content: str
