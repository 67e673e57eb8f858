from __future__ import annotations

from pathlib import Path


class ModelForgeError(Exception):
    """Base class for every build-time and runtime error raised by modelforge."""


class ScanError(ModelForgeError):
    """The declaration scanner could not walk the models tree. Aborts the run."""


class ModuleIndexError(ScanError):
    def __init__(self, path: Path) -> None:
        super().__init__(
            f"Hand-maintained module index found at {path}; "
            "auto-discovered model directories must not contain one"
        )
        self.path = path


class ClassificationAmbiguity(ModelForgeError):
    def __init__(self, lineage: tuple[str, ...], roles: list[str]) -> None:
        super().__init__(f"Directory lineage {'/'.join(lineage)!r} matches several roles: {', '.join(roles)}")
        self.lineage = lineage
        self.roles = roles


class AnnotationParseError(ModelForgeError):
    """Malformed declaration or directive syntax. Excludes the offending declaration only."""

    def __init__(self, message: str, *, declaration: str | None = None, path: Path | None = None) -> None:
        super().__init__(message)
        self.declaration = declaration
        self.path = path


class FieldValidationError(ModelForgeError):
    """A validation step rejected a request payload."""

    def __init__(self, field: str | None, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class RegistryIntegrityError(ModelForgeError):
    """The frozen registry violates a catalog invariant. Fatal before emission."""


class RegistryClosedError(ModelForgeError):
    pass


class EmissionError(ModelForgeError):
    def __init__(self, artifact: str, message: str) -> None:
        super().__init__(f"{artifact}: {message}")
        self.artifact = artifact


class CompileError(ModelForgeError):
    """One or more emitters failed; nothing was committed."""

    def __init__(self, failures: list[EmissionError]) -> None:
        listing = "; ".join(str(failure) for failure in failures)
        super().__init__(f"{len(failures)} artifact(s) failed to emit: {listing}")
        self.failures = failures
