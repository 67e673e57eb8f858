"""Compile driver: models directory in, artifacts out.

scan -> classify -> parse (thread pool, scan order kept) -> decorate ->
registry -> verify -> emitters (thread pool) -> sink.
"""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from modelforge.config import CompilerConfig, Target
from modelforge.core.classifier import classify
from modelforge.core.decoration import DecoratedDeclaration, decorate
from modelforge.core.parser import parse_source
from modelforge.core.ports.sink import ArtifactSink
from modelforge.core.registry import Registry
from modelforge.core.scanner import SourceUnit, scan_declarations
from modelforge.emitters.artifact import Artifact
from modelforge.emitters.client_codecs import emit_client_codecs
from modelforge.emitters.dispatcher import Dispatcher, build_dispatcher, emit_dispatcher
from modelforge.emitters.infrastructure import emit_infrastructure
from modelforge.emitters.openapi import emit_schema_document
from modelforge.emitters.storage import emit_storage_ddl
from modelforge.errors import (
    AnnotationParseError,
    ClassificationAmbiguity,
    CompileError,
    EmissionError,
    ScanError,
)
from modelforge.models import ModelDeclaration

logger = logging.getLogger(__name__)

Emitter = Callable[[Registry, CompilerConfig], list[Artifact]]

EMITTERS: dict[Target, Emitter] = {
    Target.DISPATCHER: emit_dispatcher,
    Target.SCHEMA: emit_schema_document,
    Target.CLIENT_CODECS: emit_client_codecs,
    Target.STORAGE: emit_storage_ddl,
    Target.INFRASTRUCTURE: emit_infrastructure,
}


@dataclass(frozen=True)
class Diagnostic:
    """A file or declaration left out of the build."""

    path: Path
    kind: str
    message: str
    declaration: str | None = None

    def __str__(self) -> str:
        where = f"{self.path}:{self.declaration}" if self.declaration else str(self.path)
        return f"{where}: {self.kind}: {self.message}"


@dataclass
class CompileResult:
    registry: Registry
    artifacts: dict[str, str] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    dispatcher: Dispatcher | None = None


def _parse_unit(unit: SourceUnit, config: CompilerConfig) -> tuple[list[ModelDeclaration], list[Diagnostic]]:
    try:
        role = classify(unit.lineage, config.role_keywords)
    except ClassificationAmbiguity as exc:
        return [], [Diagnostic(unit.path, type(exc).__name__, str(exc))]

    try:
        source = unit.path.read_bytes()
    except OSError as exc:
        raise ScanError(f"Cannot read model file {unit.path}: {exc}") from exc
    outcome = parse_source(source, unit.path, unit.lineage, role)
    diagnostics = [
        Diagnostic(unit.path, type(error).__name__, str(error), declaration=error.declaration)
        for error in outcome.errors
    ]
    return outcome.declarations, diagnostics


def collect_declarations(
    root: str | Path,
    config: CompilerConfig,
) -> tuple[list[DecoratedDeclaration], list[Diagnostic]]:
    """Scan, classify, parse and decorate every declaration beneath ``root``.

    Declarations that fail to classify, parse or compile are excluded and
    reported as diagnostics. Scan errors propagate.
    """
    units = list(
        scan_declarations(root, suffix=config.source_suffix, module_index=config.module_index_filename)
    )
    logger.info("Scanning %d model file(s) under %s", len(units), root)

    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        parsed = list(executor.map(lambda unit: _parse_unit(unit, config), units))

    decorated: list[DecoratedDeclaration] = []
    diagnostics: list[Diagnostic] = []
    for declarations, unit_diagnostics in parsed:
        diagnostics.extend(unit_diagnostics)
        for declaration in declarations:
            try:
                decorated.append(decorate(declaration))
            except AnnotationParseError as exc:
                diagnostics.append(
                    Diagnostic(declaration.path, type(exc).__name__, str(exc), declaration=declaration.name)
                )

    for diagnostic in diagnostics:
        logger.warning("Excluded %s", diagnostic)
    return decorated, diagnostics


def emit_artifacts(
    registry: Registry,
    config: CompilerConfig,
    targets: Iterable[Target] | None = None,
) -> dict[str, str]:
    """Verify the registry and run the selected emitters concurrently.

    Raises ``CompileError`` listing every failed artifact once all emitters finished.
    """
    registry.verify()
    selected = [target for target in Target if target in set(targets if targets is not None else config.targets)]

    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        futures = {target: executor.submit(EMITTERS[target], registry, config) for target in selected}

    artifacts: dict[str, str] = {}
    failures: list[EmissionError] = []
    for target, future in futures.items():
        try:
            produced = future.result()
        except EmissionError as exc:
            logger.error("Emitter %s failed: %s", target, exc)
            failures.append(exc)
            continue
        for artifact in produced:
            artifacts[artifact.path] = artifact.content
        logger.debug("Emitter %s produced %d artifact(s)", target, len(produced))

    if failures:
        raise CompileError(failures)
    return artifacts


def compile_models(
    root: str | Path,
    config: CompilerConfig,
    sink: ArtifactSink | None = None,
) -> CompileResult:
    decorated, diagnostics = collect_declarations(root, config)
    registry = Registry.build(decorated)
    artifacts = emit_artifacts(registry, config)
    if sink is not None:
        sink.commit([Artifact(path, content) for path, content in artifacts.items()])
    logger.info("Compiled %d declaration(s) into %d artifact(s)", len(decorated), len(artifacts))
    return CompileResult(
        registry=registry,
        artifacts=artifacts,
        diagnostics=diagnostics,
        dispatcher=build_dispatcher(registry),
    )
