import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from modelforge.config import CompilerConfig, Target
from modelforge.core.scanner import discover_models_root

console = Console()

ModelsDirArgument = Annotated[
    Path | None,
    typer.Argument(help="Models directory. Defaults to MODELFORGE_MODELS_DIR or auto-detection from the cwd."),
]
OutputOption = Annotated[Path | None, typer.Option("--out", "-o", help="Output directory for generated artifacts.")]
TargetOption = Annotated[
    list[Target] | None,
    typer.Option("--target", "-t", help="Artifact target to generate; repeat for several. Defaults to all."),
]
WorkersOption = Annotated[int | None, typer.Option("--workers", help="Thread pool size for parsing and emission.")]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_config(
    models_dir: Path | None,
    output_dir: Path | None = None,
    targets: list[Target] | None = None,
    workers: int | None = None,
) -> CompilerConfig:
    config = CompilerConfig.from_env(
        models_dir=models_dir,
        output_dir=output_dir,
        targets=targets or None,
        max_workers=workers,
    )
    if config.models_dir is None:
        config = config.model_copy(update={"models_dir": discover_models_root(Path.cwd())})
    return config
