from typing import Annotated

import typer
from rich.table import Table

from modelforge.cli.options import (
    ModelsDirArgument,
    OutputOption,
    TargetOption,
    WorkersOption,
    configure_logging,
    console,
    load_config,
)
from modelforge.core.compiler import compile_models
from modelforge.errors import CompileError, ModelForgeError
from modelforge.sinks import DirectorySink


def gen(
    models_dir: ModelsDirArgument = None,
    out: OutputOption = None,
    target: TargetOption = None,
    workers: WorkersOption = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every compile phase.")] = False,
) -> None:
    """Compile model declarations and write every generated artifact."""
    configure_logging(verbose)
    config = load_config(models_dir, out, target, workers)
    assert config.models_dir is not None

    try:
        result = compile_models(config.models_dir, config, DirectorySink(config.output_dir))
    except CompileError as exc:
        for failure in exc.failures:
            console.print(f"[red]{failure}[/red]")
        raise typer.Exit(1) from exc
    except ModelForgeError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc

    table = Table(title=f"Generated into {config.output_dir}")
    table.add_column("artifact")
    table.add_column("bytes", justify="right")
    for path, content in sorted(result.artifacts.items()):
        table.add_row(path, str(len(content.encode("utf-8"))))
    console.print(table)

    for diagnostic in result.diagnostics:
        console.print(f"[yellow]Skipped[/yellow] {diagnostic}")
    console.print(
        f"[green]Compiled[/green] {len(result.registry.declarations)} declaration(s), "
        f"{len(result.registry.endpoints)} endpoint(s)"
    )
