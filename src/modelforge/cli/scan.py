from typing import Annotated

import typer
from rich.table import Table

from modelforge.cli.options import ModelsDirArgument, configure_logging, console, load_config
from modelforge.core.compiler import collect_declarations
from modelforge.errors import ModelForgeError


def scan(
    models_dir: ModelsDirArgument = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every discovered file.")] = False,
) -> None:
    """List discovered declarations with their role and capabilities."""
    configure_logging(verbose)
    config = load_config(models_dir)
    assert config.models_dir is not None

    try:
        declarations, diagnostics = collect_declarations(config.models_dir, config)
    except ModelForgeError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc

    table = Table()
    table.add_column("declaration")
    table.add_column("role")
    table.add_column("capabilities")
    table.add_column("source")
    for decorated in declarations:
        declaration = decorated.declaration
        table.add_row(
            declaration.name,
            str(declaration.role),
            ", ".join(sorted(decorated.capabilities)),
            str(declaration.path.relative_to(config.models_dir)),
        )
    console.print(table)
    console.print(f"({len(declarations)} declarations)")

    for diagnostic in diagnostics:
        console.print(f"[yellow]Skipped[/yellow] {diagnostic}")
