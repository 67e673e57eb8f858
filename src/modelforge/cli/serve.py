from typing import Annotated

import typer

from modelforge.cli.options import ModelsDirArgument, configure_logging, console, load_config
from modelforge.core.compiler import compile_models
from modelforge.emitters.openapi import build_schema_document
from modelforge.errors import ModelForgeError


def serve(
    models_dir: ModelsDirArgument = None,
    host: str = "127.0.0.1",
    port: int = 8000,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every compile phase.")] = False,
) -> None:
    """Compile the models and serve the dispatcher over HTTP."""
    import uvicorn

    from modelforge.api.app import create_app

    configure_logging(verbose)
    config = load_config(models_dir)
    assert config.models_dir is not None

    try:
        result = compile_models(config.models_dir, config)
    except ModelForgeError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    assert result.dispatcher is not None

    app = create_app(
        result.dispatcher,
        build_schema_document(result.registry, config),
        title=config.api_title,
        version=config.api_version,
    )
    console.print(f"[green]Serving {len(result.dispatcher.endpoints)} endpoint(s) on {host}:{port}[/green]")
    uvicorn.run(app, host=host, port=port)
