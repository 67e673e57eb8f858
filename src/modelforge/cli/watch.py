import asyncio
from pathlib import Path
from typing import Annotated

import typer

from modelforge.cli.options import (
    ModelsDirArgument,
    OutputOption,
    TargetOption,
    configure_logging,
    console,
    load_config,
)
from modelforge.config import CompilerConfig
from modelforge.core.compiler import compile_models
from modelforge.core.ports.watcher import ModelWatcherPort
from modelforge.errors import ModelForgeError
from modelforge.sinks import DirectorySink
from modelforge.watcher.watchfiles_adapter import WatchfilesWatcher


def _recompile(config: CompilerConfig) -> None:
    assert config.models_dir is not None
    try:
        result = compile_models(config.models_dir, config, DirectorySink(config.output_dir))
    except ModelForgeError as exc:
        console.print(f"[red]{exc}[/red]")
        return
    console.print(f"[green]Regenerated[/green] {len(result.artifacts)} artifact(s)")
    for diagnostic in result.diagnostics:
        console.print(f"[yellow]Skipped[/yellow] {diagnostic}")


def watch(
    models_dir: ModelsDirArgument = None,
    out: OutputOption = None,
    target: TargetOption = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every compile phase.")] = False,
) -> None:
    """Compile once, then recompile whenever a model file changes."""
    configure_logging(verbose)
    config = load_config(models_dir, out, target)
    assert config.models_dir is not None
    _recompile(config)

    async def _on_change(paths: set[Path]) -> None:
        console.print(f"Changed: {', '.join(sorted(p.name for p in paths))}")
        await asyncio.to_thread(_recompile, config)

    async def _run() -> None:
        watcher: ModelWatcherPort = WatchfilesWatcher(config.models_dir, _on_change, suffix=config.source_suffix)
        await watcher.start()
        console.print(f"[green]Watching[/green] {config.models_dir} (Ctrl+C to stop)")
        try:
            await asyncio.Event().wait()
        finally:
            await watcher.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("Stopped.")
