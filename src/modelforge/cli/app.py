import typer

from modelforge.cli.gen import gen
from modelforge.cli.scan import scan
from modelforge.cli.serve import serve
from modelforge.cli.watch import watch

app = typer.Typer(
    name="modelforge",
    help="modelforge: compile model declarations into dispatchers, schemas, codecs and DDL.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("gen")(gen)
app.command("scan")(scan)
app.command("watch")(watch)
app.command("serve")(serve)


def main() -> None:
    app()
