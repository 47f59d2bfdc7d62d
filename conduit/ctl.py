"""Control CLI for the conduit plugin manager."""

import typer

app = typer.Typer(
    name="conduitcli",
    help="Control panel for the Conduit Plugin Manager (conduit)",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def callback() -> None:
    """Control panel for the Conduit Plugin Manager (conduit)."""


@app.command("test")
def test_command(value: str = typer.Argument(..., metavar="STRING", help="String to print")) -> None:
    """A test command which prints an inputted string to the console."""
    typer.echo(value)


def main():
    app()


if __name__ == "__main__":
    main()
