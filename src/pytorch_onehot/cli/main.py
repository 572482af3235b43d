import typer

from . import codec, labels
from .utils import setup_logging

app = typer.Typer()

_ = app.command()(codec.encode)
_ = app.command()(codec.decode)
app.add_typer(
    labels.app,
    name="labels",
    help="Subcommands for managing label sets",
)


def main():
    setup_logging()
    app()


if __name__ == "__main__":
    main()
