import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from pytorch_onehot import LabelSet

_logger = logging.getLogger(__name__)

app = typer.Typer()


@app.command()
def save(
    names: Annotated[list[str], typer.Argument(help="The labels in order")],
    output: Annotated[
        Path, typer.Option("--output", "-o", help="The json file to write")
    ],
):
    """Save a label set for use with --labels-file"""
    try:
        label_set = LabelSet(labels=names)
    except ValidationError as e:
        _logger.error(f"Invalid labels: {e}")
        raise typer.Exit(code=1) from e

    label_set.save(output)
    _logger.info(f"Saved {len(names)} labels to {output}")


@app.command()
def show(
    path: Annotated[Path, typer.Argument(help="A json file created with `save`")],
):
    """Print the labels of a label set with their positions"""
    try:
        label_set = LabelSet.load(path)
    except (ValidationError, OSError) as e:
        _logger.error(f"Failed to load labels from {path}: {e}")
        raise typer.Exit(code=1) from e

    for i, label in enumerate(label_set.labels):
        print(f"{i}: {label}")
