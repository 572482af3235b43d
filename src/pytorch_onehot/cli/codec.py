import logging
from typing import Annotated

import torch
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pytorch_onehot import LabelNotFoundError, onecold, onehotbatch

from .options import LabelsFileOption, LabelsOption, resolve_labels

_logger = logging.getLogger(__name__)

_console = Console()


def encode(
    values: Annotated[list[str], typer.Argument(help="The values to encode")],
    labels: LabelsOption = None,
    labels_file: LabelsFileOption = None,
    default: Annotated[
        str | None,
        typer.Option(help="The label to use for values that are not in the labels."),
    ] = None,
):
    """Print the one-hot matrix of the values, one column per value."""
    label_set = resolve_labels(labels, labels_file)

    try:
        if default is None:
            encoded = onehotbatch(values, label_set.labels)
        else:
            encoded = onehotbatch(values, label_set.labels, default)
    except LabelNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(code=1) from e

    dense = encoded.to_dense(torch.uint8).tolist()

    table = Table("label", *(escape(v) for v in values))
    for label, row in zip(label_set.labels, dense, strict=True):
        table.add_row(escape(label), *(str(v) for v in row))

    _console.print(table)


def decode(
    scores: Annotated[list[float], typer.Argument(help="One score per label")],
    labels: LabelsOption = None,
    labels_file: LabelsFileOption = None,
):
    """Print the label with the highest score."""
    label_set = resolve_labels(labels, labels_file)

    if len(scores) != len(label_set.labels):
        _logger.error(
            f"Got {len(scores)} scores for {len(label_set.labels)} labels, expected one score per label"
        )
        raise typer.Exit(code=1)

    label = onecold(torch.tensor(scores), label_set.labels)
    _console.print(escape(str(label)))
