import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from pytorch_onehot import LabelSet

_logger = logging.getLogger(__name__)

LabelsOption = Annotated[
    str | None,
    typer.Option(
        help="Comma separated labels, e.g. `cat,dog,bird`. Incompatible with --labels-file.",
        rich_help_panel="Labels",
    ),
]

LabelsFileOption = Annotated[
    Path | None,
    typer.Option(
        help="A json file created with `labels save`.",
        rich_help_panel="Labels",
    ),
]


def resolve_labels(labels: str | None, labels_file: Path | None) -> LabelSet:
    """Get the label set from exactly one of the two label options."""
    match labels, labels_file:
        case None, None:
            _logger.error("Either --labels or --labels-file is required")
            raise typer.Exit(code=1)
        case str(), Path():
            _logger.error("--labels and --labels-file can't be used together")
            raise typer.Exit(code=1)
        case _:
            pass

    try:
        if labels is not None:
            return LabelSet.parse(labels)

        assert labels_file is not None
        _logger.debug(f"Loading labels from {labels_file}")
        return LabelSet.load(labels_file)
    except ValidationError as e:
        _logger.error(f"Invalid labels: {e}")
        raise typer.Exit(code=1) from e
    except OSError as e:
        _logger.error(f"Failed to read labels: {e}")
        raise typer.Exit(code=1) from e
