from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, field_validator

_logger = logging.getLogger(__name__)


class LabelSet(BaseModel):
    """An ordered sequence of labels, stored as json."""

    labels: list[str]

    @field_validator("labels")
    @classmethod
    def _check_labels(cls, labels: list[str]) -> list[str]:
        if len(labels) == 0:
            raise ValueError("A label set needs at least one label")

        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            _logger.warning(
                f"Duplicate labels {duplicates}, only the first occurrence will be encoded"
            )

        return labels

    @classmethod
    def parse(cls, text: str) -> LabelSet:
        """Parse a comma separated list of labels."""
        return cls(labels=[part.strip() for part in text.split(",") if part.strip()])

    def save(self, path: Path) -> None:
        """Save the labels to `path` in json format.

        The parent directory is expected to exist.
        """
        _logger.debug(f"Saving {len(self.labels)} labels to {path}")
        with open(path, "w") as f:
            _ = f.write(self.model_dump_json(indent=2))

    @classmethod
    def load(cls, path: Path) -> LabelSet:
        with open(path, "r") as f:
            return cls.model_validate_json(f.read())
