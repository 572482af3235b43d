"""Errors raised by one-hot encoding and decoding."""


class LabelNotFoundError(LookupError):
    """A value could not be found in the label sequence."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Value `{value!r}` is not in labels")
        self.value: object = value


class DimensionMismatchError(ValueError):
    """The shapes of two operands don't fit together."""
