import dataclasses
from typing import Any

import torch
from torch import Tensor

from ._array import OneHotArray


def adapt(target: torch.device | str, value: Any) -> Any:
    """Recursively move the tensors in `value` to `target`.

    One-hot arrays only move their index storage. Lists, tuples (including
    named tuples), dicts and dataclass instances are rebuilt with adapted
    contents, anything else is returned unchanged.
    """
    match value:
        case OneHotArray():
            return value.adapt_structure(target)
        case Tensor():
            return value.to(target)
        case list():
            return [adapt(target, v) for v in value]
        case tuple() if hasattr(value, "_fields"):
            return type(value)(*(adapt(target, v) for v in value))
        case tuple():
            return tuple(adapt(target, v) for v in value)
        case dict():
            return {k: adapt(target, v) for k, v in value.items()}
        case _ if dataclasses.is_dataclass(value) and not isinstance(value, type):
            changes = {
                field.name: adapt(target, getattr(value, field.name))
                for field in dataclasses.fields(value)
                if field.init
            }
            return dataclasses.replace(value, **changes)
        case _:
            return value
