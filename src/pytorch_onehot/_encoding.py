"""Encoding labels as one-hot arrays and decoding them back."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np
import torch
from torch import Tensor

from ._array import OneHotArray, batch
from ._backing import Backing
from ._grad import nondifferentiable
from .errors import LabelNotFoundError

_logger = logging.getLogger(__name__)


class _Missing:
    pass


_MISSING = _Missing()


def _find_first(value: object, labels: Sequence[object]) -> int | None:
    for i, label in enumerate(labels):
        if label == value:
            return i
    return None


@nondifferentiable
def onehot(
    value: object,
    labels: Sequence[object],
    default: object = _MISSING,
    *,
    dtype: torch.dtype = torch.int64,
) -> OneHotArray:
    """Return a one-hot vector where only the first occurrence of `value` in `labels` is hot.

    If `value` is not in `labels` and `default` is given, the result is
    `onehot(default, labels)`.

    Raises:
        LabelNotFoundError:
            If neither `value` nor `default` are in `labels`.

    Example:
        >>> onehot("b", ["a", "b", "c"]).to_dense()
        tensor([False,  True, False])
    """
    i = _find_first(value, labels)

    if i is None:
        if isinstance(default, _Missing):
            raise LabelNotFoundError(value)
        return onehot(default, labels, dtype=dtype)

    return OneHotArray(torch.tensor(i, dtype=dtype), len(labels))


@nondifferentiable
def onehotbatch(
    values: Iterable[object],
    labels: Sequence[object],
    default: object = _MISSING,
    *,
    dtype: torch.dtype = torch.int64,
) -> OneHotArray:
    """Return a one-hot matrix where column `k` is `onehot(values[k], labels, default)`.

    Raises:
        LabelNotFoundError:
            If a value is not in `labels` and there is no usable `default`.

    Example:
        >>> onehotbatch(["b", "a", "b"], ["a", "b", "c"]).to_dense().int()
        tensor([[0, 1, 0],
                [1, 0, 1],
                [0, 0, 0]], dtype=torch.int32)
    """
    vectors = [onehot(value, labels, default, dtype=dtype) for value in values]
    return batch(vectors, num_classes=len(labels))


@nondifferentiable
def onecold(y: Any, labels: Sequence[object] | Tensor | None = None) -> Any:
    """Inverse of `onehot`, maps the position of the maximum along dim 0 to a label.

    `y` can be a one-hot array or anything `torch.as_tensor` accepts, the
    first maximum wins on ties. `labels` defaults to the positions
    themselves.

    For a vector a single label is returned. For higher dimensional inputs
    the result has the shape of the remaining dimensions:

    - a tensor of positions if `labels` is None,
    - a tensor gathered from `labels` if it's a tensor,
    - a nested list of labels otherwise.

    Example:
        >>> onecold([0.3, 0.2, 0.5], ["a", "b", "c"])
        'c'
    """
    if isinstance(y, OneHotArray):
        positions = y.indices.to(torch.int64, copy=True)
    else:
        y = torch.as_tensor(y)
        if y.dim() == 0:
            raise ValueError("Cannot decode a scalar, expected at least one dimension")
        if y.dtype == torch.bool:
            # argmax has no kernel for bool tensors
            y = y.to(torch.uint8)
        positions = torch.argmax(y, dim=0)

    if positions.dim() == 0:
        return _lookup_single(int(positions), labels)
    return _lookup(positions, labels)


def _lookup_single(position: int, labels: Sequence[object] | Tensor | None) -> Any:
    if labels is None:
        return position
    return labels[position]


def _lookup(positions: Tensor, labels: Sequence[object] | Tensor | None) -> Any:
    if labels is None:
        return positions

    if isinstance(labels, Tensor):
        return labels.to(positions.device)[positions.long()]

    # Arbitrary Python objects can only be looked up from host memory.
    if not Backing.from_device(positions.device).host_addressable():
        _logger.debug(
            f"Copying {positions.numel()} positions from {positions.device} to host memory for label lookup"
        )
    host_positions = positions.numpy(force=True)

    table = np.empty(len(labels), dtype=object)
    for i, label in enumerate(labels):
        table[i] = label

    return table[host_positions].tolist()
