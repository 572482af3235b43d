from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any, override

import numpy as np
import numpy.typing as npt
import torch
from torch import Tensor

from ._backing import Backing
from ._grad import nondifferentiable
from .errors import DimensionMismatchError

_logger = logging.getLogger(__name__)

INDEX_DTYPES = (torch.uint8, torch.int8, torch.int16, torch.int32, torch.int64)

type Handler = Callable[..., Any]

_HANDLED_FUNCTIONS: dict[Callable[..., Any], Handler] = {}


def implements(*torch_functions: Callable[..., Any]) -> Callable[[Handler], Handler]:
    """Register a one-hot specific implementation of pytorch functions.

    Functions without an implementation receive dense boolean tensors instead
    of the one-hot arrays, see `OneHotArray.__torch_function__`.
    """

    def decorator(handler: Handler) -> Handler:
        for fn in torch_functions:
            _HANDLED_FUNCTIONS[fn] = handler
        return handler

    return decorator


def _check_index_dtype(dtype: torch.dtype) -> None:
    if dtype not in INDEX_DTYPES:
        raise ValueError(
            f"Index storage must have an integer dtype, got dtype=`{dtype}`"
        )


@nondifferentiable
class OneHotArray:
    """A boolean array where exactly one element of each slice along dim 0 is true.

    Only the position of the true element ("hot index") is stored. The first
    dimension of size `num_classes` is virtual, the remaining dimensions are
    the dimensions of `indices`. A 0-dim `indices` tensor makes a one-hot
    vector, a 1-dim one a matrix with one column per index.

    The array takes part in pytorch's `__torch_function__` protocol so it can
    be passed to `torch.cat`, `torch.argmax`, `torch.matmul` etc. Functions
    without a one-hot implementation operate on the dense boolean equivalent.

    Instances are immutable, every operation returns a new array.
    """

    __slots__ = ("_indices", "_num_classes")

    _indices: Tensor
    _num_classes: int

    def __init__(self, indices: Tensor | int | Sequence[int], num_classes: int) -> None:
        """Wrap `indices`.

        Raises:
            ValueError:
                - If `indices` doesn't have an integer dtype.
                - If `num_classes` isn't positive.
                - If any of the indices is outside `[0, num_classes)`.
        """
        indices = torch.as_tensor(indices)
        _check_index_dtype(indices.dtype)

        if num_classes < 1:
            raise ValueError(f"num_classes must be positive, got {num_classes}")

        if indices.numel() > 0:
            low, high = int(indices.min()), int(indices.max())
            if low < 0 or high >= num_classes:
                raise ValueError(
                    f"Indices must be in [0, {num_classes}), got values in [{low}, {high}]"
                )

        self._indices = indices
        self._num_classes = int(num_classes)

    @classmethod
    def _wrap(cls, indices: Tensor, num_classes: int) -> OneHotArray:
        """Wrap indices derived from an existing array, skipping the range check."""
        x = cls.__new__(cls)
        x._indices = indices
        x._num_classes = num_classes
        return x

    @property
    def indices(self) -> Tensor:
        """The stored hot indices."""
        return self._indices

    @property
    def num_classes(self) -> int:
        return self._num_classes

    @property
    def shape(self) -> torch.Size:
        return torch.Size((self._num_classes, *self._indices.shape))

    def size(self, dim: int | None = None) -> torch.Size | int:
        if dim is None:
            return self.shape
        return self.shape[dim]

    def dim(self) -> int:
        return self._indices.dim() + 1

    @property
    def ndim(self) -> int:
        return self.dim()

    def numel(self) -> int:
        return self._num_classes * self._indices.numel()

    @property
    def dtype(self) -> torch.dtype:
        return torch.bool

    @property
    def index_dtype(self) -> torch.dtype:
        return self._indices.dtype

    @property
    def device(self) -> torch.device:
        return self._indices.device

    @property
    def backing(self) -> Backing:
        """Where the index storage lives, decides how labels are looked up."""
        return Backing.from_device(self.device)

    @property
    def is_vector(self) -> bool:
        return self._indices.dim() == 0

    def __len__(self) -> int:
        return self._num_classes

    def __iter__(self) -> Iterator[Tensor]:
        for i in range(self._num_classes):
            yield self[i]

    @override
    def __repr__(self) -> str:
        return f"OneHotArray(indices={self._indices!r}, num_classes={self._num_classes})"

    def __getitem__(self, key: object) -> Tensor | OneHotArray:
        if not isinstance(key, tuple):
            key = (key,)
        key = self._expand_ellipsis(key)

        if len(key) == 0:
            return self

        leading, rest = key[0], key[1:]

        if _is_full_slice(leading):
            if all(_is_full_slice(k) for k in rest):
                return self
            return OneHotArray._wrap(self._indices[rest], self._num_classes)

        if isinstance(leading, (int, np.integer)) and not isinstance(leading, bool):
            return self._indices[rest] == self._class_position(int(leading))

        _logger.debug(f"Indexing the dense form of a one-hot array with `{key}`")
        return self.to_dense()[key]

    def _expand_ellipsis(self, key: tuple[object, ...]) -> tuple[object, ...]:
        positions = [i for i, k in enumerate(key) if k is Ellipsis]
        match positions:
            case []:
                return key
            case [i]:
                fill = (slice(None),) * (self.dim() - len(key) + 1)
                return key[:i] + fill + key[i + 1 :]
            case _:
                raise IndexError("An index can only have a single ellipsis ('...')")

    def _class_position(self, i: int) -> int:
        # Only negative positions are wrapped, anything else out of range
        # compares unequal to every stored index.
        if -self._num_classes <= i < 0:
            return i + self._num_classes
        return i

    def to_dense(self, dtype: torch.dtype = torch.bool) -> Tensor:
        """Materialize the array as a dense tensor of `dtype` on the device of the indices."""
        dense = torch.nn.functional.one_hot(
            self._indices.to(torch.int64), self._num_classes
        )
        return dense.movedim(-1, 0).to(dtype)

    def __array__(
        self, dtype: npt.DTypeLike | None = None, copy: bool | None = None
    ) -> npt.NDArray[Any]:
        _ = copy
        array = self.to_dense().numpy(force=True)
        if dtype is not None:
            return array.astype(dtype)
        return array

    def reshape(self, *shape: int | Sequence[int]) -> OneHotArray:
        """Reshape the array, the first dimension must stay `num_classes`.

        Raises:
            ValueError:
                If the first dimension of `shape` isn't `num_classes`.
        """
        dims = _flatten_shape(shape)

        if len(dims) == 0 or dims[0] != self._num_classes:
            raise ValueError(
                f"Cannot reshape a one-hot array with {self._num_classes} classes to {dims}, \
the first dimension must stay {self._num_classes}"
            )

        return OneHotArray._wrap(self._indices.reshape(dims[1:]), self._num_classes)

    view = reshape

    def to(self, *args: Any, **kwargs: Any) -> OneHotArray:
        """Move or convert the index storage, accepts the arguments of `Tensor.to`.

        Raises:
            ValueError:
                If the conversion would produce a non-integer index dtype or
                one too small to hold `num_classes - 1`.
        """
        indices = self._indices.to(*args, **kwargs)
        _check_index_dtype(indices.dtype)

        if torch.iinfo(indices.dtype).max < self._num_classes - 1:
            raise ValueError(
                f"dtype=`{indices.dtype}` cannot hold indices of {self._num_classes} classes"
            )

        return OneHotArray._wrap(indices, self._num_classes)

    def cpu(self) -> OneHotArray:
        return self.to("cpu")

    def cuda(self, device: torch.device | int | str | None = None) -> OneHotArray:
        return OneHotArray._wrap(self._indices.cuda(device), self._num_classes)

    def adapt_structure(self, target: torch.device | str) -> OneHotArray:
        """Participate in `adapt` by moving only the index storage."""
        return self.to(target)

    def argmax(self, dim: int | None = None, keepdim: bool = False) -> Tensor:
        return torch.argmax(self, dim=dim, keepdim=keepdim)

    @classmethod
    def __torch_function__(
        cls,
        func: Callable[..., Any],
        types: Iterable[type],
        args: Sequence[Any] = (),
        kwargs: dict[str, Any] | None = None,
    ) -> Any:
        if kwargs is None:
            kwargs = {}

        handler = _HANDLED_FUNCTIONS.get(func)
        if handler is not None:
            return handler(*args, **kwargs)

        _logger.debug(
            f"No one-hot implementation for `{getattr(func, '__name__', func)}`, using dense tensors"
        )
        return func(*_densify(args), **_densify(kwargs))

    def __getattr__(self, name: str) -> Any:
        # Only reached for names missing on the class, such as tensor methods
        # which don't have a one-hot implementation.
        method = getattr(Tensor, name, None) if not name.startswith("_") else None
        if method is None or not callable(method):
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            )
        if name.endswith("_"):
            raise TypeError(
                f"`{name}` modifies a tensor in place, one-hot arrays are immutable. \
Use `to_dense` to get a tensor that can be modified"
            )

        def forward(*args: Any, **kwargs: Any) -> Any:
            return OneHotArray.__torch_function__(
                method, (OneHotArray,), (self, *args), kwargs
            )

        return forward

    @override
    def __eq__(self, other: object) -> Tensor:  # pyright: ignore[reportIncompatibleMethodOverride]
        if not isinstance(other, _COMPARABLE):
            return NotImplemented
        return torch.eq(self, other)  # pyright: ignore[reportArgumentType]

    @override
    def __ne__(self, other: object) -> Tensor:  # pyright: ignore[reportIncompatibleMethodOverride]
        if not isinstance(other, _COMPARABLE):
            return NotImplemented
        return torch.ne(self, other)  # pyright: ignore[reportArgumentType]

    __hash__ = None  # pyright: ignore[reportAssignmentType]

    def __and__(self, other: Any) -> Tensor:
        return torch.bitwise_and(self, other)  # pyright: ignore[reportArgumentType]

    def __rand__(self, other: Any) -> Tensor:
        return torch.bitwise_and(other, self)  # pyright: ignore[reportArgumentType]

    def __or__(self, other: Any) -> Tensor:
        return torch.bitwise_or(self, other)  # pyright: ignore[reportArgumentType]

    def __ror__(self, other: Any) -> Tensor:
        return torch.bitwise_or(other, self)  # pyright: ignore[reportArgumentType]

    def __xor__(self, other: Any) -> Tensor:
        return torch.bitwise_xor(self, other)  # pyright: ignore[reportArgumentType]

    def __rxor__(self, other: Any) -> Tensor:
        return torch.bitwise_xor(other, self)  # pyright: ignore[reportArgumentType]

    def __invert__(self) -> Tensor:
        return torch.bitwise_not(self)  # pyright: ignore[reportArgumentType]

    def __mul__(self, other: Any) -> Tensor:
        return torch.mul(self, other)  # pyright: ignore[reportArgumentType]

    def __rmul__(self, other: Any) -> Tensor:
        return torch.mul(other, self)  # pyright: ignore[reportArgumentType]

    def __add__(self, other: Any) -> Tensor:
        return torch.add(self, other)  # pyright: ignore[reportArgumentType]

    def __radd__(self, other: Any) -> Tensor:
        return torch.add(other, self)  # pyright: ignore[reportArgumentType]

    def __matmul__(self, other: Any) -> Tensor:
        return torch.matmul(self, other)  # pyright: ignore[reportArgumentType]

    def __rmatmul__(self, other: Any) -> Tensor:
        return torch.matmul(other, self)  # pyright: ignore[reportArgumentType]


_COMPARABLE = (Tensor, OneHotArray, bool, int, float, complex, np.number, np.bool_)


def _is_full_slice(key: object) -> bool:
    return isinstance(key, slice) and key == slice(None)


def _flatten_shape(shape: tuple[int | Sequence[int], ...]) -> tuple[int, ...]:
    if len(shape) == 1 and not isinstance(shape[0], int):
        return tuple(int(d) for d in shape[0])
    return tuple(int(d) for d in shape)  # pyright: ignore[reportArgumentType]


def _densify(value: Any) -> Any:
    """Replace one-hot arrays in (nested) arguments with dense boolean tensors."""
    match value:
        case OneHotArray():
            return value.to_dense()
        case list():
            return [_densify(v) for v in value]
        case tuple():
            return tuple(_densify(v) for v in value)
        case dict():
            return {k: _densify(v) for k, v in value.items()}
        case _:
            return value


def _all_onehot(xs: Sequence[object]) -> bool:
    return all(isinstance(x, OneHotArray) for x in xs)


def _common_num_classes(xs: Sequence[OneHotArray]) -> int:
    """Get the number of classes shared by all of `xs`.

    Raises:
        ValueError:
            If `xs` is empty or the numbers of classes differ.
    """
    counts = {x.num_classes for x in xs}
    match len(counts):
        case 0:
            raise ValueError("Expected at least one one-hot array")
        case 1:
            return counts.pop()
        case _:
            raise ValueError(
                f"One-hot arrays have different numbers of classes: {sorted(counts)}"
            )


def _normalize_dim(dim: int, ndim: int) -> int:
    if dim < 0:
        dim += ndim
    if dim < 0:
        raise IndexError(f"Dimension out of range for an array with {ndim} dimensions")
    return dim


def _pad_trailing(t: Tensor, ndim: int) -> Tensor:
    """Append singleton dimensions to `t` until it has `ndim` dimensions."""
    if t.dim() >= ndim:
        return t
    return t.reshape(*t.shape, *([1] * (ndim - t.dim())))


def _cat_onehot(xs: Sequence[OneHotArray], dim: int) -> OneHotArray:
    num_classes = _common_num_classes(xs)
    ndim = max(x.dim() for x in xs)
    dim = _normalize_dim(dim, ndim)

    if dim == 0:
        raise ValueError(
            "Cannot concatenate one-hot arrays along the first dimension, \
use `to_dense` to convert them to boolean tensors first"
        )

    index_ndim = max(ndim - 1, dim)
    indices = [_pad_trailing(x.indices, index_ndim) for x in xs]
    return OneHotArray._wrap(torch.cat(indices, dim=dim - 1), num_classes)


@implements(torch.cat, torch.concat)
def _cat(tensors: Sequence[Any], dim: int = 0) -> Tensor | OneHotArray:
    tensors = list(tensors)
    if _all_onehot(tensors):
        return _cat_onehot(tensors, dim)
    return torch.cat(_densify(tensors), dim=dim)


@implements(torch.hstack)
def _hstack(tensors: Sequence[Any]) -> Tensor | OneHotArray:
    tensors = list(tensors)
    if _all_onehot(tensors):
        return _cat_onehot(tensors, 1)
    return torch.hstack(_densify(tensors))


@implements(torch.vstack)
def _vstack(tensors: Sequence[Any]) -> Tensor | OneHotArray:
    tensors = list(tensors)
    if _all_onehot(tensors):
        return _cat_onehot(tensors, 0)
    return torch.vstack(_densify(tensors))


@implements(torch.stack)
def _stack(tensors: Sequence[Any], dim: int = 0) -> Tensor | OneHotArray:
    tensors = list(tensors)
    if not _all_onehot(tensors):
        return torch.stack(_densify(tensors), dim=dim)

    num_classes = _common_num_classes(tensors)
    dim = _normalize_dim(dim, tensors[0].dim() + 1)

    if dim == 0:
        raise ValueError("Cannot stack one-hot arrays along the first dimension")

    return OneHotArray._wrap(
        torch.stack([x.indices for x in tensors], dim=dim - 1), num_classes
    )


@implements(torch.reshape)
def _reshape(input: OneHotArray, shape: Sequence[int]) -> OneHotArray:
    return input.reshape(shape)


@implements(torch.Tensor.reshape, torch.Tensor.view)
def _reshape_method(input: OneHotArray, *shape: int | Sequence[int]) -> OneHotArray:
    return input.reshape(*shape)


@implements(torch.argmax, torch.Tensor.argmax)
def _argmax(input: OneHotArray, dim: int | None = None, keepdim: bool = False) -> Tensor:
    if dim is not None and _normalize_dim(dim, input.dim()) == 0:
        # The hot positions are already known.
        positions = input.indices.to(torch.int64, copy=True)
        return positions.unsqueeze(0) if keepdim else positions

    _logger.debug(f"Computing argmax over dim={dim} on the dense form")
    # argmax has no kernel for bool tensors
    return torch.argmax(input.to_dense(torch.uint8), dim=dim, keepdim=keepdim)


@implements(torch.equal, torch.Tensor.equal)
def _equal(input: Any, other: Any) -> bool:
    if isinstance(input, OneHotArray) and isinstance(other, OneHotArray):
        return (
            input.num_classes == other.num_classes
            and input.indices.shape == other.indices.shape
            and torch.equal(input.indices.long(), other.indices.long())
        )
    return torch.equal(*_densify((input, other)))


@implements(
    torch.matmul,
    torch.mm,
    torch.Tensor.matmul,
    torch.Tensor.mm,
    torch.Tensor.__matmul__,
)
def _matmul(input: Any, other: Any) -> Tensor:
    """Multiply a dense matrix by a one-hot array by gathering columns.

    Raises:
        DimensionMismatchError:
            If the number of columns doesn't match the number of classes.
    """
    if isinstance(other, OneHotArray) and not isinstance(input, OneHotArray):
        if input.dim() == 0 or input.shape[-1] != other.num_classes:
            columns = input.shape[-1] if input.dim() > 0 else 0
            raise DimensionMismatchError(
                f"Matrix columns must correspond with the one-hot size: {columns} != {other.num_classes}"
            )
        return input[..., other.indices.long()]

    # Dense fallback, bool tensors can't be multiplied so use the dtype of
    # the dense operand.
    dtype = next(
        (t.dtype for t in (input, other) if isinstance(t, Tensor)), torch.float32
    )
    operands = [
        t.to_dense(dtype) if isinstance(t, OneHotArray) else t for t in (input, other)
    ]
    return torch.matmul(*operands)


@nondifferentiable
def batch(xs: Iterable[OneHotArray], num_classes: int | None = None) -> OneHotArray:
    """Combine same-shape one-hot arrays into one with an extra trailing dimension.

    Batching one-hot vectors produces a one-hot matrix with one column per
    vector.

    Raises:
        ValueError:
            - If the arrays don't share the same number of classes.
            - If `num_classes` is given and doesn't match the arrays.
            - If `xs` is empty and `num_classes` isn't given.
    """
    xs = list(xs)

    if len(xs) == 0:
        if num_classes is None:
            raise ValueError("Cannot infer the number of classes of an empty batch")
        return OneHotArray._wrap(torch.empty(0, dtype=torch.int64), num_classes)

    common = _common_num_classes(xs)
    if num_classes is not None and num_classes != common:
        raise ValueError(
            f"Expected one-hot arrays with {num_classes} classes, got {common}"
        )

    return OneHotArray._wrap(torch.stack([x.indices for x in xs], dim=-1), common)
