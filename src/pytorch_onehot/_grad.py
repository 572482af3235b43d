"""Registry of objects that never take part in gradient computation."""

import functools
from collections.abc import Callable, Hashable

import torch

NONDIFFERENTIABLE: set[object] = set()


def nondifferentiable[F: Callable[..., object]](obj: F) -> F:
    """Mark a function or class as a non-differentiable leaf.

    Functions are additionally run under `torch.no_grad()`. Classes are only
    registered, their methods are not wrapped.
    """
    if isinstance(obj, type):
        NONDIFFERENTIABLE.add(obj)
        return obj

    @functools.wraps(obj)
    def wrapper(*args: object, **kwargs: object) -> object:
        with torch.no_grad():
            return obj(*args, **kwargs)

    NONDIFFERENTIABLE.add(wrapper)
    return wrapper  # pyright: ignore[reportReturnType]


def is_nondifferentiable(obj: object) -> bool:
    """Check if gradients must not flow through `obj`.

    Instances of registered classes count as non-differentiable too.
    """
    if isinstance(obj, Hashable) and obj in NONDIFFERENTIABLE:
        return True
    return type(obj) in NONDIFFERENTIABLE
