"Memory efficient one-hot arrays for pytorch"

from ._adapt import adapt
from ._array import (
    INDEX_DTYPES,
    OneHotArray,
    batch,
    implements,
)
from ._backing import Backing
from ._encoding import (
    onecold,
    onehot,
    onehotbatch,
)
from ._grad import (
    NONDIFFERENTIABLE,
    is_nondifferentiable,
    nondifferentiable,
)
from ._labels import LabelSet
from .errors import (
    DimensionMismatchError,
    LabelNotFoundError,
)

__all__ = [
    "INDEX_DTYPES",
    "NONDIFFERENTIABLE",
    "Backing",
    "DimensionMismatchError",
    "LabelNotFoundError",
    "LabelSet",
    "OneHotArray",
    "adapt",
    "batch",
    "implements",
    "is_nondifferentiable",
    "nondifferentiable",
    "onecold",
    "onehot",
    "onehotbatch",
]
