from __future__ import annotations

from typing import Any

import numpy as onp
from jax.typing import ArrayLike


class DimensionMismatch(ValueError):
    """Raised when a vector argument does not match a model's declared dimension."""


def check_len(expected: int, *arrays: Any) -> None:
    """Check that each array is one-dimensional with `expected` entries.

    Raises:
        DimensionMismatch: if any length differs. Nothing is truncated or padded.
    """
    for i, array in enumerate(arrays):
        shape = onp.shape(array)
        if shape != (expected,):
            raise DimensionMismatch(
                f"Argument {i} has shape {shape}, but expected ({expected},)."
            )


def as_vector(x: ArrayLike) -> onp.ndarray:
    """View an array-like as a float numpy vector, copying only if needed."""
    return onp.asarray(x, dtype=onp.float64)


def frozen_vector(x: ArrayLike) -> onp.ndarray:
    """Copy an array-like into a read-only float numpy vector."""
    out = onp.array(x, dtype=onp.float64)
    out.flags.writeable = False
    return out
