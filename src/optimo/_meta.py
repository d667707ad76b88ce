from __future__ import annotations

import jax_dataclasses as jdc
import numpy as onp
from jax.typing import ArrayLike

from .utils import check_len, frozen_vector


@jdc.pytree_dataclass
class ModelMeta:
    """Dimensions and descriptive data of a problem

        optimize    f(x) + g(x)
        subject to  c(x) in S

    where `x` has `nvar` entries and `c(x)` has `ncon` entries.

    Records are immutable: wrappers derive new ones with :meth:`replace`. Use
    :meth:`make` to construct, which validates all fields.
    """

    nvar: jdc.Static[int]
    """Number of variables."""

    ncon: jdc.Static[int]
    """Number of constraints."""

    x0: onp.ndarray
    """Initial primal guess. Shape: (nvar,)."""

    y0: onp.ndarray
    """Initial dual guess. Shape: (ncon,)."""

    minimize: jdc.Static[bool] = True
    """True if the problem is a minimization."""

    name: jdc.Static[str] = "Generic"
    """Problem name."""

    @staticmethod
    def make(
        nvar: int,
        ncon: int,
        x0: ArrayLike | None = None,
        y0: ArrayLike | None = None,
        minimize: bool = True,
        name: str = "Generic",
    ) -> ModelMeta:
        """Validate dimensions and build a metadata record. Initial guesses
        default to zero vectors."""
        assert nvar >= 1 and ncon >= 0, (
            f"Nonsensical dimensions: nvar={nvar}, ncon={ncon}."
        )
        x0 = onp.zeros(nvar) if x0 is None else x0
        y0 = onp.zeros(ncon) if y0 is None else y0
        check_len(nvar, x0)
        check_len(ncon, y0)
        return ModelMeta(
            nvar=int(nvar),
            ncon=int(ncon),
            x0=frozen_vector(x0),
            y0=frozen_vector(y0),
            minimize=bool(minimize),
            name=str(name),
        )

    def replace(self, **changes) -> ModelMeta:
        """Derive a new, validated record with some fields changed."""
        fields = dict(
            nvar=self.nvar,
            ncon=self.ncon,
            x0=self.x0,
            y0=self.y0,
            minimize=self.minimize,
            name=self.name,
        )
        fields.update(changes)
        return ModelMeta.make(**fields)

    @property
    def is_unconstrained(self) -> bool:
        return self.ncon == 0
