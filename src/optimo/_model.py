from __future__ import annotations

import abc
from typing import Any

import numpy as onp
from jax.typing import ArrayLike
from loguru import logger
from typing_extensions import Self

from ._meta import ModelMeta
from .utils import as_vector, check_len


class OptiModel(abc.ABC):
    """Uniform interface to a problem

        optimize    f(x) + g(x)
        subject to  c(x) in S

    where `f` is smooth, `g` is proximable, `c` is differentiable and `S` is a
    closed, projectable set.

    Public methods check every vector argument against `meta` before doing any
    work, allocate outputs when `out` is omitted, and otherwise write into `out`
    and return it. Subclasses implement the underscored hooks, which receive
    validated float vectors.

    Models own private scratch buffers; concurrent calls on one instance must
    be serialized by the caller.
    """

    meta: ModelMeta

    # Hooks.

    @abc.abstractmethod
    def _obj(self, x: onp.ndarray) -> float: ...

    @abc.abstractmethod
    def _grad(self, x: onp.ndarray, out: onp.ndarray) -> None: ...

    @abc.abstractmethod
    def _cons(self, x: onp.ndarray, out: onp.ndarray) -> None: ...

    @abc.abstractmethod
    def _jprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None: ...

    @abc.abstractmethod
    def _jtprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None: ...

    def _proj(self, v: onp.ndarray, out: onp.ndarray) -> None:
        raise NotImplementedError(
            f"{type(self).__name__} has no constraint set to project onto."
        )

    def _prox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> None:
        raise NotImplementedError(f"{type(self).__name__} has no proximable term.")

    def _objprox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> float:
        raise NotImplementedError(f"{type(self).__name__} has no proximable term.")

    def _objgrad(self, x: onp.ndarray, out: onp.ndarray) -> float:
        fx = self._obj(x)
        self._grad(x, out)
        return fx

    def _objcons(self, x: onp.ndarray, out: onp.ndarray) -> float:
        fx = self._obj(x)
        if self.meta.ncon > 0:
            self._cons(x, out)
        return fx

    def _dist(self, v: onp.ndarray) -> float:
        p = onp.empty_like(v)
        self._proj(v, p)
        return float(onp.linalg.norm(p - v))

    # Public interface.

    @property
    def is_unconstrained(self) -> bool:
        return self.meta.is_unconstrained

    def obj(self, x: ArrayLike) -> float:
        """Evaluate f(x)."""
        x = as_vector(x)
        check_len(self.meta.nvar, x)
        return float(self._obj(x))

    def grad(self, x: ArrayLike, out: onp.ndarray | None = None) -> onp.ndarray:
        """Evaluate the gradient of f at x."""
        x = as_vector(x)
        out = self._out(self.meta.nvar, out)
        check_len(self.meta.nvar, x, out)
        self._grad(x, out)
        return out

    def objgrad(
        self, x: ArrayLike, out: onp.ndarray | None = None
    ) -> tuple[float, onp.ndarray]:
        """Evaluate f(x) and its gradient together."""
        x = as_vector(x)
        out = self._out(self.meta.nvar, out)
        check_len(self.meta.nvar, x, out)
        fx = self._objgrad(x, out)
        return float(fx), out

    def cons(self, x: ArrayLike, out: onp.ndarray | None = None) -> onp.ndarray:
        """Evaluate c(x)."""
        x = as_vector(x)
        out = self._out(self.meta.ncon, out)
        check_len(self.meta.nvar, x)
        check_len(self.meta.ncon, out)
        if self.meta.ncon > 0:
            self._cons(x, out)
        return out

    def objcons(
        self, x: ArrayLike, out: onp.ndarray | None = None
    ) -> tuple[float, onp.ndarray]:
        """Evaluate f(x) and c(x) together."""
        x = as_vector(x)
        out = self._out(self.meta.ncon, out)
        check_len(self.meta.nvar, x)
        check_len(self.meta.ncon, out)
        fx = self._objcons(x, out)
        return float(fx), out

    def jprod(
        self, x: ArrayLike, v: ArrayLike, out: onp.ndarray | None = None
    ) -> onp.ndarray:
        """Evaluate J(x) v, where J is the Jacobian of c."""
        x = as_vector(x)
        v = as_vector(v)
        out = self._out(self.meta.ncon, out)
        check_len(self.meta.nvar, x, v)
        check_len(self.meta.ncon, out)
        if self.meta.ncon > 0:
            self._jprod(x, v, out)
        return out

    def jtprod(
        self, x: ArrayLike, v: ArrayLike, out: onp.ndarray | None = None
    ) -> onp.ndarray:
        """Evaluate J(x)^T v, where J is the Jacobian of c."""
        x = as_vector(x)
        v = as_vector(v)
        out = self._out(self.meta.nvar, out)
        check_len(self.meta.nvar, x, out)
        check_len(self.meta.ncon, v)
        if self.meta.ncon > 0:
            self._jtprod(x, v, out)
        else:
            out.fill(0.0)
        return out

    def proj(self, v: ArrayLike, out: onp.ndarray | None = None) -> onp.ndarray:
        """Project v onto S."""
        v = as_vector(v)
        out = self._out(self.meta.ncon, out)
        check_len(self.meta.ncon, v, out)
        if self.meta.ncon > 0:
            self._proj(v, out)
        return out

    def prox(
        self, x: ArrayLike, step: float, out: onp.ndarray | None = None
    ) -> onp.ndarray:
        """Evaluate the proximal operator of `step * g` at x."""
        x = as_vector(x)
        out = self._out(self.meta.nvar, out)
        check_len(self.meta.nvar, x, out)
        assert step > 0, f"Proximal step must be positive, got {step}."
        self._prox(x, step, out)
        return out

    def objprox(
        self, x: ArrayLike, step: float, out: onp.ndarray | None = None
    ) -> tuple[float, onp.ndarray]:
        """Evaluate the proximal point z of `step * g` at x, and g(z)."""
        x = as_vector(x)
        out = self._out(self.meta.nvar, out)
        check_len(self.meta.nvar, x, out)
        assert step > 0, f"Proximal step must be positive, got {step}."
        gz = self._objprox(x, step, out)
        return float(gz), out

    def dist(self, v: ArrayLike) -> float:
        """Euclidean distance from v to S."""
        v = as_vector(v)
        check_len(self.meta.ncon, v)
        if self.meta.ncon == 0:
            return 0.0
        return float(self._dist(v))

    # Resource handling.

    def close(self) -> None:
        """Release resources held by this model. Safe to call more than once."""

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.meta.name!r}, "
            f"nvar={self.meta.nvar}, ncon={self.meta.ncon})"
        )

    @staticmethod
    def _out(size: int, out: onp.ndarray | None) -> onp.ndarray:
        return onp.zeros(size) if out is None else out


class WrapperModel(OptiModel):
    """Base class for reformulations, which expose a new problem built from the
    operators of `base`."""

    base: OptiModel

    def __init__(self, base: OptiModel, meta: ModelMeta, owns_base: bool = True):
        self.base = base
        self.meta = meta
        self._owns_base = owns_base
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_base:
            logger.debug(
                "Closing {}, releasing base {}", self.meta.name, self.base.meta.name
            )
            self.base.close()


class UnconstrainedWrapperModel(WrapperModel):
    """Reformulation whose derived problem has no constraints. Constraint hooks
    are never reached, since public methods short-circuit when `ncon == 0`."""

    def _cons(self, x: onp.ndarray, out: onp.ndarray) -> None:
        pass

    def _jprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        pass

    def _jtprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        out.fill(0.0)
