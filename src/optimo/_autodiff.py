from __future__ import annotations

from typing import Callable

import jax
import numpy as onp
from jax import numpy as jnp
from jax.experimental import enable_x64
from jax.typing import ArrayLike
from loguru import logger
from typing_extensions import override

from ._meta import ModelMeta
from ._model import OptiModel
from .utils import DimensionMismatch, check_len


def _no_constraints(x: jax.Array) -> jax.Array:
    return jnp.zeros((0,), dtype=x.dtype)


class AutodiffOptiModel(OptiModel):
    """Problem defined by JAX-traceable closures, with derivatives from autodiff.

    The represented problem is

        optimize    f(x)
        subject to  c(x) in R^ncon

    `f` maps a vector to a scalar and `c` maps a vector to a vector. Gradients
    use reverse mode, Jacobian-vector products use forward mode (`jax.jvp`),
    and transposed products use a vector-Jacobian product (`jax.vjp`), which is
    the gradient of `<c(x), v>`. All are JIT-compiled once, at construction, and
    always evaluated in double precision, whether or not `jax_enable_x64` is set.

    There is no proximable term and no constraint set: `prox`, `objprox` and
    `proj` raise `NotImplementedError` (except `proj` when `ncon == 0`).
    """

    def __init__(
        self,
        f: Callable[[jax.Array], jax.Array],
        x0: ArrayLike,
        c: Callable[[jax.Array], jax.Array] | None = None,
        y0: ArrayLike | None = None,
        minimize: bool = True,
        name: str = "Generic",
    ):
        if c is None:
            assert y0 is None, "Initial dual guess given without constraints."
            c = _no_constraints
        with enable_x64():
            # Infer the number of constraints without evaluating c.
            c_shape = jax.eval_shape(c, jnp.asarray(x0, dtype=jnp.float64)).shape
        if len(c_shape) != 1:
            raise DimensionMismatch(
                f"Constraint map returns shape {c_shape}, expected a vector."
            )
        (ncon,) = c_shape
        if y0 is not None:
            check_len(ncon, y0)

        self.meta = ModelMeta.make(
            onp.shape(x0)[0], ncon, x0=x0, y0=y0, minimize=minimize, name=name
        )
        self.f = f
        self.c = c

        self._obj_jit = jax.jit(f)
        self._grad_jit = jax.jit(jax.grad(f))
        self._cons_jit = jax.jit(c)
        self._jprod_jit = jax.jit(lambda x, v: jax.jvp(c, (x,), (v,))[1])
        self._jtprod_jit = jax.jit(lambda x, v: jax.vjp(c, x)[1](v)[0])

        logger.info(
            "Building autodiff model {} with {} variables and {} constraints",
            self.meta.name,
            self.meta.nvar,
            self.meta.ncon,
        )

    def _eval(self, fn: Callable[..., jax.Array], *args: onp.ndarray) -> onp.ndarray:
        # Traced calls run in double precision, whatever the global JAX setting.
        with enable_x64():
            return onp.asarray(fn(*args))

    @override
    def _obj(self, x: onp.ndarray) -> float:
        return float(self._eval(self._obj_jit, x))

    @override
    def _grad(self, x: onp.ndarray, out: onp.ndarray) -> None:
        out[:] = self._eval(self._grad_jit, x)

    @override
    def _cons(self, x: onp.ndarray, out: onp.ndarray) -> None:
        out[:] = self._eval(self._cons_jit, x)

    @override
    def _jprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        out[:] = self._eval(self._jprod_jit, x, v)

    @override
    def _jtprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        out[:] = self._eval(self._jtprod_jit, x, v)
