from __future__ import annotations

import jax_dataclasses as jdc
import numpy as onp
from jax.typing import ArrayLike
from loguru import logger
from typing_extensions import override

from ._model import OptiModel, UnconstrainedWrapperModel
from .utils import as_vector, check_len, frozen_vector


@jdc.pytree_dataclass
class AugLagParams:
    """Penalty parameters and multiplier estimates of an augmented Lagrangian.

    Use :meth:`make` to construct: the cross terms are derived from `mu` and
    `y` there, and only there.
    """

    mu: onp.ndarray
    """Positive penalty parameters, one per constraint."""

    y: onp.ndarray
    """Lagrange multiplier estimates, one per constraint."""

    muy: onp.ndarray
    """Elementwise product `mu * y`."""

    half_musqy: float
    """`0.5 * sum(mu * y**2)`."""

    @staticmethod
    def make(mu: ArrayLike, y: ArrayLike) -> AugLagParams:
        mu = frozen_vector(mu)
        y = frozen_vector(y)
        check_len(mu.shape[0], y)
        assert onp.all(mu > 0), "Penalty parameters must be positive."
        muy = frozen_vector(mu * y)
        return AugLagParams(
            mu=mu, y=y, muy=muy, half_musqy=0.5 * float(onp.sum(muy * y))
        )


class AugLagOptiModel(UnconstrainedWrapperModel):
    """Augmented Lagrangian reformulation. Given `base` representing

        optimize    f(x) + g(x)
        subject to  c(x) in S

    and penalty parameters `mu > 0` with multiplier estimates `y`, this model
    represents

        optimize    L(x) + g(x)

    where

        L(x) = f(x) + 0.5 * sum((w - z)**2 / mu) - 0.5 * sum(mu * y**2)
        w = c(x) + mu * y,   z = proj_S(w)

    The penalty term is a scaled squared distance from `w` to `S`, so its
    gradient is `J(x)^T yu` with `yu = (w - z) / mu`, which is also the first-order
    multiplier update (see :meth:`multiplier_estimate`). `g` is untouched.
    """

    def __init__(
        self,
        base: OptiModel,
        mu: ArrayLike,
        y: ArrayLike,
        name: str | None = None,
        owns_base: bool = True,
    ):
        assert base.meta.ncon > 0, (
            "Augmented Lagrangian reformulation requires a constrained problem."
        )
        params = AugLagParams.make(mu, y)
        check_len(base.meta.ncon, params.mu)
        meta = base.meta.replace(
            ncon=0,
            y0=None,
            name=base.meta.name + "-al" if name is None else name,
        )
        super().__init__(base, meta, owns_base=owns_base)
        self._params = params

        # Scratch buffers.
        ncon = base.meta.ncon
        self._cx = onp.zeros(ncon)
        self._wz = onp.zeros(ncon)
        self._yu = onp.zeros(ncon)
        self._jtv = onp.zeros(base.meta.nvar)

        logger.info(
            "Building augmented Lagrangian of {} with {} constraints, "
            "mu in [{:.2e}, {:.2e}]",
            base.meta.name,
            ncon,
            float(onp.min(params.mu)),
            float(onp.max(params.mu)),
        )

    @property
    def params(self) -> AugLagParams:
        return self._params

    @property
    def mu(self) -> onp.ndarray:
        return self._params.mu

    @property
    def y(self) -> onp.ndarray:
        return self._params.y

    def update(self, mu: ArrayLike, y: ArrayLike) -> None:
        """Replace penalty parameters and multiplier estimates."""
        params = AugLagParams.make(mu, y)
        check_len(self.base.meta.ncon, params.mu)
        self._params = params
        logger.debug(
            "Updated augmented Lagrangian {}: max mu={:.2e}, max |y|={:.2e}",
            self.meta.name,
            float(onp.max(params.mu)),
            float(onp.max(onp.abs(params.y))),
        )

    def multiplier_estimate(
        self, x: ArrayLike, out: onp.ndarray | None = None
    ) -> onp.ndarray:
        """Evaluate `yu = (w - z) / mu` at x."""
        x = as_vector(x)
        out = self._out(self.base.meta.ncon, out)
        check_len(self.meta.nvar, x)
        check_len(self.base.meta.ncon, out)
        self.base.cons(x, out=self._cx)
        self._penalty()
        out[:] = self._yu
        return out

    def _penalty(self) -> float:
        """From `self._cx = c(x)`, fill `self._wz` and `self._yu` and return the
        penalty term of L."""
        p = self._params
        onp.add(self._cx, p.muy, out=self._wz)  # w = cx + mu * y
        self.base.proj(self._wz, out=self._yu)  # z = proj(w)
        self._wz -= self._yu  # w - z
        onp.divide(self._wz, p.mu, out=self._yu)  # yu = (w - z) / mu
        return 0.5 * float(self._wz @ self._yu) - p.half_musqy

    @override
    def _obj(self, x: onp.ndarray) -> float:
        fx, _ = self.base.objcons(x, out=self._cx)
        return fx + self._penalty()

    @override
    def _grad(self, x: onp.ndarray, out: onp.ndarray) -> None:
        self.base.cons(x, out=self._cx)
        self._penalty()
        self.base.grad(x, out=out)
        out += self.base.jtprod(x, self._yu, out=self._jtv)

    @override
    def _objgrad(self, x: onp.ndarray, out: onp.ndarray) -> float:
        self.base.cons(x, out=self._cx)
        penalty = self._penalty()
        fx, _ = self.base.objgrad(x, out=out)
        out += self.base.jtprod(x, self._yu, out=self._jtv)
        return fx + penalty

    @override
    def _prox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> None:
        self.base.prox(x, step, out=out)

    @override
    def _objprox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> float:
        gz, _ = self.base.objprox(x, step, out=out)
        return gz
