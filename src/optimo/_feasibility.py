from __future__ import annotations

from typing import Literal, get_args

import jax_dataclasses as jdc
import numpy as onp
from jax.typing import ArrayLike
from loguru import logger
from typing_extensions import override

from ._model import OptiModel, UnconstrainedWrapperModel
from .utils import as_vector, check_len, frozen_vector

LossKind = Literal["abs", "euclid", "euclid_sq", "huber"]


@jdc.pytree_dataclass
class FeasibilityConfig:
    """Configuration for :class:`FeasOptiModel`."""

    loss: jdc.Static[LossKind] = "euclid_sq"
    """Loss applied to the infeasibility residual `r = c(x) - proj_S(c(x))`:
    - 'abs': ||r||_1
    - 'euclid': ||r||_2
    - 'euclid_sq': 0.5 ||r||_2^2
    - 'huber': Huber loss with threshold `huber_rho` and scale `huber_mu`
    """

    huber_rho: float = 1.0
    """Huber threshold. Must be positive."""

    huber_mu: float = 1.0
    """Huber scale. Must be positive."""

    wprox: float = 0.0
    """Weight of the proximal regularization. Nonnegative; 0 disables it."""

    with_indicator: jdc.Static[bool] = False
    """Keep the base's proximable term as an indicator in the feasibility
    problem. If False, `prox` is the identity."""


def huber_loss(r: onp.ndarray, rho: float, mu: float) -> float:
    """Huber loss, with parameter rho > 0:

        mu/2 ||r||^2               if ||r|| <= rho
        rho mu (||r|| - rho/2)     otherwise
    """
    rnorm = float(onp.linalg.norm(r))
    if rnorm <= rho:
        return 0.5 * mu * rnorm**2
    return rho * mu * (rnorm - 0.5 * rho)


def huber_loss_grad(r: onp.ndarray, rho: float, mu: float, out: onp.ndarray) -> None:
    """Gradient of :func:`huber_loss`, written into `out`."""
    rnorm = float(onp.linalg.norm(r))
    if rnorm <= rho:
        onp.multiply(r, mu, out=out)
    else:
        onp.multiply(r, rho * mu / rnorm, out=out)


class FeasOptiModel(UnconstrainedWrapperModel):
    """Feasibility problem of `base`. Given `base` representing

        optimize    f(x) + g(x)
        subject to  c(x) in S

    this model represents

        minimize    m(c(x) - proj_S(c(x))) + wprox/2 sum(dprox * (x - xprox)**2)
                    [+ g(x), if `with_indicator`]

    where `m` is the configured loss. The proximal term is active only when
    `wprox > 0` and every entry of `dprox` is positive.

    The residual is cached and recomputed only when evaluated at a new point, so
    `base` must evaluate `c` deterministically.
    """

    def __init__(
        self,
        base: OptiModel,
        config: FeasibilityConfig = FeasibilityConfig(),
        xprox: ArrayLike | None = None,
        dprox: ArrayLike | None = None,
        x0: ArrayLike | None = None,
        name: str | None = None,
        owns_base: bool = True,
    ):
        nvar = base.meta.nvar
        xprox = base.meta.x0 if xprox is None else xprox
        dprox = onp.ones(nvar) if dprox is None else dprox
        x0 = xprox if x0 is None else x0
        check_len(nvar, x0, xprox, dprox)
        assert config.loss in get_args(LossKind), f"Unknown loss {config.loss!r}."
        assert config.wprox >= 0, "Proximal weight must be nonnegative."
        assert onp.all(onp.asarray(dprox) >= 0), "Proximal scaling must be nonnegative."
        assert config.huber_rho > 0 and config.huber_mu > 0, (
            "Huber parameters must be positive."
        )

        meta = base.meta.replace(
            ncon=0,
            x0=x0,
            y0=None,
            minimize=True,
            name=base.meta.name + "-feas" if name is None else name,
        )
        super().__init__(base, meta, owns_base=owns_base)
        self.config = config
        self.xprox = frozen_vector(xprox)
        self.dprox = frozen_vector(dprox)
        self._with_prox = config.wprox > 0 and bool(onp.all(self.dprox > 0))

        # Scratch buffers. `_rx` holds the residual at `_xlast`.
        ncon = base.meta.ncon
        self._cx = onp.zeros(ncon)
        self._rx = onp.zeros(ncon)
        self._dir = onp.zeros(ncon)
        self._xlast = onp.zeros(nvar)
        self._has_xlast = False

        logger.info(
            "Building feasibility problem of {} with {} loss, {} constraints, "
            "proximal term {}",
            base.meta.name,
            config.loss,
            ncon,
            "on" if self._with_prox else "off",
        )

    @property
    def with_prox(self) -> bool:
        return self._with_prox

    @property
    def with_indicator(self) -> bool:
        return self.config.with_indicator

    def _residual(self, x: onp.ndarray) -> onp.ndarray:
        if self._has_xlast and onp.array_equal(x, self._xlast):
            return self._rx
        self.base.cons(x, out=self._cx)
        self.base.proj(self._cx, out=self._rx)
        onp.subtract(self._cx, self._rx, out=self._rx)
        self._xlast[:] = x
        self._has_xlast = True
        return self._rx

    def infeasibility(self, x: ArrayLike) -> float:
        """Loss of the infeasibility residual at x, without proximal term.

        The residual is reused while x is unchanged, assuming `base` evaluates `c`
        deterministically.
        """
        x = as_vector(x)
        check_len(self.meta.nvar, x)
        r = self._residual(x)
        loss = self.config.loss
        if loss == "abs":
            return float(onp.sum(onp.abs(r)))
        elif loss == "euclid":
            return float(onp.linalg.norm(r))
        elif loss == "euclid_sq":
            return 0.5 * float(r @ r)
        else:
            return huber_loss(r, self.config.huber_rho, self.config.huber_mu)

    def infeasibility_grad(
        self, x: ArrayLike, out: onp.ndarray | None = None
    ) -> onp.ndarray:
        """Gradient of :meth:`infeasibility` at x."""
        x = as_vector(x)
        out = self._out(self.meta.nvar, out)
        check_len(self.meta.nvar, x, out)
        r = self._residual(x)
        loss = self.config.loss
        if loss == "abs":
            onp.sign(r, out=self._dir)
        elif loss == "euclid":
            rnorm = float(onp.linalg.norm(r))
            # The direction r / ||r|| is bounded for any normal-range norm.
            if rnorm <= onp.finfo(r.dtype).tiny:
                out.fill(0.0)
                return out
            onp.divide(r, rnorm, out=self._dir)
        elif loss == "euclid_sq":
            self._dir[:] = r
        else:
            huber_loss_grad(
                r, self.config.huber_rho, self.config.huber_mu, out=self._dir
            )
        self.base.jtprod(x, self._dir, out=out)
        return out

    def cviolation(self, x: ArrayLike) -> float:
        """Infinity norm of the infeasibility residual at x. Shares the cached
        residual of :meth:`infeasibility`."""
        x = as_vector(x)
        check_len(self.meta.nvar, x)
        r = self._residual(x)
        return float(onp.max(onp.abs(r))) if r.size > 0 else 0.0

    def proxdistance(self, x: ArrayLike) -> float:
        """Scaled distance `0.5 * sum(dprox * (x - xprox)**2)`."""
        x = as_vector(x)
        check_len(self.meta.nvar, x)
        d = x - self.xprox
        return 0.5 * float(onp.sum(self.dprox * d * d))

    def unsproxdistance(self, x: ArrayLike) -> float:
        """Unscaled distance `0.5 * ||x - xprox||^2`."""
        x = as_vector(x)
        check_len(self.meta.nvar, x)
        d = x - self.xprox
        return 0.5 * float(d @ d)

    @override
    def _obj(self, x: onp.ndarray) -> float:
        phi = self.infeasibility(x)
        if self._with_prox:
            phi += self.config.wprox * self.proxdistance(x)
        return phi

    @override
    def _grad(self, x: onp.ndarray, out: onp.ndarray) -> None:
        self.infeasibility_grad(x, out=out)
        if self._with_prox:
            out += self.config.wprox * self.dprox * (x - self.xprox)

    @override
    def _prox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> None:
        if self.config.with_indicator:
            self.base.prox(x, step, out=out)
        else:
            out[:] = x

    @override
    def _objprox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> float:
        if self.config.with_indicator:
            gz, _ = self.base.objprox(x, step, out=out)
            return gz
        out[:] = x
        return 0.0
