from __future__ import annotations

import numpy as onp
from jax.typing import ArrayLike
from loguru import logger
from typing_extensions import override

from ._model import OptiModel, WrapperModel
from .utils import check_len, frozen_vector


class ProxOptiModel(WrapperModel):
    """Proximal-point subproblem. Given `base` representing

        optimize    f(x) + g(x)
        subject to  c(x) in S

    and an anchor `x0` with step `a > 0`, this model represents

        minimize    1/(2a) ||x - x0||^2 + g(x)
        subject to  c(x) in S

    that is, the proximal operator of `g + ind_S(c(.))` at `x0`. Only the
    smooth part changes; everything else is forwarded to `base`.
    """

    def __init__(
        self,
        base: OptiModel,
        step: float,
        x0: ArrayLike | None = None,
        y0: ArrayLike | None = None,
        name: str | None = None,
        owns_base: bool = True,
    ):
        assert step > 0, f"Proximal step must be positive, got {step}."
        x0 = base.meta.x0 if x0 is None else x0
        y0 = base.meta.y0 if y0 is None else y0
        check_len(base.meta.nvar, x0)
        check_len(base.meta.ncon, y0)
        meta = base.meta.replace(
            x0=x0,
            y0=y0,
            minimize=True,
            name=base.meta.name + "-prox" if name is None else name,
        )
        super().__init__(base, meta, owns_base=owns_base)
        self.step = float(step)
        self.anchor = frozen_vector(x0)

        logger.info(
            "Building proximal subproblem of {} with step {}",
            base.meta.name,
            self.step,
        )

    @override
    def _obj(self, x: onp.ndarray) -> float:
        d = x - self.anchor
        return 0.5 / self.step * float(d @ d)

    @override
    def _grad(self, x: onp.ndarray, out: onp.ndarray) -> None:
        onp.subtract(x, self.anchor, out=out)
        out /= self.step

    @override
    def _cons(self, x: onp.ndarray, out: onp.ndarray) -> None:
        self.base.cons(x, out=out)

    @override
    def _jprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        self.base.jprod(x, v, out=out)

    @override
    def _jtprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        self.base.jtprod(x, v, out=out)

    @override
    def _proj(self, v: onp.ndarray, out: onp.ndarray) -> None:
        self.base.proj(v, out=out)

    @override
    def _prox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> None:
        self.base.prox(x, step, out=out)

    @override
    def _objprox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> float:
        gz, _ = self.base.objprox(x, step, out=out)
        return gz
