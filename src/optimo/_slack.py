from __future__ import annotations

import numpy as onp
from loguru import logger
from typing_extensions import override

from ._model import OptiModel, WrapperModel


class SlackOptiModel(WrapperModel):
    """Slack reformulation. Given `base` representing

        optimize    f(x) + g(x)
        subject to  c(x) in S

    this model introduces slack variables `s` and represents

        optimize    F(X) + G(X)
        subject to  C(X) = 0

    with `X = [x; s]`, `F(X) = f(x)`, `G(X) = g(x) + ind_S(s)` and
    `C(X) = c(x) - s`. The constraint set is `{0}`, and the original set `S`
    comes back through the proximal operator of `G`, which projects the slack
    block onto `S`.
    """

    def __init__(
        self, base: OptiModel, name: str | None = None, owns_base: bool = True
    ):
        meta = base.meta.replace(
            nvar=base.meta.nvar + base.meta.ncon,
            x0=onp.concatenate([base.meta.x0, onp.zeros(base.meta.ncon)]),
            name=base.meta.name + "-slack" if name is None else name,
        )
        super().__init__(base, meta, owns_base=owns_base)
        self._n = base.meta.nvar

        logger.info(
            "Adding {} slack variables to {}: {} -> {} variables",
            meta.ncon,
            base.meta.name,
            base.meta.nvar,
            meta.nvar,
        )

    @override
    def _obj(self, x: onp.ndarray) -> float:
        return self.base.obj(x[: self._n])

    @override
    def _grad(self, x: onp.ndarray, out: onp.ndarray) -> None:
        n = self._n
        self.base.grad(x[:n], out=out[:n])
        out[n:] = 0.0

    @override
    def _objgrad(self, x: onp.ndarray, out: onp.ndarray) -> float:
        n = self._n
        fx, _ = self.base.objgrad(x[:n], out=out[:n])
        out[n:] = 0.0
        return fx

    @override
    def _cons(self, x: onp.ndarray, out: onp.ndarray) -> None:
        n = self._n
        self.base.cons(x[:n], out=out)
        out -= x[n:]

    @override
    def _jprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        n = self._n
        self.base.jprod(x[:n], v[:n], out=out)
        out -= v[n:]

    @override
    def _jtprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        n = self._n
        self.base.jtprod(x[:n], v, out=out[:n])
        onp.negative(v, out=out[n:])

    @override
    def _proj(self, v: onp.ndarray, out: onp.ndarray) -> None:
        out.fill(0.0)

    @override
    def _dist(self, v: onp.ndarray) -> float:
        return float(onp.linalg.norm(v))

    @override
    def _prox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> None:
        n = self._n
        self.base.prox(x[:n], step, out=out[:n])
        self.base.proj(x[n:], out=out[n:])

    @override
    def _objprox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> float:
        n = self._n
        gz, _ = self.base.objprox(x[:n], step, out=out[:n])
        # The slack indicator vanishes on the projected block.
        self.base.proj(x[n:], out=out[n:])
        return gz
