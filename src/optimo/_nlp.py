from __future__ import annotations

from typing import Protocol

import numpy as onp
from loguru import logger
from typing_extensions import override

from ._meta import ModelMeta
from ._model import OptiModel
from .utils import check_len, frozen_vector


class NlpBackend(Protocol):
    """Differentiable model representing

        optimize    f(x)
        subject to  lvar <= x <= uvar
                    lcon <= c(x) <= ucon

    Evaluation methods write their result into `out`.
    """

    nvar: int
    ncon: int
    x0: onp.ndarray
    y0: onp.ndarray
    minimize: bool
    name: str
    lvar: onp.ndarray
    uvar: onp.ndarray
    lcon: onp.ndarray
    ucon: onp.ndarray

    def obj(self, x: onp.ndarray) -> float: ...

    def grad(self, x: onp.ndarray, out: onp.ndarray) -> None: ...

    def cons(self, x: onp.ndarray, out: onp.ndarray) -> None: ...

    def jprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None: ...

    def jtprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None: ...


class NlpOptiModel(OptiModel):
    """Adapter exposing an :class:`NlpBackend` as the problem

        optimize    f(x) + g(x)
        subject to  c(x) in S

    with `g` the indicator of the box `[lvar, uvar]` and `S` the box
    `[lcon, ucon]`. Smooth operators are forwarded to the backend; `proj` and
    `prox` clamp onto the corresponding box, and `objprox` always reports
    `g(z) = 0` since the clamped point is feasible.

    If `owns_backend` is set, :meth:`close` also calls the backend's `close()`
    method, when it has one.
    """

    def __init__(
        self,
        backend: NlpBackend,
        name: str | None = None,
        owns_backend: bool = True,
    ):
        self.meta = ModelMeta.make(
            backend.nvar,
            backend.ncon,
            x0=backend.x0,
            y0=backend.y0,
            minimize=backend.minimize,
            name=backend.name + "-nlpopti" if name is None else name,
        )
        check_len(backend.nvar, backend.lvar, backend.uvar)
        check_len(backend.ncon, backend.lcon, backend.ucon)
        self.backend = backend
        self.lvar = frozen_vector(backend.lvar)
        self.uvar = frozen_vector(backend.uvar)
        self.lcon = frozen_vector(backend.lcon)
        self.ucon = frozen_vector(backend.ucon)
        self._owns_backend = owns_backend
        self._closed = False

        logger.info(
            "Wrapping backend {} with {} variables and {} constraints",
            backend.name,
            self.meta.nvar,
            self.meta.ncon,
        )

    @override
    def _obj(self, x: onp.ndarray) -> float:
        return self.backend.obj(x)

    @override
    def _grad(self, x: onp.ndarray, out: onp.ndarray) -> None:
        self.backend.grad(x, out)

    @override
    def _cons(self, x: onp.ndarray, out: onp.ndarray) -> None:
        self.backend.cons(x, out)

    @override
    def _jprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        self.backend.jprod(x, v, out)

    @override
    def _jtprod(self, x: onp.ndarray, v: onp.ndarray, out: onp.ndarray) -> None:
        self.backend.jtprod(x, v, out)

    @override
    def _proj(self, v: onp.ndarray, out: onp.ndarray) -> None:
        onp.clip(v, self.lcon, self.ucon, out=out)

    @override
    def _prox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> None:
        onp.clip(x, self.lvar, self.uvar, out=out)

    @override
    def _objprox(self, x: onp.ndarray, step: float, out: onp.ndarray) -> float:
        onp.clip(x, self.lvar, self.uvar, out=out)
        return 0.0

    @override
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close_backend = getattr(self.backend, "close", None)
        if self._owns_backend and close_backend is not None:
            logger.debug("Releasing backend {}", self.backend.name)
            close_backend()
