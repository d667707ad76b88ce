from __future__ import annotations

import dataclasses
from typing import Any

import numpy as onp
from loguru import logger

STATUSES: dict[str, str] = {
    "exception": "unhandled exception",
    "first_order": "first-order stationary",
    "acceptable": "solved to within acceptable tolerances",
    "infeasible": "problem may be infeasible",
    "max_eval": "maximum number of function evaluations",
    "max_iter": "maximum iteration",
    "max_time": "maximum elapsed time",
    "neg_pred": "negative predicted reduction",
    "not_desc": "not a descent direction",
    "small_residual": "small residual",
    "small_step": "step too small",
    "stalled": "stalled",
    "unbounded": "objective function may be unbounded from below",
    "unknown": "unknown",
    "ieee_nan_inf": "NaN or Inf occurred",
    "user": "user-requested stop",
}


@dataclasses.dataclass
class OptiOutput:
    """Termination record of a solver. Stores results; computes nothing."""

    status: str
    """Final status, one of the keys of `STATUSES`."""

    x: onp.ndarray | None = None
    """Final primal point."""

    y: onp.ndarray | None = None
    """Lagrange multipliers at `x`."""

    objective: float | None = None
    """Objective value at `x`."""

    optimality: float | None = None
    """Dual residual norm at `(x, y)`."""

    cviolation: float | None = None
    """Primal residual norm at `x`."""

    iterations: int | None = None
    elapsed_time: float | None = None
    """Elapsed time, in seconds."""

    solver_name: str | None = None
    solver: dict[str, Any] = dataclasses.field(default_factory=dict)
    """Solver-specific information."""

    def __post_init__(self) -> None:
        if self.status not in STATUSES:
            logger.error(
                "Invalid status {}. Use one of the following: {}",
                self.status,
                ", ".join(STATUSES),
            )
            raise KeyError(self.status)

    @property
    def status_message(self) -> str:
        return STATUSES[self.status]

    @staticmethod
    def statuses() -> tuple[str, ...]:
        return tuple(STATUSES)
