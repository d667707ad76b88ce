from typing import Callable

import jax
import numpy as onp
import pytest

# Central differences need double precision to reach 1e-5.
jax.config.update("jax_enable_x64", True)


class ToyBackend:
    """Differentiable model with explicit derivatives:

        minimize    ||x||^2 + x0 x1
        subject to  -1 <= x <= 1
                    c(x) = [x0^2 + x1 - 1, x1 x2, x0 + x2]
                    c(x) in [-inf, 0] x [0, inf] x [-0.5, 0.5]

    With `constrained=False` the constraint map is dropped.
    """

    def __init__(self, constrained: bool = True):
        self.nvar = 3
        self.ncon = 3 if constrained else 0
        self.x0 = onp.array([0.5, -0.25, 2.0])
        self.y0 = onp.zeros(self.ncon)
        self.minimize = True
        self.name = "toy"
        self.lvar = -onp.ones(3)
        self.uvar = onp.ones(3)
        self.lcon = onp.array([-onp.inf, 0.0, -0.5])[: self.ncon]
        self.ucon = onp.array([0.0, onp.inf, 0.5])[: self.ncon]
        self.close_count = 0

    def obj(self, x):
        return float(x @ x + x[0] * x[1])

    def grad(self, x, out):
        out[:] = 2.0 * x + onp.array([x[1], x[0], 0.0])

    def cons(self, x, out):
        out[:] = onp.array([x[0] ** 2 + x[1] - 1.0, x[1] * x[2], x[0] + x[2]])[
            : self.ncon
        ]

    def jac(self, x):
        return onp.array(
            [
                [2.0 * x[0], 1.0, 0.0],
                [0.0, x[2], x[1]],
                [1.0, 0.0, 1.0],
            ]
        )[: self.ncon]

    def jprod(self, x, v, out):
        out[:] = self.jac(x) @ v

    def jtprod(self, x, v, out):
        out[:] = self.jac(x).T @ v

    def close(self):
        self.close_count += 1


@pytest.fixture
def toy_backend() -> ToyBackend:
    return ToyBackend()


@pytest.fixture
def fd_grad() -> Callable[[Callable[[onp.ndarray], float], onp.ndarray], onp.ndarray]:
    """Central-difference gradient of a scalar function."""

    def fd_grad(f, x, h=1e-6):
        x = onp.asarray(x, dtype=onp.float64)
        g = onp.zeros_like(x)
        for i in range(x.shape[0]):
            e = onp.zeros_like(x)
            e[i] = h
            g[i] = (f(x + e) - f(x - e)) / (2.0 * h)
        return g

    return fd_grad


@pytest.fixture
def unconstrained_backend() -> ToyBackend:
    return ToyBackend(constrained=False)
