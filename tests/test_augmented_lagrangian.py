import jax.numpy as jnp
import numpy as onp
import pytest

import optimo


class EqualityBackend:
    """minimize x0^2 + 2 x1^2 + x0 x1  subject to  [x0 + x1 - 1, x0 x1] = 0."""

    nvar = 2
    ncon = 2
    x0 = onp.array([0.3, 0.4])
    y0 = onp.zeros(2)
    minimize = True
    name = "eq"
    lvar = -onp.inf * onp.ones(2)
    uvar = onp.inf * onp.ones(2)
    lcon = onp.zeros(2)
    ucon = onp.zeros(2)

    def obj(self, x):
        return float(x[0] ** 2 + 2.0 * x[1] ** 2 + x[0] * x[1])

    def grad(self, x, out):
        out[:] = [2.0 * x[0] + x[1], 4.0 * x[1] + x[0]]

    def cons(self, x, out):
        out[:] = [x[0] + x[1] - 1.0, x[0] * x[1]]

    def jac(self, x):
        return onp.array([[1.0, 1.0], [x[1], x[0]]])

    def jprod(self, x, v, out):
        out[:] = self.jac(x) @ v

    def jtprod(self, x, v, out):
        out[:] = self.jac(x).T @ v


def test_metadata(toy_backend):
    al = optimo.AugLagOptiModel(
        optimo.NlpOptiModel(toy_backend), onp.ones(3), onp.zeros(3)
    )
    assert al.meta.name == "toy-nlpopti-al"
    assert al.meta.nvar == 3 and al.is_unconstrained
    onp.testing.assert_allclose(al.meta.x0, toy_backend.x0)


def test_quadratic_penalty_with_equality_constraints():
    base = optimo.NlpOptiModel(EqualityBackend())
    mu = onp.array([0.5, 2.0])
    al = optimo.AugLagOptiModel(base, mu, onp.zeros(2))
    x = onp.array([0.7, -1.2])
    cx = base.cons(x)
    assert al.obj(x) == pytest.approx(base.obj(x) + 0.5 * onp.sum(cx**2 / mu))


def test_inactive_projection():
    # With S = R^m, the penalty vanishes and only the constant term is left.
    base = optimo.AutodiffOptiModel(
        lambda x: jnp.sum(x**2), onp.zeros(2), lambda x: jnp.array([x[0] - x[1]])
    )
    class FreeSet(optimo.WrapperModel):
        def _obj(self, x):
            return self.base.obj(x)

        def _grad(self, x, out):
            self.base.grad(x, out=out)

        def _cons(self, x, out):
            self.base.cons(x, out=out)

        def _jprod(self, x, v, out):
            self.base.jprod(x, v, out=out)

        def _jtprod(self, x, v, out):
            self.base.jtprod(x, v, out=out)

        def _proj(self, v, out):
            out[:] = v

    free = FreeSet(base, base.meta, owns_base=False)
    mu = onp.array([2.0])
    y = onp.array([3.0])
    al = optimo.AugLagOptiModel(free, mu, y)
    x = onp.array([1.5, -0.5])
    assert al.obj(x) == pytest.approx(free.obj(x) - 0.5 * 2.0 * 9.0)
    onp.testing.assert_allclose(al.multiplier_estimate(x), [0.0])


@pytest.mark.parametrize("y", [[0.0, 0.0, 0.0], [1.0, -2.0, 0.5]])
def test_gradient_matches_central_differences(toy_backend, fd_grad, y):
    al = optimo.AugLagOptiModel(
        optimo.NlpOptiModel(toy_backend), onp.array([0.5, 1.0, 2.0]), onp.array(y)
    )
    x = onp.array([0.4, 0.3, -0.6])
    onp.testing.assert_allclose(al.grad(x), fd_grad(al.obj, x), atol=1e-5)

    lx, dlx = al.objgrad(x)
    assert lx == pytest.approx(al.obj(x))
    onp.testing.assert_allclose(dlx, al.grad(x))


def test_multiplier_estimate(toy_backend):
    base = optimo.NlpOptiModel(toy_backend)
    mu = onp.array([0.5, 1.0, 2.0])
    y = onp.array([1.0, -2.0, 0.5])
    al = optimo.AugLagOptiModel(base, mu, y)
    x = onp.array([0.4, 0.3, -0.6])

    w = base.cons(x) + mu * y
    onp.testing.assert_allclose(al.multiplier_estimate(x), (w - base.proj(w)) / mu)


def test_update(toy_backend):
    al = optimo.AugLagOptiModel(
        optimo.NlpOptiModel(toy_backend), onp.ones(3), onp.zeros(3)
    )
    al.update(onp.array([1.0, 2.0, 4.0]), onp.array([1.0, 1.0, -1.0]))
    onp.testing.assert_allclose(al.mu, [1.0, 2.0, 4.0])
    onp.testing.assert_allclose(al.params.muy, [1.0, 2.0, -4.0])
    assert al.params.half_musqy == pytest.approx(3.5)

    with pytest.raises(AssertionError):
        al.update(onp.array([1.0, 0.0, 1.0]), onp.zeros(3))
    with pytest.raises(optimo.DimensionMismatch):
        al.update(onp.ones(2), onp.zeros(2))

    # Failed updates leave the parameters untouched.
    onp.testing.assert_allclose(al.mu, [1.0, 2.0, 4.0])


def test_invalid_construction(toy_backend, unconstrained_backend):
    base = optimo.NlpOptiModel(toy_backend)
    with pytest.raises(AssertionError):
        optimo.AugLagOptiModel(base, -onp.ones(3), onp.zeros(3))
    with pytest.raises(optimo.DimensionMismatch):
        optimo.AugLagOptiModel(base, onp.ones(2), onp.zeros(2))
    with pytest.raises(AssertionError):
        optimo.AugLagOptiModel(
            optimo.NlpOptiModel(unconstrained_backend), onp.ones(0), onp.zeros(0)
        )


def test_prox_passes_through(toy_backend):
    al = optimo.AugLagOptiModel(
        optimo.NlpOptiModel(toy_backend), onp.ones(3), onp.zeros(3)
    )
    gz, z = al.objprox(onp.array([2.0, -2.0, 0.5]), 1.0)
    assert gz == 0.0
    onp.testing.assert_allclose(z, [1.0, -1.0, 0.5])
