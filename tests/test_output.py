import numpy as onp
import pytest

import optimo


def test_valid_status():
    out = optimo.OptiOutput(
        "first_order",
        x=onp.zeros(2),
        objective=1.5,
        iterations=10,
        solver_name="test",
        solver={"inner_iterations": 42},
    )
    assert out.status_message == "first-order stationary"
    assert out.y is None and out.elapsed_time is None
    assert out.solver["inner_iterations"] == 42


def test_invalid_status():
    with pytest.raises(KeyError):
        optimo.OptiOutput("converged")


def test_statuses():
    assert set(optimo.OptiOutput.statuses()) == set(optimo.STATUSES)
    assert "max_iter" in optimo.OptiOutput.statuses()
