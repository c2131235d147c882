import numpy as np
import pytest

from nlsloop import get_backend, models
from nlsloop.data import Partition


def _line_partition(m=2.0, b=-0.5, n=40, seed=0, sigma=0.05):
    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n)
    y = m * x + b + rng.normal(0.0, sigma, size=n)
    return Partition(id="line", x=x, y=y, predictors=("x",))


INF2 = (np.full(2, -np.inf), np.full(2, np.inf))


@pytest.mark.parametrize("name", ["scipy.least_squares", "scipy.curve_fit"])
def test_backend_recovers_line(name):
    model = models.straight_line()
    part = _line_partition()
    out = get_backend(name).fit_one(
        model=model, partition=part, start=np.array([0.0, 0.0]),
        lower=INF2[0], upper=INF2[1], options={},
    )

    assert out.converged
    assert abs(out.theta[0] - 2.0) < 0.05
    assert abs(out.theta[1] + 0.5) < 0.05
    assert out.n_obs == 40
    assert out.dof == 38
    assert out.cov is not None and out.cov.shape == (2, 2)
    resid = model.eval_theta(part.x, out.theta) - part.y
    assert out.rss == pytest.approx(float(np.sum(resid ** 2)))


def test_backends_agree_on_covariance():
    model = models.straight_line()
    part = _line_partition(seed=3)
    outs = [
        get_backend(n).fit_one(
            model=model, partition=part, start=np.array([1.0, 1.0]),
            lower=INF2[0], upper=INF2[1], options={},
        )
        for n in ("scipy.least_squares", "scipy.curve_fit")
    ]
    assert np.allclose(outs[0].theta, outs[1].theta, atol=1e-5)
    assert np.allclose(outs[0].cov, outs[1].cov, rtol=1e-3)


def test_hard_constraint_is_honoured():
    model = models.straight_line()
    part = _line_partition(m=2.0)
    out = get_backend("scipy.least_squares").fit_one(
        model=model, partition=part, start=np.array([5.0, 0.0]),
        lower=np.array([3.0, -np.inf]), upper=np.array([np.inf, np.inf]), options={},
    )
    assert out.converged
    assert out.stats["method"] == "trf"
    assert out.theta[0] >= 3.0
    assert out.theta[0] == pytest.approx(3.0, abs=1e-3)


def test_start_outside_hard_box_is_clipped():
    model = models.straight_line()
    part = _line_partition()
    out = get_backend("scipy.least_squares").fit_one(
        model=model, partition=part, start=np.array([-5.0, 0.0]),
        lower=np.array([0.0, -np.inf]), upper=np.array([np.inf, np.inf]), options={},
    )
    assert out.converged
    assert out.theta[0] == pytest.approx(2.0, abs=0.05)


def test_unconstrained_default_is_levenberg_marquardt():
    out = get_backend("scipy.least_squares").fit_one(
        model=models.straight_line(), partition=_line_partition(), start=np.zeros(2),
        lower=INF2[0], upper=INF2[1], options={},
    )
    assert out.stats["method"] == "lm"


def test_lm_with_constraints_is_a_failed_trial():
    out = get_backend("scipy.least_squares").fit_one(
        model=models.straight_line(), partition=_line_partition(), start=np.zeros(2),
        lower=np.array([0.0, 0.0]), upper=INF2[1], options={"method": "lm"},
    )
    assert not out.converged


def _root(x, a, b):
    return a * np.sqrt(x) + b


@pytest.mark.parametrize("name", ["scipy.least_squares", "scipy.curve_fit"])
def test_non_finite_residuals_fail_without_raising(name):
    from nlsloop import Model

    model = Model.from_function(_root)
    x = -np.linspace(1.0, 5.0, 10)
    part = Partition(id="bad", x=x, y=np.ones(10), predictors=("x",))
    with np.errstate(all="ignore"):
        out = get_backend(name).fit_one(
            model=model, partition=part, start=np.array([1.0, 0.0]),
            lower=INF2[0], upper=INF2[1], options={},
        )
    assert not out.converged
    assert out.theta is None
    assert out.message
    assert out.stats["reason"] == "SolverNonConvergence"


def test_evaluation_budget_is_passed_through():
    model = models.exponential_decay()
    x = np.linspace(0.0, 10.0, 40)
    part = Partition(id="e", x=x, y=models.exponential_decay_func(x, 5.0, 0.7, 1.0), predictors=("x",))
    out = get_backend("scipy.least_squares").fit_one(
        model=model, partition=part, start=np.array([1.0, 3.0, -2.0]),
        lower=np.full(3, -np.inf), upper=np.full(3, np.inf), options={"max_nfev": 1},
    )
    assert not out.converged


def test_unknown_backend():
    with pytest.raises(ValueError):
        get_backend("nope")
