import math
import threading

import numpy as np
import pytest

from nlsloop import Model, PartitionFailure, PartitionResult, PartitionSearch, TrialOutcome, fit_partition
from nlsloop.data import Partition


def _scale(x, a):
    return a * x


MODEL = Model.from_function(_scale, name="scale")


class ScriptedBackend:
    """Returns a pre-scripted outcome per trial; the start value is the trial index."""

    name = "scripted"

    def __init__(self, script):
        self.script = list(script)
        self.calls = []
        self._lock = threading.Lock()

    def fit_one(self, *, model, partition, start, lower, upper, options):
        i = int(start[0])
        with self._lock:
            self.calls.append(i)
        rss = self.script[i]
        if rss is None:
            return TrialOutcome.failed("scripted failure", n_obs=partition.n_obs)
        return TrialOutcome(
            converged=True,
            theta=np.array([float(i)]),
            rss=float(rss),
            n_obs=partition.n_obs,
            dof=partition.n_obs - 1,
        )


def _partition(n=30, pid="a"):
    x = np.linspace(0.0, 1.0, n)
    return Partition(id=pid, x=x, y=np.zeros(n), predictors=("x",))


def _starts(n):
    return np.arange(n, dtype=float)[:, None]


def _fit(script, **kw):
    backend = ScriptedBackend(script)
    kw.setdefault("corrected", False)
    out = fit_partition(MODEL, kw.pop("partition", _partition()), _starts(len(script)), backend=backend, **kw)
    return out, backend


def test_stall_rule_stops_before_budget():
    out, backend = _fit([5.0] * 300)

    assert isinstance(out, PartitionResult)
    assert out.tries == 101  # one improvement, then 100 stalls
    assert out.stall_count == 100
    assert len(backend.calls) == 101


def test_budget_stops_before_stall():
    out, _ = _fit([5.0] * 20)
    assert out.tries == 20
    assert out.stall_count == 19


def test_improvement_resets_stall_count():
    script = [5.0] * 300
    script[60] = 1.0
    out, _ = _fit(script)

    assert out.params["a"] == 60.0
    assert out.tries == 161
    assert out.stall_count == 100


def test_ties_keep_earliest_incumbent():
    script = [9.0, 3.0, 3.0, 3.0, 4.0]
    out, _ = _fit(script)
    assert out.params["a"] == 1.0
    assert out.rss == 3.0


def test_incumbent_score_is_non_increasing():
    rng = np.random.default_rng(7)
    script = [None if rng.random() < 0.3 else float(rng.uniform(1.0, 100.0)) for _ in range(400)]
    out, _ = _fit(script, patience=50)

    h = out.history
    assert len(h) == out.tries
    assert all(b <= a for a, b in zip(h, h[1:]))
    assert h[-1] == out.score


def test_failures_count_towards_stall():
    script = [2.0] + [None] * 150
    out, _ = _fit(script)
    assert out.tries == 101
    assert out.params["a"] == 0.0


def test_all_failures_give_partition_failure():
    out, backend = _fit([None] * 250)

    assert isinstance(out, PartitionFailure)
    assert out.reason == "PartitionFailure"
    assert out.tries == 100
    assert out.message == "scripted failure"


def test_all_failures_with_small_budget():
    out, _ = _fit([None] * 40)
    assert isinstance(out, PartitionFailure)
    assert out.tries == 40


def test_non_finite_scores_never_become_incumbent():
    # 2 observations, 1 parameter: AICc is undefined (n-k-1 == 0).
    out, _ = _fit([1.0] * 150, partition=_partition(n=2), corrected=True)
    assert isinstance(out, PartitionFailure)
    assert out.reason == "PartitionFailure"
    assert out.tries == 100


def test_too_few_observations_skips_solver():
    def two(x, a, b):
        return a * x + b

    model = Model.from_function(two)
    backend = ScriptedBackend([1.0] * 10)
    starts = np.zeros((10, 2))
    out = fit_partition(model, _partition(n=1, pid="tiny"), starts, backend=backend)

    assert isinstance(out, PartitionFailure)
    assert out.reason == "DataValidationError"
    assert out.tries == 0
    assert backend.calls == []


def test_threaded_trials_match_sequential():
    rng = np.random.default_rng(11)
    script = [None if rng.random() < 0.2 else float(rng.uniform(1.0, 50.0)) for _ in range(300)]

    seq, _ = _fit(script, patience=30)
    par, backend = _fit(script, patience=30, max_workers=4)

    assert par.params == seq.params
    assert par.tries == seq.tries
    assert par.stall_count == seq.stall_count
    assert par.history == seq.history
    # trials beyond the stop point may have run but were not folded in
    assert len(backend.calls) >= par.tries


def test_starts_shape_is_checked():
    with pytest.raises(ValueError):
        fit_partition(MODEL, _partition(), np.zeros((5, 2)), backend=ScriptedBackend([1.0] * 5))


def test_search_refuses_outcomes_after_stop():
    search = PartitionSearch(tries=2, patience=5)
    ok = TrialOutcome(converged=True, theta=np.array([0.0]), rss=1.0, n_obs=10, score=1.0)
    assert search.offer(ok)
    assert not search.offer(ok)
    assert search.done
    with pytest.raises(RuntimeError):
        search.offer(ok)


def test_search_first_score_is_infinite_until_convergence():
    search = PartitionSearch(tries=10)
    search.offer(TrialOutcome.failed("nope"))
    assert search.best_score == math.inf
    assert search.stall_count == 1
