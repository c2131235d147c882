"""Multi-start search for one partition.

Each partition replays the same sequence of random start vectors through the
solver backend and keeps the best-scoring converged fit (the incumbent). The
search stops when the trial budget is spent or when `patience` consecutive
trials have failed to improve on the incumbent.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from .backends import Backend, TrialOutcome
from .data import Partition
from .errors import DATA_VALIDATION, DEGENERATE_SCORE, PARTITION_FAILURE, SOLVER_NON_CONVERGENCE
from .scoring import criterion_name, information_criterion, quasi_r2

logger = logging.getLogger(__name__)

DEFAULT_PATIENCE = 100


@dataclass(frozen=True)
class PartitionResult:
    """Best fit retained for one partition."""

    id: Any
    params: Dict[str, float]
    rss: float
    score: float
    criterion: str
    n_obs: int
    dof: int
    tries: int  # trials attempted before stopping
    stall_count: int  # consecutive non-improving trials at stop
    r2: Optional[float] = None
    cov: Optional[np.ndarray] = None
    fit: Any = None
    predictor_range: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    predictor_means: Dict[str, float] = field(default_factory=dict)
    history: Tuple[float, ...] = ()  # incumbent score after each trial

    @property
    def theta(self) -> np.ndarray:
        return np.asarray(list(self.params.values()), dtype=float)

    @property
    def stderr(self) -> Optional[Dict[str, float]]:
        if self.cov is None:
            return None
        se = np.sqrt(np.clip(np.diag(self.cov), 0.0, np.inf))
        return {n: float(se[j]) for j, n in enumerate(self.params)}


@dataclass(frozen=True)
class PartitionFailure:
    """A partition for which no fit could be retained."""

    id: Any
    reason: str
    tries: int
    message: str = ""


PartitionOutcome = Union[PartitionResult, PartitionFailure]


class PartitionSearch:
    """Incumbent/stall bookkeeping for one partition's trial sequence.

    Outcomes must be offered in sampler order. A trial improves the incumbent
    only when it converged with a finite score strictly lower than the
    incumbent's; anything else counts towards the stall budget.
    """

    def __init__(self, tries: int, patience: int = DEFAULT_PATIENCE) -> None:
        if tries < 1:
            raise ValueError("tries must be >= 1.")
        if patience < 1:
            raise ValueError("patience must be >= 1.")
        self.tries = int(tries)
        self.patience = int(patience)
        self.incumbent: Optional[TrialOutcome] = None
        self.stall_count = 0
        self.trial_index = 0
        self.history: List[float] = []
        self.last_failure = ""

    @property
    def best_score(self) -> float:
        return math.inf if self.incumbent is None else self.incumbent.score

    @property
    def done(self) -> bool:
        return self.trial_index >= self.tries or self.stall_count >= self.patience

    def offer(self, outcome: TrialOutcome) -> bool:
        """Fold one trial outcome in; return True if the search should continue."""
        if self.done:
            raise RuntimeError("Search already stopped; no more outcomes accepted.")
        self.trial_index += 1

        if outcome.converged and math.isfinite(outcome.score):
            if self.incumbent is None or outcome.score < self.incumbent.score:
                self.incumbent = outcome
                self.stall_count = 0
            else:
                self.stall_count += 1
        else:
            self.stall_count += 1
            self.last_failure = outcome.message if not outcome.converged else DEGENERATE_SCORE

        self.history.append(self.best_score)
        return not self.done


def run_trial(
    backend: Backend,
    model: Any,
    partition: Partition,
    start: np.ndarray,
    *,
    lower: np.ndarray,
    upper: np.ndarray,
    corrected: bool,
    supp_errors: bool = True,
    options: Optional[Dict[str, Any]] = None,
) -> TrialOutcome:
    """Solve once from `start` and attach the information-criterion score."""
    options = dict(options or {})
    if supp_errors:
        with np.errstate(all="ignore"):
            outcome = backend.fit_one(
                model=model, partition=partition, start=start,
                lower=lower, upper=upper, options=options,
            )
    else:
        outcome = backend.fit_one(
            model=model, partition=partition, start=start,
            lower=lower, upper=upper, options=options,
        )

    if not outcome.converged:
        log = logger.debug if supp_errors else logger.warning
        log(
            "Partition %r: trial failed (%s): %s",
            partition.id, outcome.stats.get("reason", SOLVER_NON_CONVERGENCE), outcome.message,
        )
        return outcome

    k = len(model.param_names)
    return outcome.with_score(information_criterion(outcome.rss, k, outcome.n_obs, corrected))


def _outcomes(
    run_one: Callable[[np.ndarray], TrialOutcome],
    starts: np.ndarray,
    max_workers: Optional[int],
) -> Iterator[TrialOutcome]:
    """Yield trial outcomes in sampler order, optionally computed in parallel."""
    if max_workers is None or max_workers <= 1:
        for s in starts:
            yield run_one(s)
        return

    # Windows of max_workers trials; map() yields in submission order.
    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        for i in range(0, starts.shape[0], max_workers):
            for outcome in ex.map(run_one, starts[i:i + max_workers]):
                yield outcome


def fit_partition(
    model: Any,
    partition: Partition,
    starts: np.ndarray,
    *,
    backend: Backend,
    lower: Optional[np.ndarray] = None,
    upper: Optional[np.ndarray] = None,
    corrected: bool = True,
    patience: int = DEFAULT_PATIENCE,
    r2: bool = True,
    supp_errors: bool = True,
    backend_options: Optional[Dict[str, Any]] = None,
    max_workers: Optional[int] = None,
) -> PartitionOutcome:
    """Run the multi-start search for one partition.

    `starts` has one row per trial (the trial budget is its length). Returns
    the best fit found, or a PartitionFailure when the partition has too few
    observations or no trial produced a usable fit.
    """
    starts = np.asarray(starts, dtype=float)
    if starts.ndim != 2 or starts.shape[1] != len(model.param_names):
        raise ValueError(
            f"starts must have shape (tries, {len(model.param_names)}); got {starts.shape}."
        )
    n_params = len(model.param_names)
    if partition.n_obs < n_params:
        return PartitionFailure(
            id=partition.id,
            reason=DATA_VALIDATION,
            tries=0,
            message=(
                f"{partition.n_obs} usable observation(s) for {n_params} parameter(s)"
            ),
        )

    lo = np.full(n_params, -np.inf) if lower is None else np.asarray(lower, dtype=float)
    hi = np.full(n_params, np.inf) if upper is None else np.asarray(upper, dtype=float)

    def run_one(start: np.ndarray) -> TrialOutcome:
        return run_trial(
            backend, model, partition, start,
            lower=lo, upper=hi, corrected=corrected,
            supp_errors=supp_errors, options=backend_options,
        )

    search = PartitionSearch(tries=starts.shape[0], patience=patience)
    with closing(_outcomes(run_one, starts, max_workers)) as outcomes:
        for outcome in outcomes:
            if not search.offer(outcome):
                break

    best = search.incumbent
    if best is None:
        return PartitionFailure(
            id=partition.id,
            reason=PARTITION_FAILURE,
            tries=search.trial_index,
            message=search.last_failure or "no trial converged",
        )

    return PartitionResult(
        id=partition.id,
        params=model.theta_to_map(best.theta),
        rss=float(best.rss),
        score=float(best.score),
        criterion=criterion_name(corrected),
        n_obs=int(best.n_obs),
        dof=int(best.dof),
        tries=search.trial_index,
        stall_count=search.stall_count,
        r2=quasi_r2(partition.y, best.rss) if r2 else None,
        cov=best.cov,
        fit=best.fit,
        predictor_range=partition.predictor_range,
        predictor_means=partition.predictor_means,
        history=tuple(search.history),
    )
