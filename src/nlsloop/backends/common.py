from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Protocol

import numpy as np

from ..errors import SOLVER_NON_CONVERGENCE


@dataclass(frozen=True)
class TrialOutcome:
    """Normalized result of one solver call from one start vector."""

    converged: bool
    theta: Optional[np.ndarray] = None  # fitted parameters, shape (P,)
    rss: float = float("inf")
    n_obs: int = 0
    dof: int = 0
    cov: Optional[np.ndarray] = None  # parameter covariance, (P, P)
    message: str = ""
    fit: Any = None  # opaque solver result
    score: float = float("inf")
    stats: Dict[str, Any] = field(default_factory=dict)

    def with_score(self, score: float) -> "TrialOutcome":
        return replace(self, score=float(score))

    @staticmethod
    def failed(message: str, *, n_obs: int = 0, **stats: Any) -> "TrialOutcome":
        stats.setdefault("reason", SOLVER_NON_CONVERGENCE)
        return TrialOutcome(converged=False, n_obs=int(n_obs), message=str(message), stats=dict(stats))


class Backend(Protocol):
    """Backend protocol: one bounded least-squares solve of one partition."""

    name: str

    def fit_one(
        self,
        *,
        model: Any,
        partition: Any,
        start: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        options: dict[str, Any],
    ) -> TrialOutcome: ...


def covariance_from_jacobian(
    jac: np.ndarray, rss: float, dof: int
) -> Optional[np.ndarray]:
    """Asymptotic covariance pinv(JᵀJ) * rss/dof; None when undefined."""
    if dof <= 0:
        return None
    jac = np.asarray(jac, dtype=float)
    if jac.ndim != 2 or not np.all(np.isfinite(jac)):
        return None
    try:
        cov = np.linalg.pinv(jac.T @ jac) * (float(rss) / dof)
    except np.linalg.LinAlgError:
        return None
    if not np.all(np.isfinite(cov)):
        return None
    return cov


def check_solution(
    theta: np.ndarray, residuals: np.ndarray, n_obs: int, n_params: int
) -> Optional[str]:
    """Return a failure message if a solver result is unusable, else None."""
    if theta.shape != (n_params,) or not np.all(np.isfinite(theta)):
        return "non-finite parameters"
    if residuals.shape != (n_obs,):
        return f"residual shape {residuals.shape} does not match {n_obs} observations"
    if not np.all(np.isfinite(residuals)):
        return "non-finite residuals"
    return None
