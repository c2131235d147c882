from __future__ import annotations

from typing import Any, Dict

import numpy as np
from scipy.optimize import least_squares

from .common import TrialOutcome, check_solution, covariance_from_jacobian

_PASSTHROUGH = ("ftol", "xtol", "gtol", "x_scale", "diff_step", "jac", "tr_solver")


class ScipyLeastSquaresBackend:
    name = "scipy.least_squares"

    def fit_one(
        self,
        *,
        model: Any,
        partition: Any,
        start: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        options: dict[str, Any],
    ) -> TrialOutcome:
        """Fit using scipy.optimize.least_squares.

        Backend options:
        - method: "lm", "trf" or "dogbox". Default: "lm" when no hard
          constraints are finite, else "trf" ("lm" cannot honour bounds)
        - max_nfev (alias maxfev): solver evaluation budget per trial
        - ftol, xtol, gtol, x_scale, diff_step, jac, tr_solver: passed through
        """
        x = partition.x
        y = np.asarray(partition.y, dtype=float)
        n_obs = int(y.shape[0])
        n_params = len(model.param_names)

        lower = np.asarray(lower, dtype=float)
        upper = np.asarray(upper, dtype=float)
        constrained = bool(np.any(np.isfinite(lower)) or np.any(np.isfinite(upper)))

        method = options.get("method", None)
        if method is None:
            method = "trf" if constrained else "lm"
        method = str(method)
        if method == "lm" and constrained:
            return TrialOutcome.failed(
                "method='lm' does not support hard constraints", n_obs=n_obs
            )

        kwargs: Dict[str, Any] = {}
        max_nfev = options.get("max_nfev", options.get("maxfev", None))
        if max_nfev is not None:
            kwargs["max_nfev"] = int(max_nfev)
        for k in _PASSTHROUGH:
            if k in options:
                kwargs[k] = options[k]
        if constrained:
            kwargs["bounds"] = (lower, upper)

        # The solver rejects starts outside the hard box.
        x0 = np.clip(np.asarray(start, dtype=float), lower, upper)

        def residual(theta: np.ndarray) -> np.ndarray:
            ym = model.eval_theta(x, theta)
            return np.broadcast_to(ym, y.shape) - y

        try:
            res = least_squares(residual, x0, method=method, **kwargs)
        except Exception as e:
            return TrialOutcome.failed(
                f"{type(e).__name__}: {e}", n_obs=n_obs, backend=self.name
            )

        theta = np.asarray(res.x, dtype=float)
        resid = np.asarray(res.fun, dtype=float)
        stats = {
            "backend": self.name,
            "method": method,
            "status": int(res.status),
            "nfev": int(res.nfev),
        }
        if not res.success:
            return TrialOutcome.failed(str(res.message), n_obs=n_obs, **stats)

        problem = check_solution(theta, resid, n_obs, n_params)
        if problem is not None:
            return TrialOutcome.failed(problem, n_obs=n_obs, **stats)

        jac = np.asarray(res.jac, dtype=float)
        if not np.all(np.isfinite(jac)) or np.linalg.matrix_rank(jac) < n_params:
            return TrialOutcome.failed("singular Jacobian at solution", n_obs=n_obs, **stats)

        rss = float(np.sum(resid * resid))
        dof = n_obs - n_params
        return TrialOutcome(
            converged=True,
            theta=theta,
            rss=rss,
            n_obs=n_obs,
            dof=dof,
            cov=covariance_from_jacobian(jac, rss, dof),
            message=str(res.message),
            fit=res,
            stats=stats,
        )
