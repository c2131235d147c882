from __future__ import annotations

from typing import Any, Dict

import numpy as np
from scipy.optimize import curve_fit

from .common import TrialOutcome, check_solution


class ScipyCurveFitBackend:
    name = "scipy.curve_fit"

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
        """Fit using scipy.optimize.curve_fit.

        Uses curve_fit's own covariance (pcov). A covariance that cannot be
        estimated (non-finite pcov) marks the trial as failed.
        Backend options: maxfev, method, ftol, xtol, gtol.
        """
        x = partition.x
        y = np.asarray(partition.y, dtype=float)
        n_obs = int(y.shape[0])
        n_params = len(model.param_names)

        lower = np.asarray(lower, dtype=float)
        upper = np.asarray(upper, dtype=float)

        kwargs: Dict[str, Any] = {}
        maxfev = options.get("maxfev", options.get("max_nfev", None))
        if maxfev is not None:
            kwargs["maxfev"] = int(maxfev)
        for k in ("method", "ftol", "xtol", "gtol"):
            if k in options:
                kwargs[k] = options[k]

        def f_wrapped(xi, *theta):
            # curve_fit stacks several predictors into one 2D array.
            if len(model.predictors) > 1:
                xi = tuple(np.asarray(xi, dtype=float))
            return np.broadcast_to(model.eval_theta(xi, theta), y.shape)

        p0 = np.clip(np.asarray(start, dtype=float), lower, upper)
        try:
            popt, pcov = curve_fit(
                f_wrapped,
                x,
                y,
                p0=p0,
                bounds=(lower, upper),
                **kwargs,
            )
        except Exception as e:
            return TrialOutcome.failed(
                f"{type(e).__name__}: {e}", n_obs=n_obs, backend=self.name
            )

        theta = np.asarray(popt, dtype=float)
        try:
            resid = f_wrapped(x, *theta) - y
        except Exception as e:
            return TrialOutcome.failed(
                f"{type(e).__name__}: {e}", n_obs=n_obs, backend=self.name
            )
        resid = np.asarray(resid, dtype=float)
        problem = check_solution(theta, resid, n_obs, n_params)
        if problem is not None:
            return TrialOutcome.failed(problem, n_obs=n_obs, backend=self.name)

        dof = n_obs - n_params
        cov = None if pcov is None else np.asarray(pcov, dtype=float)
        if dof <= 0:
            # curve_fit reports an infinite pcov when there are no spare points.
            cov = None
        elif cov is None or not np.all(np.isfinite(cov)):
            return TrialOutcome.failed(
                "singular Jacobian at solution", n_obs=n_obs, backend=self.name
            )
        rss = float(np.sum(resid * resid))
        return TrialOutcome(
            converged=True,
            theta=theta,
            rss=rss,
            n_obs=n_obs,
            dof=dof,
            cov=cov,
            message="ok",
            fit=(popt, pcov),
            stats={"backend": self.name},
        )
