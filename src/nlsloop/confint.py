from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .backends import get_backend
from .data import prepare_partitions

logger = logging.getLogger(__name__)

CI_COLUMNS = ("param", "estimate", "conf_low", "conf_high")


def confint(
    fits: Any,
    data: Any = None,
    *,
    level: float = 0.95,
    backend_options: Optional[Dict[str, Any]] = None,
) -> pd.DataFrame:
    """Asymptotic confidence intervals for every retained fit.

    estimate ± t(dof, 1 - (1-level)/2) * sqrt(diag(cov)).

    With `data`, each partition is re-solved once from its best-fit parameters
    on its own observations and the fresh covariance is used. Without `data`,
    the covariance stored on each PartitionResult is used. Partitions with no
    usable covariance (or dof <= 0) get NaN bounds.

    Returns a DataFrame with the id column, param, estimate, conf_low and
    conf_high, one row per partition and parameter.
    """
    level = float(level)
    if not 0.0 < level < 1.0:
        raise ValueError("level must be in (0, 1).")

    model = fits.model
    id_col = fits.info["id_col"]
    names = list(fits.info["params"])

    covs: Dict[Any, Optional[np.ndarray]] = {r.id: r.cov for r in fits.results}
    if data is not None:
        covs = _refit_covariances(fits, data, backend_options or {})

    rows: List[Dict[str, Any]] = []
    for r in fits.results:
        cov = covs.get(r.id)
        if cov is not None and r.dof > 0:
            se = np.sqrt(np.clip(np.diag(np.asarray(cov, dtype=float)), 0.0, np.inf))
            tq = float(stats.t.ppf(1.0 - 0.5 * (1.0 - level), r.dof))
        else:
            se = np.full(len(names), np.nan)
            tq = np.nan
        for j, n in enumerate(names):
            est = float(r.params[n])
            half = tq * float(se[j])
            rows.append(
                {
                    id_col: r.id,
                    "param": n,
                    "estimate": est,
                    "conf_low": est - half,
                    "conf_high": est + half,
                }
            )
    return pd.DataFrame(rows, columns=[id_col, *CI_COLUMNS])


def _refit_covariances(
    fits: Any, data: Any, options: Dict[str, Any]
) -> Dict[Any, Optional[np.ndarray]]:
    model = fits.model
    cfg = fits.config
    parts = prepare_partitions(
        data,
        id_col=fits.info["id_col"],
        response=model.response,
        predictors=model.predictors,
        na_action=getattr(cfg, "na_action", "omit"),
    )
    by_id = {p.id: p for p in parts}

    backend = get_backend(getattr(cfg, "backend", "scipy.least_squares"))
    if cfg is not None:
        lower, upper = cfg.hard_limits(model.param_names)
        opts = {**cfg.backend_options, **options}
    else:
        lower = np.full(len(model.param_names), -np.inf)
        upper = np.full(len(model.param_names), np.inf)
        opts = dict(options)

    out: Dict[Any, Optional[np.ndarray]] = {}
    for r in fits.results:
        part = by_id.get(r.id)
        if part is None:
            logger.warning("Partition %r not found in data; using stored covariance", r.id)
            out[r.id] = r.cov
            continue
        with np.errstate(all="ignore"):
            outcome = backend.fit_one(
                model=model, partition=part, start=r.theta,
                lower=lower, upper=upper, options=opts,
            )
        if not outcome.converged:
            logger.warning(
                "Partition %r: refit from best estimate failed (%s); using stored covariance",
                r.id, outcome.message,
            )
            out[r.id] = r.cov
        else:
            out[r.id] = outcome.cov
    return out
