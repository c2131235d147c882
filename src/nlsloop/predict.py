from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

DEFAULT_RESOLUTION = 250


def predict_curve(
    model: Any,
    params: Mapping[str, float],
    predictor_range: Mapping[str, Tuple[float, float]],
    resolution: int = DEFAULT_RESOLUTION,
    *,
    predictor_means: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """Evaluate a fitted model on an even grid over the observed predictor range.

    The grid runs over the first predictor from its observed minimum to its
    maximum, endpoints included, so it never leaves the range the partition was
    fitted on. Other predictors are held at `predictor_means` (or the midpoint
    of their range when no mean is given).

    Returns a DataFrame with one column per predictor plus the response column.
    """
    resolution = int(resolution)
    if resolution < 2:
        raise ValueError("resolution must be >= 2.")

    names = tuple(model.predictors)
    missing = [n for n in names if n not in predictor_range]
    if missing:
        raise KeyError(f"No predictor range for: {missing}")

    lo, hi = (float(v) for v in predictor_range[names[0]])
    if not (np.isfinite(lo) and np.isfinite(hi)) or hi < lo:
        raise ValueError(f"Invalid predictor range for {names[0]!r}: ({lo}, {hi}).")
    grid = np.linspace(lo, hi, resolution)
    # linspace can overshoot the stop value by one ulp.
    grid = np.clip(grid, lo, hi)

    columns: Dict[str, np.ndarray] = {names[0]: grid}
    for name in names[1:]:
        if predictor_means is not None and name in predictor_means:
            v = float(predictor_means[name])
        else:
            plo, phi = predictor_range[name]
            v = 0.5 * (float(plo) + float(phi))
        columns[name] = np.full(resolution, v)

    xs = tuple(columns[n] for n in names)
    x = xs[0] if len(xs) == 1 else xs
    with np.errstate(all="ignore"):
        yhat = np.asarray(model.eval(x, params=params), dtype=float)
    columns[model.response] = np.broadcast_to(yhat, grid.shape).copy()
    return pd.DataFrame(columns)
