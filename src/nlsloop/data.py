from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import DataValidationError

logger = logging.getLogger(__name__)

NA_ACTIONS = ("omit", "fail")


@dataclass(frozen=True)
class Partition:
    """Observations sharing one identifier value."""

    id: Any
    x: Any  # 1D array, or tuple of 1D arrays for several predictors
    y: np.ndarray
    predictors: Tuple[str, ...]
    n_dropped: int = 0

    @property
    def n_obs(self) -> int:
        return int(self.y.shape[0])

    @property
    def columns(self) -> Tuple[np.ndarray, ...]:
        return self.x if isinstance(self.x, tuple) else (self.x,)

    @property
    def predictor_range(self) -> Dict[str, Tuple[float, float]]:
        """Observed (min, max) of every predictor within this partition."""
        out: Dict[str, Tuple[float, float]] = {}
        for name, col in zip(self.predictors, self.columns):
            if col.size == 0:
                out[name] = (float("nan"), float("nan"))
            else:
                out[name] = (float(np.min(col)), float(np.max(col)))
        return out

    @property
    def predictor_means(self) -> Dict[str, float]:
        return {
            name: (float(np.mean(col)) if col.size else float("nan"))
            for name, col in zip(self.predictors, self.columns)
        }


def to_frame(data: Any) -> pd.DataFrame:
    """Accept a DataFrame or a mapping of equal-length columns."""
    if isinstance(data, pd.DataFrame):
        return data
    if isinstance(data, Mapping):
        return pd.DataFrame(dict(data))
    raise TypeError("data must be a pandas.DataFrame or a mapping of columns.")


def prepare_partitions(
    data: Any,
    *,
    id_col: str,
    response: str,
    predictors: Sequence[str],
    na_action: str = "omit",
) -> List[Partition]:
    """Split `data` by `id_col` into per-partition predictor/response arrays.

    Partitions appear in order of first appearance of their identifier.
    """
    if na_action not in NA_ACTIONS:
        raise ValueError(f"Unknown na_action {na_action!r}. Available: {NA_ACTIONS}")

    df = to_frame(data)
    predictors = tuple(str(p) for p in predictors)
    needed = [id_col, response, *predictors]
    missing = [c for c in needed if c not in df.columns]
    if missing:
        raise DataValidationError(
            f"Columns not found in data: {missing}. Available: {list(df.columns)}"
        )
    if df[id_col].isna().any():
        raise DataValidationError(f"Identifier column {id_col!r} contains missing values.")

    value_cols = [response, *predictors]
    values = df[value_cols].apply(pd.to_numeric, errors="coerce")
    # Present in the input but not readable as a number.
    unparsed = values.isna() & df[value_cols].notna()
    bad = values.isna().any(axis=1)
    if bad.any():
        if na_action == "fail":
            raise DataValidationError(
                f"{int(bad.sum())} row(s) have a missing response or predictor value "
                "and na_action='fail'."
            )
        if unparsed.to_numpy().any():
            counts = {c: int(n) for c, n in unparsed.sum().items() if n}
            logger.warning(
                "Omitting %d row(s) with non-numeric values (per column: %s)",
                int(unparsed.any(axis=1).sum()), counts,
            )
        logger.debug("Omitting %d row(s) with missing values", int(bad.sum()))

    ids = df[id_col].to_numpy()
    bad_arr = bad.to_numpy()
    y_all = values[response].to_numpy(dtype=float)
    x_all = [values[p].to_numpy(dtype=float) for p in predictors]

    out: List[Partition] = []
    for pid in pd.unique(df[id_col]):
        in_part = ids == pid
        keep = in_part & ~bad_arr
        cols = tuple(col[keep] for col in x_all)
        out.append(
            Partition(
                id=pid,
                x=cols[0] if len(cols) == 1 else cols,
                y=y_all[keep],
                predictors=predictors,
                n_dropped=int(np.sum(in_part & bad_arr)),
            )
        )
    return out
