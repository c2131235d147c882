from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .loop import PartitionFailure, PartitionOutcome, PartitionResult
from .predict import DEFAULT_RESOLUTION, predict_curve
from .scoring import criterion_name

logger = logging.getLogger(__name__)

FAILURE_COLUMNS = ("reason", "tries", "message")


@dataclass(frozen=True)
class FitCollection:
    """Best fits for every partition of a multi-start run.

    params       -- one row per fitted partition: id, one column per parameter,
                    rss, AIC/AICc, optional quasi_r2, n_obs, tries, stall_count
    predictions  -- stacked prediction curves: id, predictor column(s), response
    failures     -- one row per partition without a retained fit
    results      -- the PartitionResult objects, in partition order
    """

    formula: str
    info: Dict[str, Any]
    params: pd.DataFrame
    predictions: pd.DataFrame
    failures: pd.DataFrame
    results: Tuple[PartitionResult, ...]
    model: Any = None
    seed: Optional[int] = None
    config: Any = None
    _by_id: Dict[Any, PartitionResult] = field(default_factory=dict, repr=False)

    @property
    def ids(self) -> Tuple[Any, ...]:
        return tuple(r.id for r in self.results)

    @property
    def failed_ids(self) -> Tuple[Any, ...]:
        return tuple(self.failures[self.info["id_col"]].tolist())

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, pid: Any) -> PartitionResult:
        """Return the PartitionResult for a partition id."""
        try:
            return self._by_id[pid]
        except KeyError:
            raise KeyError(f"No fit for partition {pid!r}.") from None

    def confint(self, data: Any = None, *, level: float = 0.95, **kwargs: Any) -> pd.DataFrame:
        """Asymptotic confidence intervals; see nlsloop.confint.confint."""
        from .confint import confint

        return confint(self, data, level=level, **kwargs)

    def summary(self, digits: int = 4) -> str:
        """Return a human-readable summary string."""
        crit = self.info["criterion"]
        lines = [
            f"FitCollection({self.formula!r}, fitted={len(self.results)}, "
            f"failed={len(self.failures)}, criterion={crit})"
        ]
        names = list(self.info["params"])
        header = f"{'id':>12s} " + " ".join(f"{n:>12s}" for n in names) + f" {crit:>12s}"
        lines.append(header)
        lines.append("-" * len(header))
        for r in self.results[:10]:
            row = [f"{str(r.id):>12s}"]
            row += [f"{r.params[n]:>12.{digits}g}" for n in names]
            row.append(f"{r.score:>12.{digits}g}")
            lines.append(" ".join(row))
        if len(self.results) > 10:
            lines.append(f"... ({len(self.results) - 10} more)")
        for _, f in self.failures.iterrows():
            lines.append(f"  failed {f[self.info['id_col']]!s}: {f['reason']} after {f['tries']} trial(s)")
        return "\n".join(lines)


def aggregate(
    model: Any,
    outcomes: Sequence[PartitionOutcome],
    *,
    id_col: str = "id",
    corrected: bool = True,
    r2: bool = True,
    resolution: int = DEFAULT_RESOLUTION,
    seed: Optional[int] = None,
    config: Any = None,
) -> FitCollection:
    """Collect per-partition outcomes into a FitCollection.

    Successful partitions each contribute one params row and `resolution`
    prediction rows. Failed partitions are logged and listed in `failures`.
    """
    crit = criterion_name(corrected)
    names = list(model.param_names)

    results: List[PartitionResult] = []
    param_rows: List[Dict[str, Any]] = []
    pred_frames: List[pd.DataFrame] = []
    fail_rows: List[Dict[str, Any]] = []

    for o in outcomes:
        if isinstance(o, PartitionFailure):
            logger.debug(
                "Partition %r excluded: %s after %d trial(s) (%s)",
                o.id, o.reason, o.tries, o.message,
            )
            fail_rows.append(
                {id_col: o.id, "reason": o.reason, "tries": int(o.tries), "message": o.message}
            )
            continue

        results.append(o)
        row: Dict[str, Any] = {id_col: o.id}
        row.update({n: float(o.params[n]) for n in names})
        row["rss"] = float(o.rss)
        row[crit] = float(o.score)
        if r2:
            row["quasi_r2"] = np.nan if o.r2 is None else float(o.r2)
        row["n_obs"] = int(o.n_obs)
        row["tries"] = int(o.tries)
        row["stall_count"] = int(o.stall_count)
        param_rows.append(row)

        curve = predict_curve(
            model,
            o.params,
            o.predictor_range,
            resolution,
            predictor_means=o.predictor_means,
        )
        curve.insert(0, id_col, [o.id] * len(curve))
        pred_frames.append(curve)

    param_cols = [id_col, *names, "rss", crit]
    if r2:
        param_cols.append("quasi_r2")
    param_cols += ["n_obs", "tries", "stall_count"]
    params_df = pd.DataFrame(param_rows, columns=param_cols)

    pred_cols = [id_col, *model.predictors, model.response]
    if pred_frames:
        predictions = pd.concat(pred_frames, ignore_index=True)[pred_cols]
    else:
        predictions = pd.DataFrame(columns=pred_cols)

    failures = pd.DataFrame(fail_rows, columns=[id_col, *FAILURE_COLUMNS])

    info = {
        "id_col": id_col,
        "response": model.response,
        "predictors": tuple(model.predictors),
        "params": tuple(names),
        "criterion": crit,
    }
    return FitCollection(
        formula=model.formula,
        info=info,
        params=params_df,
        predictions=predictions,
        failures=failures,
        results=tuple(results),
        model=model,
        seed=seed,
        config=config,
        _by_id={r.id: r for r in results},
    )
