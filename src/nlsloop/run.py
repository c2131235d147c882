from __future__ import annotations

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import ExitStack
from typing import Any, Callable, List, Mapping, Optional

import numpy as np

from .backends import get_backend
from .config import LoopConfig
from .data import Partition, prepare_partitions
from .loop import PartitionFailure, PartitionOutcome, fit_partition
from .model import Model
from .results import FitCollection, aggregate
from .sampling import sample_starts

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


def nls_loop(
    model: Model,
    data: Any,
    id_col: str,
    tries: Optional[int] = None,
    param_bds: Any = None,
    *,
    config: Optional[LoopConfig] = None,
    progress_callback: Optional[ProgressCallback] = None,
    **options: Any,
) -> FitCollection:
    """Fit `model` separately to every partition of `data` by multi-start search.

    Parameters
    ----------
    model : Model
        The model; its response and predictor names are the data columns used.
    data : pandas.DataFrame or mapping of columns
    id_col : str
        Column identifying partitions; each value is fitted independently.
    tries : int
        Random starts per partition (trial budget).
    param_bds : sequence or mapping
        Sampling bounds, either flat (lo1, hi1, lo2, hi2, ...) in parameter
        order or {name: (lo, hi)}.
    config : LoopConfig, optional
        Full configuration; mutually exclusive with tries/param_bds/options.
    progress_callback : callable, optional
        Called as progress_callback(current, total, message) after each partition.
    **options
        Any other LoopConfig field: lower, upper, r2, supp_errors, aicc,
        na_action, seed, patience, resolution, backend, backend_options,
        parallel, max_workers, trial_workers.

    Returns
    -------
    FitCollection
        Always returned, even if some (or all) partitions could not be fitted.
    """
    if config is None:
        if tries is None or param_bds is None:
            raise TypeError("nls_loop() needs tries and param_bds (or config=...).")
        config = LoopConfig(tries=tries, param_bds=param_bds, **options)
    elif tries is not None or param_bds is not None or options:
        raise TypeError("Pass either config=... or individual options, not both.")

    names = model.param_names
    bounds = config.bounds_for(names)
    lower, upper = config.hard_limits(names)
    backend = get_backend(config.backend)

    partitions = prepare_partitions(
        data,
        id_col=id_col,
        response=model.response,
        predictors=model.predictors,
        na_action=config.na_action,
    )

    seed = config.seed
    if seed is None:
        # Record the drawn seed so the run can be repeated.
        seed = int(np.random.SeedSequence().generate_state(1)[0])
    starts = sample_starts(bounds, config.tries, seed)

    logger.info(
        "Fitting %s to %d partition(s): tries=%d, patience=%d, criterion=%s, seed=%d",
        model.name, len(partitions), config.tries, config.patience,
        "AICc" if config.aicc else "AIC", seed,
    )

    def fit_one(part: Partition) -> PartitionOutcome:
        return fit_partition(
            model,
            part,
            starts,
            backend=backend,
            lower=lower,
            upper=upper,
            corrected=config.aicc,
            patience=config.patience,
            r2=config.r2,
            supp_errors=config.supp_errors,
            backend_options=config.backend_options,
            max_workers=config.trial_workers,
        )

    total = len(partitions)
    outcomes: List[Optional[PartitionOutcome]] = [None] * total

    def report(done: int, outcome: PartitionOutcome) -> None:
        if isinstance(outcome, PartitionFailure):
            logger.warning(
                "[%d/%d] %r failed: %s after %d trial(s) (%s)",
                done, total, outcome.id, outcome.reason, outcome.tries, outcome.message,
            )
        else:
            logger.info(
                "[%d/%d] %r fitted: %s=%.6g after %d trial(s) (stall=%d)",
                done, total, outcome.id, outcome.criterion, outcome.score,
                outcome.tries, outcome.stall_count,
            )
        if progress_callback:
            progress_callback(done, total, f"Fitted {outcome.id!s}")

    with ExitStack() as stack:
        if config.supp_errors:
            stack.enter_context(warnings.catch_warnings())
            warnings.simplefilter("ignore")

        if config.parallel == "threads" and total > 1:
            ex = stack.enter_context(ThreadPoolExecutor(max_workers=config.max_workers))
            futures = {ex.submit(fit_one, part): i for i, part in enumerate(partitions)}
            for done, fut in enumerate(as_completed(futures), start=1):
                i = futures[fut]
                outcomes[i] = fut.result()
                report(done, outcomes[i])
        else:
            for i, part in enumerate(partitions):
                outcomes[i] = fit_one(part)
                report(i + 1, outcomes[i])

    fits = aggregate(
        model,
        [o for o in outcomes if o is not None],
        id_col=id_col,
        corrected=config.aicc,
        r2=config.r2,
        resolution=config.resolution,
        seed=seed,
        config=config,
    )
    logger.info(
        "Finished %s: %d fitted, %d failed", model.name, len(fits.results), len(fits.failures)
    )
    return fits


def nls_loop_from_options(
    model: Model,
    data: Any,
    id_col: str,
    options: Mapping[str, Any],
    *,
    progress_callback: Optional[ProgressCallback] = None,
) -> FitCollection:
    """Run nls_loop with options given as a mapping (see LoopConfig.from_mapping)."""
    return nls_loop(
        model,
        data,
        id_col,
        config=LoopConfig.from_mapping(options),
        progress_callback=progress_callback,
    )
