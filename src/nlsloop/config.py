from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple
from warnings import warn

import numpy as np

from .backends import AVAILABLE_BACKENDS
from .data import NA_ACTIONS
from .errors import InvalidBoundsError
from .loop import DEFAULT_PATIENCE
from .predict import DEFAULT_RESOLUTION
from .sampling import ParameterBounds
from .util import flag

PARALLEL_MODES = (None, "threads")

# Option spellings accepted by LoopConfig.from_mapping.
_ALIASES = {
    "AICc": "aicc",
    "aicc": "aicc",
    "na.action": "na_action",
    "na_action": "na_action",
    "param_bds": "param_bds",
    "supp_errors": "supp_errors",
}
_FLAGS = ("r2", "supp_errors", "aicc")


@dataclass(frozen=True)
class LoopConfig:
    """Options for a multi-start fitting run.

    tries         -- trial budget per partition (one random start per trial)
    param_bds     -- sampling bounds: flat (lo1, hi1, lo2, hi2, ...) sequence in
                     parameter order, a {name: (lo, hi)} mapping, or ParameterBounds
    lower, upper  -- hard solver constraints, {name: value} or a full-length sequence
    r2            -- compute quasi-R² for each retained fit
    supp_errors   -- treat solver warnings/errors as routine (logged at DEBUG)
    aicc          -- rank trials by AICc instead of AIC
    na_action     -- "omit" rows with missing values, or "fail"
    seed          -- seed for start sampling; None draws fresh entropy
    patience      -- consecutive non-improving trials before a partition stops
    resolution    -- points per prediction curve
    parallel      -- None, or "threads" to fit partitions concurrently
    max_workers   -- worker count for partition-level threads
    trial_workers -- worker count for trials within one partition
    """

    tries: int
    param_bds: Any
    lower: Optional[Any] = None
    upper: Optional[Any] = None
    r2: bool = True
    supp_errors: bool = True
    aicc: bool = True
    na_action: str = "omit"
    seed: Optional[int] = None
    patience: int = DEFAULT_PATIENCE
    resolution: int = DEFAULT_RESOLUTION
    backend: str = "scipy.least_squares"
    backend_options: Dict[str, Any] = field(default_factory=dict)
    parallel: Optional[str] = None
    max_workers: Optional[int] = None
    trial_workers: Optional[int] = None

    def __post_init__(self) -> None:
        if int(self.tries) < 1:
            raise ValueError("tries must be >= 1.")
        if int(self.patience) < 1:
            raise ValueError("patience must be >= 1.")
        if int(self.resolution) < 2:
            raise ValueError("resolution must be >= 2.")
        if self.na_action not in NA_ACTIONS:
            raise ValueError(f"Unknown na_action {self.na_action!r}. Available: {NA_ACTIONS}")
        if self.parallel not in PARALLEL_MODES:
            raise ValueError(f"Unknown parallel mode {self.parallel!r}. Available: {PARALLEL_MODES}")
        if self.backend not in AVAILABLE_BACKENDS:
            raise ValueError(f"Unknown backend {self.backend!r}. Available: {AVAILABLE_BACKENDS}")
        for name in ("max_workers", "trial_workers"):
            v = getattr(self, name)
            if v is not None and int(v) < 1:
                raise ValueError(f"{name} must be >= 1.")

    @staticmethod
    def from_mapping(options: Mapping[str, Any]) -> "LoopConfig":
        """Build a config from a mapping, accepting "AICc"/"na.action" and "Y"/"N" flags."""
        known = {f.name for f in fields(LoopConfig)}
        kw: Dict[str, Any] = {}
        for key, value in options.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise KeyError(f"Unknown option {key!r}.")
            if name in _FLAGS:
                value = flag(value)
            if name == "na_action" and isinstance(value, str):
                value = value.replace("na.", "")
            kw[name] = value
        return LoopConfig(**kw)

    def bounds_for(self, names: Sequence[str]) -> ParameterBounds:
        """Validated sampling bounds for the given parameter names."""
        return ParameterBounds.coerce(names, self.param_bds)

    def hard_limits(self, names: Sequence[str]) -> Tuple[np.ndarray, np.ndarray]:
        """Hard solver constraints as (lower, upper) arrays; ±inf where unset."""
        lo = _limit_array(self.lower, names, -np.inf, "lower")
        hi = _limit_array(self.upper, names, np.inf, "upper")
        bad = [n for j, n in enumerate(names) if lo[j] >= hi[j]]
        if bad:
            raise InvalidBoundsError(
                f"Hard lower limit must be strictly below the upper limit for: {bad}"
            )

        sampling = self.bounds_for(names)
        outside = [
            n
            for j, n in enumerate(names)
            if lo[j] > sampling.upper[j] or hi[j] < sampling.lower[j]
        ]
        if outside:
            warn(
                "Hard constraints exclude the whole sampling range for: "
                + ", ".join(outside)
                + ". Start values will be clipped onto the constraint.",
                UserWarning,
            )
        return lo, hi


def _limit_array(
    limits: Any, names: Sequence[str], fill: float, label: str
) -> np.ndarray:
    names = list(names)
    out = np.full(len(names), fill, dtype=float)
    if limits is None:
        return out
    if isinstance(limits, Mapping):
        unknown = [k for k in limits if k not in names]
        if unknown:
            raise InvalidBoundsError(f"{label} given for unknown parameters: {unknown}")
        for k, v in limits.items():
            out[names.index(k)] = float(v)
        return out
    arr = np.asarray(limits, dtype=float).reshape((-1,))
    if arr.shape != (len(names),):
        raise InvalidBoundsError(
            f"{label} needs one value per parameter ({len(names)}); got {arr.size}."
        )
    return arr.copy()
