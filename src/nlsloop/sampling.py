from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidBoundsError
from .util import names_in_order


@dataclass(frozen=True)
class ParameterBounds:
    """Sampling bounds for start values, one (lower, upper) pair per parameter."""

    names: Tuple[str, ...]
    lower: Tuple[float, ...]
    upper: Tuple[float, ...]

    @staticmethod
    def from_flat(names: Sequence[str], param_bds: Sequence[float]) -> "ParameterBounds":
        """Build from a flat (lo1, hi1, lo2, hi2, ...) sequence in declaration order."""
        names = tuple(str(n) for n in names)
        flat = [float(v) for v in np.asarray(param_bds, dtype=float).reshape((-1,))]
        if len(flat) != 2 * len(names):
            raise InvalidBoundsError(
                f"param_bds needs {2 * len(names)} values (a lower/upper pair for each of "
                f"{names_in_order(names)}); got {len(flat)}."
            )
        lo = tuple(flat[0::2])
        hi = tuple(flat[1::2])
        out = ParameterBounds(names=names, lower=lo, upper=hi)
        out.validate(names)
        return out

    @staticmethod
    def from_mapping(
        names: Sequence[str], bounds: Mapping[str, Tuple[float, float]]
    ) -> "ParameterBounds":
        """Build from {name: (lo, hi)}, ordered by the model's parameter names."""
        names = tuple(str(n) for n in names)
        unknown = [k for k in bounds if k not in names]
        if unknown:
            raise InvalidBoundsError(f"Bounds given for unknown parameters: {unknown}")
        missing = [n for n in names if n not in bounds]
        if missing:
            raise InvalidBoundsError(f"No bounds given for parameters: {missing}")
        lo = []
        hi = []
        for n in names:
            b = bounds[n]
            if not (isinstance(b, (tuple, list)) and len(b) == 2):
                raise InvalidBoundsError(f"Bounds for {n!r} must be a (lower, upper) pair.")
            lo.append(float(b[0]))
            hi.append(float(b[1]))
        out = ParameterBounds(names=names, lower=tuple(lo), upper=tuple(hi))
        out.validate(names)
        return out

    @staticmethod
    def coerce(names: Sequence[str], param_bds: Any) -> "ParameterBounds":
        if isinstance(param_bds, ParameterBounds):
            param_bds.validate(names)
            return param_bds
        if isinstance(param_bds, Mapping):
            return ParameterBounds.from_mapping(names, param_bds)
        return ParameterBounds.from_flat(names, param_bds)

    def validate(self, names: Optional[Sequence[str]] = None) -> None:
        """Raise InvalidBoundsError unless these bounds fit the given names."""
        if len(self.lower) != len(self.names) or len(self.upper) != len(self.names):
            raise InvalidBoundsError("Bounds must have one lower and one upper per name.")
        if names is not None and tuple(names) != self.names:
            missing = [n for n in names if n not in self.names]
            extra = [n for n in self.names if n not in tuple(names)]
            if missing:
                raise InvalidBoundsError(f"No bounds given for parameters: {missing}")
            if extra:
                raise InvalidBoundsError(f"Bounds given for unknown parameters: {extra}")
            raise InvalidBoundsError(
                f"Bounds are ordered {list(self.names)}; model parameters are {list(names)}."
            )
        for n, lo, hi in zip(self.names, self.lower, self.upper):
            if not (math.isfinite(lo) and math.isfinite(hi)):
                raise InvalidBoundsError(f"Bounds for {n!r} must be finite; got ({lo}, {hi}).")
            if lo > hi:
                raise InvalidBoundsError(f"Lower bound exceeds upper bound for {n!r}: {lo} > {hi}.")

    def as_dict(self) -> Dict[str, Tuple[float, float]]:
        return {n: (lo, hi) for n, lo, hi in zip(self.names, self.lower, self.upper)}

    def arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return np.asarray(self.lower, dtype=float), np.asarray(self.upper, dtype=float)


def sample_starts(
    bounds: ParameterBounds, count: int, seed: Optional[int] = None
) -> np.ndarray:
    """Draw `count` start vectors uniformly within `bounds`.

    Returns an array of shape (count, P), columns in `bounds.names` order.
    The same seed and bounds always give the same array.
    """
    count = int(count)
    if count < 1:
        raise ValueError("count must be >= 1.")
    bounds.validate()
    lo, hi = bounds.arrays()
    rng = np.random.default_rng(seed)
    return rng.uniform(lo, hi, size=(count, lo.shape[0]))
