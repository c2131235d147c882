"""Solver backends + registry."""

from __future__ import annotations

from typing import Dict

from .common import Backend, TrialOutcome
from .scipy_curve_fit import ScipyCurveFitBackend
from .scipy_least_squares import ScipyLeastSquaresBackend

_BACKENDS: Dict[str, Backend] = {
    "scipy.least_squares": ScipyLeastSquaresBackend(),
    "scipy.curve_fit": ScipyCurveFitBackend(),
}


def get_backend(name: str) -> Backend:
    """Return a backend implementation by name."""
    try:
        return _BACKENDS[name]
    except KeyError as e:
        raise ValueError(
            f"Unknown backend {name!r}. Available: {tuple(_BACKENDS.keys())}"
        ) from e


AVAILABLE_BACKENDS = tuple(_BACKENDS.keys())

__all__ = ["Backend", "TrialOutcome", "get_backend", "AVAILABLE_BACKENDS"]
