"""Error taxonomy for multi-start fitting."""

from __future__ import annotations

__all__ = [
    "NlsLoopError",
    "InvalidBoundsError",
    "DataValidationError",
    "SOLVER_NON_CONVERGENCE",
    "DEGENERATE_SCORE",
    "PARTITION_FAILURE",
    "DATA_VALIDATION",
]

# Reason names recorded on failed trials / partitions. Only the bounds and data
# errors are ever raised; the rest are reported as values.
SOLVER_NON_CONVERGENCE = "SolverNonConvergence"
DEGENERATE_SCORE = "DegenerateScoreError"
PARTITION_FAILURE = "PartitionFailure"
DATA_VALIDATION = "DataValidationError"


class NlsLoopError(Exception):
    """Base class for nlsloop errors."""


class InvalidBoundsError(NlsLoopError, ValueError):
    """Malformed parameter bounds (lower > upper, missing or unknown names)."""


class DataValidationError(NlsLoopError, ValueError):
    """Input data cannot be fitted (missing columns, too few observations)."""
