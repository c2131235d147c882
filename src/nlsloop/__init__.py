"""nlsloop public API."""
from .backends import AVAILABLE_BACKENDS, TrialOutcome, get_backend
from .config import LoopConfig
from .confint import confint
from .errors import DataValidationError, InvalidBoundsError, NlsLoopError
from .loop import PartitionFailure, PartitionResult, PartitionSearch, fit_partition
from .model import Model
from .predict import predict_curve
from .results import FitCollection
from .run import nls_loop, nls_loop_from_options
from .sampling import ParameterBounds, sample_starts
from .scoring import information_criterion, quasi_r2
from . import models

__version__ = "0.1.0"

__all__ = [
    "AVAILABLE_BACKENDS",
    "DataValidationError",
    "FitCollection",
    "InvalidBoundsError",
    "LoopConfig",
    "Model",
    "NlsLoopError",
    "ParameterBounds",
    "PartitionFailure",
    "PartitionResult",
    "PartitionSearch",
    "TrialOutcome",
    "confint",
    "fit_partition",
    "get_backend",
    "information_criterion",
    "models",
    "nls_loop",
    "nls_loop_from_options",
    "predict_curve",
    "quasi_r2",
    "sample_starts",
]
