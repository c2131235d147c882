from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .util import split_signature


@dataclass(frozen=True)
class Model:
    """A model wraps a callable plus the names it is fitted against.

    `func(*predictors, *params)` maps predictor values and free parameters to
    the response. The response and predictor names are the dataset columns the
    model is fitted to.
    """

    name: str
    func: Callable[..., Any]
    response: str
    predictors: Tuple[str, ...]
    param_names: Tuple[str, ...]

    # ---- constructor ----
    @staticmethod
    def from_function(
        func: Callable[..., Any],
        *,
        response: str = "y",
        predictors: Optional[Sequence[str]] = None,
        name: Optional[str] = None,
    ) -> "Model":
        """Construct a Model from a plain function signature.

        With `predictors=None` the first argument is the single predictor and
        its name doubles as the predictor column name. Otherwise the first
        `len(predictors)` arguments receive those columns, in order.
        """
        n_pred = 1 if predictors is None else len(tuple(predictors))
        arg_names, param_names = split_signature(func, n_pred)
        cols = arg_names if predictors is None else tuple(str(p) for p in predictors)
        if str(response) in cols:
            raise ValueError(f"Response {response!r} is also listed as a predictor.")
        return Model(
            name=name or getattr(func, "__name__", "model"),
            func=func,
            response=str(response),
            predictors=cols,
            param_names=param_names,
        )

    # ---- builders (pure; return new model) ----
    def on(
        self,
        *,
        response: Optional[str] = None,
        predictors: Optional[Sequence[str]] = None,
    ) -> "Model":
        """Return a copy bound to different dataset column names."""
        new_pred = self.predictors
        if predictors is not None:
            new_pred = tuple(str(p) for p in predictors)
            if len(new_pred) != len(self.predictors):
                raise ValueError(
                    f"Model takes {len(self.predictors)} predictor(s); got {len(new_pred)}."
                )
        return replace(
            self,
            response=self.response if response is None else str(response),
            predictors=new_pred,
        )

    @property
    def n_params(self) -> int:
        return len(self.param_names)

    @property
    def formula(self) -> str:
        """Readable reference of what is being fitted."""
        args = ", ".join(self.predictors)
        pars = ", ".join(self.param_names)
        return f"{self.response} ~ {self.name}({args}; {pars})"

    # ---- evaluation ----
    def eval(
        self, x: Any, *, params: Optional[Mapping[str, Any]] = None, **kwargs: Any
    ) -> Any:
        """Evaluate the model at x with given parameters.

        x is a single array for one-predictor models, or a tuple with one array
        per predictor.
        """
        values: Dict[str, Any] = {}
        if params is not None:
            values.update(params)
        values.update(kwargs)

        missing = [n for n in self.param_names if n not in values]
        if missing:
            raise TypeError(f"Missing parameter values for: {missing}")

        xs = tuple(x) if isinstance(x, tuple) else (x,)
        if len(xs) != len(self.predictors):
            raise TypeError(
                f"Model {self.name!r} expects {len(self.predictors)} predictor(s); got {len(xs)}."
            )
        args = list(xs) + [values[n] for n in self.param_names]
        return self.func(*args)

    def eval_theta(self, x: Any, theta: Sequence[float]) -> np.ndarray:
        """Evaluate with a positional parameter vector (declaration order)."""
        kw = {n: float(theta[j]) for j, n in enumerate(self.param_names)}
        return np.asarray(self.eval(x, **kw), dtype=float)

    def theta_to_map(self, theta: Sequence[float]) -> Dict[str, float]:
        return {n: float(theta[j]) for j, n in enumerate(self.param_names)}
