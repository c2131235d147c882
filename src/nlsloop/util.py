from __future__ import annotations

import inspect
from typing import Any, Callable, Sequence, Tuple


def split_signature(
    func: Callable[..., Any], n_predictors: int
) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Split a model function signature into (predictor args, parameter names).

    Conventions:
    - the first `n_predictors` arguments receive predictor columns
    - every remaining argument is a free parameter, in declaration order
    - no *args/**kwargs in model functions
    """
    sig = inspect.signature(func)
    params = list(sig.parameters.values())

    if n_predictors < 1:
        raise TypeError("Model needs at least one predictor.")
    if len(params) < n_predictors + 1:
        raise TypeError(
            f"Model function must have at least {n_predictors} predictor "
            "argument(s) followed by one or more parameters."
        )

    bad_kinds = {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}
    for p in params:
        if p.kind in bad_kinds:
            raise TypeError("*args/**kwargs are not supported in model functions.")

    names = [p.name for p in params]
    if len(set(names)) != len(names):
        raise TypeError("Duplicate parameter names in function signature.")
    return tuple(names[:n_predictors]), tuple(names[n_predictors:])


def flag(value: Any) -> bool:
    """Interpret boolean-ish option values, including "Y"/"N" spellings."""
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("y", "yes", "true", "t", "1"):
            return True
        if v in ("n", "no", "false", "f", "0"):
            return False
        raise ValueError(f"Cannot interpret {value!r} as a flag.")
    return bool(value)


def names_in_order(names: Sequence[str]) -> str:
    return ", ".join(str(n) for n in names)
