from __future__ import annotations

import math
import sys
from typing import Any

import numpy as np


def information_criterion(rss: float, k: int, n: int, corrected: bool = True) -> float:
    """AIC (or small-sample AICc) from a residual sum of squares.

    AIC  = n*ln(rss/n) + 2k
    AICc = AIC + 2k(k+1)/(n-k-1)

    Never raises: degenerate inputs (n <= 0, non-finite rss, n-k-1 <= 0 for
    AICc) score +inf so they can never win. Lower is better.
    """
    rss = float(rss)
    k = int(k)
    n = int(n)
    if n <= 0 or not math.isfinite(rss) or rss < 0.0:
        return math.inf
    # Exact fits keep a finite (very low) score.
    rss = max(rss, sys.float_info.min)
    aic = n * math.log(rss / n) + 2.0 * k
    if not corrected:
        return aic
    denom = n - k - 1
    if denom <= 0:
        return math.inf
    return aic + 2.0 * k * (k + 1) / denom


def criterion_name(corrected: bool) -> str:
    return "AICc" if corrected else "AIC"


def quasi_r2(y: Any, rss: float) -> float:
    """1 - RSS/TSS. Not a true coefficient of determination for non-linear fits."""
    y = np.asarray(y, dtype=float)
    tss = float(np.sum((y - np.mean(y)) ** 2)) if y.size else 0.0
    if tss <= 0.0:
        return float("nan")
    return 1.0 - float(rss) / tss
