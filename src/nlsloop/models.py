from __future__ import annotations

import numpy as np

from .model import Model

# Boltzmann constant in eV/K.
BOLTZMANN_EV = 8.62e-5


def straight_line_func(x, m, b):
    """Module-level straight line function y = m*x + b."""
    return m * x + b


def straight_line(*, name: str = "straight line", response: str = "y") -> Model:
    """Return a straight line Model."""
    return Model.from_function(straight_line_func, name=name, response=response)


def exponential_decay_func(x, amplitude, rate, offset):
    """offset + amplitude * exp(-rate * x)."""
    return offset + amplitude * np.exp(-rate * x)


def exponential_decay(*, name: str = "exponential decay", response: str = "y") -> Model:
    return Model.from_function(exponential_decay_func, name=name, response=response)


def logistic_func(x, k, r, n0):
    """Logistic growth with carrying capacity k, rate r and initial size n0."""
    return k / (1.0 + (k - n0) / n0 * np.exp(-r * x))


def logistic(*, name: str = "logistic", response: str = "y") -> Model:
    return Model.from_function(logistic_func, name=name, response=response)


def schoolfield_high(*, tref: float = 20.0, name: str = "schoolfield_high",
                     response: str = "ln_rate", predictor: str = "K") -> Model:
    """Sharpe-Schoolfield thermal performance curve (high-temperature inactivation).

    Returns log rate as a function of temperature in Kelvin, with ln_c the log
    rate at `tref` (degrees C), E the activation energy, Eh the deactivation
    energy and Th the temperature (K) at which half the enzymes are inactive.
    """
    tref_k = 273.15 + float(tref)

    def schoolfield_high_func(K, ln_c, E, Eh, Th):
        K = np.asarray(K, dtype=float)
        boltz = ln_c + E * (1.0 / (BOLTZMANN_EV * tref_k) - 1.0 / (BOLTZMANN_EV * K))
        inact = np.log(1.0 + np.exp(Eh * (1.0 / (BOLTZMANN_EV * Th) - 1.0 / (BOLTZMANN_EV * K))))
        return boltz - inact

    return Model.from_function(
        schoolfield_high_func, name=name, response=response, predictors=(predictor,)
    )
