import numpy as np
import pytest

from nlsloop import Model, models


def test_from_function_splits_predictor_and_params():
    def decay(t, a, k):
        return a * np.exp(-k * t)

    model = Model.from_function(decay, response="counts")

    assert model.predictors == ("t",)
    assert model.param_names == ("a", "k")
    assert model.n_params == 2
    assert model.name == "decay"
    assert model.formula == "counts ~ decay(t; a, k)"
    assert np.allclose(model.eval(np.array([0.0, 1.0]), a=2.0, k=np.log(2.0)), [2.0, 1.0])
    assert np.allclose(model.eval_theta(np.array([0.0]), [3.0, 1.0]), [3.0])
    assert model.theta_to_map([3.0, 1.0]) == {"a": 3.0, "k": 1.0}


def test_several_predictors_and_rebinding():
    def plane(x, z, a, b):
        return a * x + b * z

    model = Model.from_function(plane, predictors=("temp", "ph"))
    assert model.predictors == ("temp", "ph")
    assert model.param_names == ("a", "b")
    assert model.eval((np.array([1.0]), np.array([2.0])), params={"a": 1.0, "b": 3.0})[0] == 7.0

    moved = model.on(response="rate", predictors=("T", "pH"))
    assert moved.response == "rate"
    assert moved.predictors == ("T", "pH")
    assert model.response == "y"

    with pytest.raises(ValueError):
        model.on(predictors=("T",))
    with pytest.raises(TypeError):
        model.eval(np.array([1.0]), a=1.0, b=1.0)


def test_bad_signatures():
    def star(x, *p):
        return x

    def bare(x):
        return x

    with pytest.raises(TypeError):
        Model.from_function(star)
    with pytest.raises(TypeError):
        Model.from_function(bare)


def test_response_cannot_be_a_predictor():
    with pytest.raises(ValueError):
        Model.from_function(models.straight_line_func, response="x")


def test_missing_parameter_value():
    with pytest.raises(TypeError, match="b"):
        models.straight_line().eval(np.array([1.0]), m=1.0)


def test_schoolfield_peaks_below_th():
    model = models.schoolfield_high()
    assert model.predictors == ("K",)
    assert model.response == "ln_rate"
    assert model.param_names == ("ln_c", "E", "Eh", "Th")

    K = np.linspace(280.0, 320.0, 401)
    y = model.eval(K, ln_c=0.0, E=0.65, Eh=3.0, Th=305.0)
    peak = K[np.argmax(y)]
    assert 290.0 < peak < 305.0
    # At the reference temperature the Boltzmann term reduces to ln_c.
    at_ref = model.eval(np.array([293.15]), ln_c=1.0, E=0.65, Eh=3.0, Th=400.0)[0]
    assert at_ref == pytest.approx(1.0, abs=1e-3)
