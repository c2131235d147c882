import warnings

import numpy as np
import pytest

from nlsloop import InvalidBoundsError, LoopConfig


NAMES = ("ln_c", "E", "Eh", "Th")
BDS = (-10.0, 10.0, 0.1, 2.0, 0.5, 10.0, 285.0, 330.0)


def test_from_mapping_accepts_alternative_spellings():
    cfg = LoopConfig.from_mapping(
        {
            "tries": 200,
            "param_bds": BDS,
            "r2": "Y",
            "supp_errors": "N",
            "AICc": "N",
            "na.action": "na.fail",
        }
    )
    assert cfg.tries == 200
    assert cfg.r2 is True
    assert cfg.supp_errors is False
    assert cfg.aicc is False
    assert cfg.na_action == "fail"


def test_from_mapping_rejects_unknown_keys_and_flags():
    with pytest.raises(KeyError):
        LoopConfig.from_mapping({"tries": 5, "param_bds": BDS, "verbose": True})
    with pytest.raises(ValueError):
        LoopConfig.from_mapping({"tries": 5, "param_bds": BDS, "r2": "maybe"})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tries": 0},
        {"patience": 0},
        {"resolution": 1},
        {"na_action": "drop"},
        {"parallel": "processes"},
        {"backend": "nope"},
        {"max_workers": 0},
    ],
)
def test_invalid_values(kwargs):
    base = {"tries": 10, "param_bds": BDS}
    base.update(kwargs)
    with pytest.raises(ValueError):
        LoopConfig(**base)


def test_bounds_for_flat_and_mapping():
    cfg = LoopConfig(tries=10, param_bds=BDS)
    b = cfg.bounds_for(NAMES)
    assert b.names == NAMES
    assert b.lower == (-10.0, 0.1, 0.5, 285.0)

    mapped = LoopConfig(tries=10, param_bds=b.as_dict())
    assert mapped.bounds_for(NAMES) == b

    with pytest.raises(InvalidBoundsError):
        LoopConfig(tries=10, param_bds=BDS[:-1]).bounds_for(NAMES)


def test_hard_limits_default_to_infinite():
    lo, hi = LoopConfig(tries=10, param_bds=BDS).hard_limits(NAMES)
    assert np.all(np.isneginf(lo))
    assert np.all(np.isposinf(hi))


def test_hard_limits_from_mapping_and_sequence():
    cfg = LoopConfig(tries=10, param_bds=BDS, lower={"E": 0.0}, upper=[np.inf, 5.0, np.inf, 400.0])
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        lo, hi = cfg.hard_limits(NAMES)
    assert lo[1] == 0.0 and np.isneginf(lo[0])
    assert hi.tolist()[1] == 5.0 and hi[3] == 400.0


def test_hard_limits_errors():
    with pytest.raises(InvalidBoundsError):
        LoopConfig(tries=10, param_bds=BDS, lower={"Q": 0.0}).hard_limits(NAMES)
    with pytest.raises(InvalidBoundsError):
        LoopConfig(tries=10, param_bds=BDS, upper=[1.0, 2.0]).hard_limits(NAMES)
    with pytest.raises(InvalidBoundsError):
        LoopConfig(tries=10, param_bds=BDS, lower={"E": 3.0}, upper={"E": 1.0}).hard_limits(NAMES)
    with pytest.raises(InvalidBoundsError, match="E"):
        LoopConfig(tries=10, param_bds=BDS, lower={"E": 1.0}, upper={"E": 1.0}).hard_limits(NAMES)


def test_hard_limits_warn_when_excluding_sampling_range():
    cfg = LoopConfig(tries=10, param_bds=BDS, lower={"E": 5.0})
    with pytest.warns(UserWarning, match="E"):
        cfg.hard_limits(NAMES)
