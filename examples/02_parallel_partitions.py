import logging
import time

import numpy as np
import pandas as pd

from nlsloop import LoopConfig, models, nls_loop

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

rng = np.random.default_rng(1)
t = np.linspace(0.0, 24.0, 30)
frames = []
for i in range(12):
    k = rng.uniform(50.0, 150.0)
    r = rng.uniform(0.2, 0.8)
    n0 = rng.uniform(1.0, 5.0)
    y = models.logistic_func(t, k, r, n0) * rng.lognormal(0.0, 0.03, size=t.size)
    frames.append(pd.DataFrame({"well": f"W{i:02d}", "x": t, "y": y}))
data = pd.concat(frames, ignore_index=True)

config = LoopConfig(
    tries=100,
    param_bds=(10.0, 300.0, 0.01, 2.0, 0.1, 10.0),
    lower=(0.0, 0.0, 0.0),
    seed=3,
    patience=40,
)

t0 = time.perf_counter()
seq = nls_loop(models.logistic(), data, "well", config=config)
t1 = time.perf_counter()
par = nls_loop(
    models.logistic(),
    data,
    "well",
    tries=config.tries,
    param_bds=config.param_bds,
    lower=config.lower,
    seed=config.seed,
    patience=config.patience,
    parallel="threads",
    max_workers=4,
)
t2 = time.perf_counter()

pd.testing.assert_frame_equal(seq.params, par.params)
print(f"sequential {t1 - t0:.2f}s, threaded {t2 - t1:.2f}s, identical results")
print(par.params[["well", "k", "r", "n0", "tries", "stall_count"]])
