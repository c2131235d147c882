import numpy as np
import pandas as pd

from nlsloop import models, nls_loop

model = models.schoolfield_high(tref=20.0)

rng = np.random.default_rng(0)
K = 273.15 + np.linspace(12.0, 42.0, 16)
truth = {
    "isolate_1": dict(ln_c=0.4, E=0.65, Eh=3.2, Th=305.0),
    "isolate_2": dict(ln_c=-0.3, E=0.8, Eh=4.5, Th=309.0),
    "isolate_3": dict(ln_c=0.1, E=0.55, Eh=2.8, Th=301.0),
}
data = pd.concat(
    [
        pd.DataFrame(
            {
                "curve_id": cid,
                "K": K,
                "ln_rate": model.eval(K, **p) + rng.normal(0.0, 0.05, size=K.size),
            }
        )
        for cid, p in truth.items()
    ],
    ignore_index=True,
)

fits = nls_loop(
    model,
    data,
    "curve_id",
    tries=300,
    param_bds={"ln_c": (-3, 3), "E": (0.1, 2.0), "Eh": (1.0, 10.0), "Th": (290.0, 320.0)},
    lower={"E": 0.0, "Eh": 0.0},
    seed=42,
)

print(fits.summary())
print(fits.params[["curve_id", "E", "Th", "AICc", "quasi_r2", "tries", "stall_count"]])
print(fits.confint())
