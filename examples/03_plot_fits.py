import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from nlsloop import models, nls_loop
from nlsloop.viz import plot_fits

rng = np.random.default_rng(2)
x = np.linspace(0.0, 8.0, 25)
data = pd.concat(
    [
        pd.DataFrame(
            {
                "sample": s,
                "x": x,
                "y": models.exponential_decay_func(x, a, r, c) + rng.normal(0.0, 0.1, size=x.size),
            }
        )
        for s, (a, r, c) in {"s1": (4.0, 0.5, 0.5), "s2": (6.0, 1.1, 0.0), "s3": (2.0, 0.2, 1.0)}.items()
    ],
    ignore_index=True,
)

# Add a sample nothing can be fitted to; it shows up in fits.failures.
data = pd.concat(
    [data, pd.DataFrame({"sample": "empty", "x": [0.0, 1.0], "y": [np.nan, np.nan]})],
    ignore_index=True,
)

fits = nls_loop(models.exponential_decay(), data, "sample", 60, (0, 10, 0.01, 3, -2, 2), seed=0)
print(fits.failures)

fig, axs = plot_fits(fits, data, ncols=3, show_params=True, line_kwargs={"color": "C1"})
fig.suptitle(fits.formula)
plt.show()
