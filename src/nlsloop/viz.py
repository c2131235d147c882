from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np

from .data import prepare_partitions


def plot_fits(
    fits: Any,
    data: Any,
    *,
    ids: Optional[Sequence[Any]] = None,
    ncols: int = 4,
    panel_size: Tuple[float, float] = (3.0, 2.5),
    data_kwargs: Optional[Mapping[str, Any]] = None,
    line_kwargs: Optional[Mapping[str, Any]] = None,
    show_params: bool = False,
    param_digits: int = 3,
) -> Tuple[Any, Any]:
    """Plot observations and the best-fit prediction curve, one panel per partition.

    Parameters
    ----------
    fits : FitCollection
    data : DataFrame or mapping of columns
        The data the run was fitted to.
    ids : sequence, optional
        Partitions to draw. Defaults to every fitted partition.
    ncols : int
        Panels per row.
    data_kwargs, line_kwargs : dict, optional
        Styling kwargs for the data markers and the prediction line.
    show_params : bool
        If True, annotate each panel with its fitted parameters.
    """
    import matplotlib.pyplot as plt

    model = fits.model
    id_col = fits.info["id_col"]
    xname = model.predictors[0]
    yname = model.response

    ids = list(fits.ids if ids is None else ids)
    if not ids:
        raise ValueError("No fitted partitions to plot.")

    parts = {
        p.id: p
        for p in prepare_partitions(
            data, id_col=id_col, response=yname, predictors=model.predictors,
            na_action="omit",
        )
    }

    ncols = max(1, min(int(ncols), len(ids)))
    nrows = int(math.ceil(len(ids) / ncols))
    fig, axs = plt.subplots(
        nrows, ncols,
        figsize=(panel_size[0] * ncols, panel_size[1] * nrows),
        squeeze=False, constrained_layout=True,
    )

    data_kwargs = dict(data_kwargs or {})
    data_kwargs.setdefault("marker", "o")
    data_kwargs.setdefault("linestyle", "none")
    data_kwargs.setdefault("ms", 4)
    line_kwargs = dict(line_kwargs or {})

    preds = fits.predictions
    for k, pid in enumerate(ids):
        ax = axs[k // ncols][k % ncols]
        part = parts.get(pid)
        if part is not None:
            ax.plot(part.columns[0], part.y, **data_kwargs)
        curve = preds[preds[id_col] == pid]
        if len(curve):
            ax.plot(curve[xname].to_numpy(), curve[yname].to_numpy(), **line_kwargs)
        ax.set_title(str(pid), fontsize=10)
        ax.set_xlabel(xname)
        ax.set_ylabel(yname)

        if show_params and pid in fits.ids:
            res = fits[pid]
            lines = [f"{n}={v:.{param_digits}g}" for n, v in res.params.items()]
            ax.text(
                0.02, 0.98, "\n".join(lines),
                ha="left", va="top", fontsize=8, transform=ax.transAxes,
                bbox={"boxstyle": "round", "facecolor": "white", "alpha": 0.7, "edgecolor": "none"},
            )

    for k in range(len(ids), nrows * ncols):
        axs[k // ncols][k % ncols].set_visible(False)

    return fig, np.asarray(axs)
