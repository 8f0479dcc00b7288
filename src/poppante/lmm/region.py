"""Region collapsing of neighbouring predictors.

With a window W, the test of marker m uses every marker on the same
chromosome whose position lies in [pos_m, pos_m + W], collapsed to the
first principal component of their standardised values. A window holding
only m itself uses m's raw values.
"""

from __future__ import annotations

import numpy as np

from poppante.core.errors import ConfigError
from poppante.io.predictor import Marker
from poppante.transform import principal_components


def markers_in_window(markers: list[Marker], index: int, window: int) -> list[int]:
    """Indices of the markers in the window that starts at marker `index`.

    The focal marker is always first in the returned list.

    Raises:
        ConfigError: If the focal marker has no chromosome and position.
    """
    focal = markers[index]
    if not focal.mapped:
        raise ConfigError(f"region collapsing needs a position for predictor {focal.name}")
    end = focal.position + window
    window_indices = [index]
    for j, other in enumerate(markers):
        if (
            j != index
            and other.chromosome == focal.chromosome
            and focal.position <= other.position <= end
        ):
            window_indices.append(j)
    return window_indices


def region_scores(values: np.ndarray, indices: list[int]) -> np.ndarray:
    """Collapse the predictors in `indices` into one value per individual.

    Args:
        values: Predictor matrix (M, N), NaN for missing.
        indices: Rows of the window, as returned by markers_in_window.

    Returns:
        (N,) vector: the raw predictor for a single-marker window, else the
        first left singular vector of the standardised (window, N) data.
    """
    if len(indices) == 1:
        return values[indices[0]].copy()
    pcs = principal_components(values[indices])
    return pcs.components[:, 0].copy()
