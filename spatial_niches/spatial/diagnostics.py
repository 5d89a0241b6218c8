"""Neighborhood diagnostics per field of view."""

import logging
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from .neighbors import as_coordinate_array, knn_indices, partition_frames

logger = logging.getLogger(__name__)


def kth_neighbor_distances(
    coords,
    k_neighbors: int,
    fovs: Optional[Sequence] = None,
    n_jobs: int = 1,
) -> np.ndarray:
    """
    Distance from each cell to its k-th nearest other cell in the same frame.

    Parameters
    ----------
    coords : array-like
        Nx2 or Nx3 array of spatial coordinates.
    k_neighbors : int
        Neighborhood size.
    fovs : sequence, optional
        Field of view per cell.
    n_jobs : int
        Workers for the neighbor queries.

    Returns
    -------
    np.ndarray
        Array of length n_cells, in input order.
    """
    coords = as_coordinate_array(coords)
    distances = np.empty(coords.shape[0])

    labels = np.zeros(coords.shape[0], dtype=object)
    for frame in partition_frames(coords, labels, fovs=fovs):
        neighbors = knn_indices(frame.coords, k_neighbors, n_jobs=n_jobs, fov=frame.fov)
        farthest = frame.coords[neighbors[:, -1]]
        distances[frame.positions] = np.linalg.norm(farthest - frame.coords, axis=1)

    return distances


def identify_isolated_cells(
    coords,
    k_neighbors: int,
    fovs: Optional[Sequence] = None,
    n_mads: float = 5.0,
    min_ratio: float = 2.0,
    distances: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Identify cells whose neighborhood is unusually spread out.

    A cell is isolated when its k-th neighbor distance exceeds the median of
    its field of view by more than ``n_mads`` median absolute deviations and
    is at least ``min_ratio`` times that median.
    These cells still get full-size neighborhoods; they are only reported.

    Parameters
    ----------
    coords : array-like
        Spatial coordinates.
    k_neighbors : int
        Neighborhood size.
    fovs : sequence, optional
        Field of view per cell.
    n_mads : float
        Number of MADs above the median.
    min_ratio : float
        Minimum ratio of the k-th distance to the median.
    distances : np.ndarray, optional
        Precomputed output of :func:`kth_neighbor_distances`.

    Returns
    -------
    np.ndarray
        Boolean mask, True for isolated cells.
    """
    if distances is None:
        distances = kth_neighbor_distances(coords, k_neighbors, fovs=fovs)
    groups = pd.Series(distances).groupby(
        np.asarray(fovs, dtype=object) if fovs is not None else np.zeros(len(distances))
    )

    median = groups.transform("median").to_numpy()
    mad = groups.transform(lambda d: np.median(np.abs(d - np.median(d)))).to_numpy()

    isolated = (distances > median + n_mads * mad) & (distances >= min_ratio * median)

    logger.info(f"Found {int(isolated.sum())} spatially isolated cells")

    return isolated


def neighbor_distance_diagnostics(
    coords,
    k_neighbors: int,
    fovs: Optional[Sequence] = None,
    n_mads: float = 5.0,
) -> Dict:
    """
    Compute diagnostic statistics of neighborhood extent for each field of view.

    Parameters
    ----------
    coords : array-like
        Spatial coordinates.
    k_neighbors : int
        Neighborhood size.
    fovs : sequence, optional
        Field of view per cell.
    n_mads : float
        Threshold used by :func:`identify_isolated_cells`.

    Returns
    -------
    dict
        Dictionary with overall and per-fov statistics.
    """
    distances = kth_neighbor_distances(coords, k_neighbors, fovs=fovs)
    isolated = identify_isolated_cells(
        coords, k_neighbors, fovs=fovs, n_mads=n_mads, distances=distances
    )

    fov_values = (
        np.asarray(fovs, dtype=object).astype(str) if fovs is not None else np.full(len(distances), "0")
    )
    frame = pd.DataFrame({"fov": fov_values, "distance": distances, "isolated": isolated})

    per_fov = {}
    for fov, group in frame.groupby("fov", sort=False):
        per_fov[str(fov)] = {
            "n_cells": int(len(group)),
            "kth_distance": {
                "mean": float(group["distance"].mean()),
                "median": float(group["distance"].median()),
                "max": float(group["distance"].max()),
            },
            "isolated_cells": int(group["isolated"].sum()),
        }

    diagnostics = {
        "n_cells": int(len(frame)),
        "n_fovs": int(len(per_fov)),
        "k_neighbors": int(k_neighbors),
        "kth_distance": {
            "mean": float(np.mean(distances)),
            "median": float(np.median(distances)),
            "min": float(np.min(distances)),
            "max": float(np.max(distances)),
        },
        "isolated_cells": int(isolated.sum()),
        "fovs": per_fov,
    }

    logger.info(
        f"Neighborhood diagnostics: {diagnostics['n_fovs']} fovs, "
        f"median k-th distance {diagnostics['kth_distance']['median']:.2f}"
    )

    return diagnostics
