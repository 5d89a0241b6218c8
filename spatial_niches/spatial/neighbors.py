"""Spatial frames and deterministic k-nearest-neighbor queries."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

from ..errors import DimensionMismatchError, InsufficientCellsError, NicheInputError

logger = logging.getLogger(__name__)

# Relative slack on the boundary radius so that equidistant points are not
# lost to rounding inside the tree.
_RADIUS_RTOL = 1e-9
_RADIUS_ATOL = 1e-12


@dataclass
class SpatialFrame:
    """Cells sharing one coordinate system (a field of view)."""

    fov: str
    cell_ids: pd.Index
    coords: np.ndarray
    labels: np.ndarray
    positions: np.ndarray

    @property
    def n_cells(self) -> int:
        return len(self.cell_ids)


def as_coordinate_array(coords, fov: Optional[str] = None) -> np.ndarray:
    """
    Convert coordinates to a float array of shape (n_cells, n_dims).

    Parameters
    ----------
    coords : array-like or pd.DataFrame
        2D or 3D spatial coordinates, one row per cell.
    fov : str, optional
        Field of view, used for error context.

    Returns
    -------
    np.ndarray
        Float coordinate array.
    """
    if isinstance(coords, pd.DataFrame):
        coords = coords.to_numpy()
    coords = np.asarray(coords, dtype=float)

    if coords.ndim != 2:
        raise DimensionMismatchError(
            f"Coordinates must be a 2D array (cells x dims), got {coords.ndim}D", fov=fov
        )
    if coords.shape[0] == 0:
        raise NicheInputError("No cells provided", fov=fov)
    if coords.shape[1] not in (2, 3):
        raise DimensionMismatchError(
            f"Coordinates must have 2 or 3 columns, found {coords.shape[1]}", fov=fov
        )
    if not np.all(np.isfinite(coords)):
        n_bad = int(np.sum(~np.isfinite(coords).all(axis=1)))
        raise NicheInputError(f"{n_bad} cells have non-finite coordinates", fov=fov)

    return coords


def knn_indices(
    coords: np.ndarray,
    k_neighbors: int,
    include_self: bool = False,
    n_jobs: int = 1,
    fov: Optional[str] = None,
) -> np.ndarray:
    """
    Find the nearest other cells for every cell in one frame.

    Distances are Euclidean. Ties are broken by input position (the earlier
    cell wins), so the result is fully deterministic.

    Parameters
    ----------
    coords : np.ndarray
        Nx2 or Nx3 array of spatial coordinates.
    k_neighbors : int
        Neighborhood size. Must be strictly less than the number of cells.
    include_self : bool
        If True, the focal cell counts as one member of its own neighborhood
        and only ``k_neighbors - 1`` other cells are returned.
    n_jobs : int
        Workers used by the k-d tree queries (-1 for all cores).
    fov : str, optional
        Field of view, used for error context.

    Returns
    -------
    np.ndarray
        Integer array of shape (n_cells, m) with row positions of the
        neighbors, sorted by increasing distance, where m is ``k_neighbors``
        (or ``k_neighbors - 1`` with ``include_self``).
    """
    coords = as_coordinate_array(coords, fov=fov)
    n_cells = coords.shape[0]

    if isinstance(k_neighbors, bool) or not isinstance(k_neighbors, (int, np.integer)) or k_neighbors < 1:
        raise NicheInputError(f"k_neighbors must be a positive integer, got {k_neighbors!r}", fov=fov)
    if k_neighbors >= n_cells:
        raise InsufficientCellsError(n_cells, k_neighbors + 1, fov=fov)

    n_others = k_neighbors - 1 if include_self else k_neighbors
    if n_others == 0:
        return np.empty((n_cells, 0), dtype=np.intp)

    n_query = n_others + 1
    tree = cKDTree(coords)
    dist, idx = tree.query(coords, k=n_query, workers=n_jobs)
    dist = dist.reshape(n_cells, n_query)
    idx = idx.reshape(n_cells, n_query)

    radii = dist[:, -1] * (1 + _RADIUS_RTOL) + _RADIUS_ATOL
    n_within = tree.query_ball_point(coords, r=radii, workers=n_jobs, return_length=True)
    tied = np.flatnonzero(n_within > n_query)

    self_pos = np.arange(n_cells)[:, None]
    exact = np.sqrt(((coords[idx] - coords[:, None, :]) ** 2).sum(axis=-1))
    exact[idx == self_pos] = np.inf
    order = np.lexsort((idx, exact))
    neighbors = np.take_along_axis(idx, order, axis=1)[:, :n_others]

    # Rows where the boundary distance is shared with cells the tree did not
    # return are resolved against the full candidate set.
    if len(tied) > 0:
        balls = tree.query_ball_point(coords[tied], r=radii[tied], workers=n_jobs)
        for i, ball in zip(tied, balls):
            candidates = np.asarray(ball, dtype=np.intp)
            candidates = candidates[candidates != i]
            d = np.sqrt(((coords[candidates] - coords[i]) ** 2).sum(axis=-1))
            neighbors[i] = candidates[np.lexsort((candidates, d))][:n_others]

        logger.debug(f"Resolved distance ties for {len(tied)} cells")

    return neighbors


def partition_frames(
    coords,
    labels: Sequence,
    fovs: Optional[Sequence] = None,
    cell_ids: Optional[Sequence] = None,
) -> List[SpatialFrame]:
    """
    Split cells into independent spatial frames, one per field of view.

    Parameters
    ----------
    coords : array-like or pd.DataFrame
        Spatial coordinates, one row per cell. A DataFrame index supplies the
        cell keys when ``cell_ids`` is not given.
    labels : sequence
        Group label per cell.
    fovs : sequence, optional
        Field of view per cell. If None, all cells share one frame.
    cell_ids : sequence, optional
        Cell keys. Defaults to the DataFrame index or row positions.

    Returns
    -------
    list of SpatialFrame
        Frames in order of first appearance of their field of view.
    """
    if cell_ids is None:
        if isinstance(coords, pd.DataFrame):
            cell_ids = coords.index
        else:
            cell_ids = pd.RangeIndex(len(coords))
    cell_ids = pd.Index(cell_ids)

    coords = as_coordinate_array(coords)
    labels = np.asarray(labels, dtype=object)
    n_cells = coords.shape[0]

    if len(labels) != n_cells:
        raise DimensionMismatchError(
            f"Got {len(labels)} labels for {n_cells} cells; need exactly one label per cell"
        )
    if len(cell_ids) != n_cells:
        raise DimensionMismatchError(f"Got {len(cell_ids)} cell ids for {n_cells} cells")
    if not cell_ids.is_unique:
        raise NicheInputError("Cell ids are not unique")

    if fovs is None:
        fovs = np.zeros(n_cells, dtype=object)
        fovs[:] = "0"
    else:
        fovs = np.asarray(fovs, dtype=object)
        if len(fovs) != n_cells:
            raise DimensionMismatchError(f"Got {len(fovs)} fov values for {n_cells} cells")
        if pd.isna(fovs).any():
            raise NicheInputError(f"{int(pd.isna(fovs).sum())} cells have no field of view")

    frames = []
    for fov in pd.unique(fovs):
        positions = np.flatnonzero(fovs == fov)
        frames.append(
            SpatialFrame(
                fov=str(fov),
                cell_ids=cell_ids[positions],
                coords=coords[positions],
                labels=labels[positions],
                positions=positions,
            )
        )

    logger.info(f"Partitioned {n_cells} cells into {len(frames)} fields of view")

    return frames
