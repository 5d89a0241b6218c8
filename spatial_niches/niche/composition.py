"""Compute neighborhood composition features for niche analysis."""

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from ..errors import DimensionMismatchError, EmptyLabelSetError, NicheInputError
from ..spatial.neighbors import SpatialFrame, as_coordinate_array, knn_indices, partition_frames

logger = logging.getLogger(__name__)


def label_universe(labels: Sequence) -> pd.Index:
    """
    Fix the canonical, sorted set of group labels.

    Parameters
    ----------
    labels : sequence
        Group label per cell, across every field of view of the run.

    Returns
    -------
    pd.Index
        Sorted distinct labels. Every composition vector is indexed by it.
    """
    labels = np.asarray(labels, dtype=object)
    if len(labels) == 0:
        raise EmptyLabelSetError("No group labels provided")
    missing = pd.isna(labels)
    if missing.any():
        raise NicheInputError(f"{int(missing.sum())} cells have no group label")

    try:
        universe = sorted(set(labels.tolist()))
    except TypeError:
        raise NicheInputError(
            "Group labels mix incomparable types; convert them to strings first"
        ) from None

    return pd.Index(universe, dtype=object)


def compute_compositions(
    coords,
    labels: Sequence,
    k_neighbors: int,
    cell_ids: Optional[Sequence] = None,
    include_self: bool = False,
    normalize: bool = False,
    universe: Optional[Sequence] = None,
    n_jobs: int = 1,
    fov: Optional[str] = None,
) -> pd.DataFrame:
    """
    Compute the neighborhood composition vector of every cell in one frame.

    For each cell, tallies the group labels of its ``k_neighbors`` nearest
    cells. Isolated cells still receive full-size neighborhoods.

    Parameters
    ----------
    coords : array-like or pd.DataFrame
        Spatial coordinates of cells sharing one coordinate frame.
    labels : sequence
        Exactly one group label per cell.
    k_neighbors : int
        Neighborhood size, strictly less than the number of cells.
    cell_ids : sequence, optional
        Cell keys for the result index. Defaults to the DataFrame index of
        ``coords`` or row positions.
    include_self : bool
        If False, the neighborhood is the ``k_neighbors`` nearest other cells.
        If True, the focal cell plus its ``k_neighbors - 1`` nearest others.
    normalize : bool
        If True, return fractions instead of counts.
    universe : sequence, optional
        Label set fixing the columns. Defaults to the sorted labels observed
        in ``labels``. Must contain every observed label.
    n_jobs : int
        Workers for the neighbor queries.
    fov : str, optional
        Field of view, used for error context.

    Returns
    -------
    pd.DataFrame
        Rows=cells, columns=group labels. Every row sums to ``k_neighbors``
        unless ``normalize`` is set.
    """
    labels = np.asarray(labels, dtype=object)
    if len(labels) == 0:
        raise EmptyLabelSetError("No group labels provided", fov=fov)

    if cell_ids is None:
        cell_ids = coords.index if isinstance(coords, pd.DataFrame) else pd.RangeIndex(len(labels))
    cell_ids = pd.Index(cell_ids)

    coords = as_coordinate_array(coords, fov=fov)
    n_cells = coords.shape[0]
    if len(labels) != n_cells:
        raise DimensionMismatchError(
            f"Got {len(labels)} labels for {n_cells} cells; need exactly one label per cell",
            fov=fov,
        )
    if len(cell_ids) != n_cells:
        raise DimensionMismatchError(f"Got {len(cell_ids)} cell ids for {n_cells} cells", fov=fov)

    if universe is None:
        universe = label_universe(labels)
    else:
        universe = pd.Index(universe, dtype=object)
        if len(universe) == 0:
            raise EmptyLabelSetError("Label universe is empty", fov=fov)

    codes = universe.get_indexer(labels)
    if np.any(codes < 0):
        unknown = pd.unique(labels[codes < 0])
        raise NicheInputError(f"Labels not in the label universe: {list(unknown)[:10]}", fov=fov)

    neighbors = knn_indices(
        coords, k_neighbors, include_self=include_self, n_jobs=n_jobs, fov=fov
    )

    counts = np.zeros((n_cells, len(universe)), dtype=np.int64)
    rows = np.repeat(np.arange(n_cells), neighbors.shape[1])
    np.add.at(counts, (rows, codes[neighbors].ravel()), 1)
    if include_self:
        counts[np.arange(n_cells), codes] += 1

    composition_df = pd.DataFrame(counts, index=cell_ids, columns=universe)
    if normalize:
        composition_df = composition_df / float(k_neighbors)

    logger.debug(
        f"Composition for {n_cells} cells over {len(universe)} labels"
        + (f" in fov {fov}" if fov is not None else "")
    )

    return composition_df


def _frame_compositions(frame: SpatialFrame, k_neighbors, universe, include_self, normalize, n_jobs):
    return compute_compositions(
        frame.coords,
        frame.labels,
        k_neighbors,
        cell_ids=frame.cell_ids,
        include_self=include_self,
        normalize=normalize,
        universe=universe,
        n_jobs=n_jobs,
        fov=frame.fov,
    )


def compute_compositions_by_fov(
    coords,
    labels: Sequence,
    k_neighbors: int,
    fovs: Optional[Sequence] = None,
    cell_ids: Optional[Sequence] = None,
    include_self: bool = False,
    normalize: bool = False,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """
    Compute neighborhood compositions with each field of view kept separate.

    The label universe is fixed once across all fields of view so that the
    vectors are comparable; neighbor search never crosses frames.

    Parameters
    ----------
    coords : array-like or pd.DataFrame
        Spatial coordinates, one row per cell.
    labels : sequence
        Group label per cell.
    k_neighbors : int
        Neighborhood size. Every field of view needs more than this many cells.
    fovs : sequence, optional
        Field of view per cell. If None, all cells share one frame.
    cell_ids : sequence, optional
        Cell keys.
    include_self : bool
        Self-inclusion policy, see :func:`compute_compositions`.
    normalize : bool
        If True, return fractions instead of counts.
    n_jobs : int
        Number of fields of view processed in parallel.

    Returns
    -------
    pd.DataFrame
        Rows=cells in input order, columns=sorted group labels.
    """
    labels = np.asarray(labels, dtype=object)
    universe = label_universe(labels)
    frames = partition_frames(coords, labels, fovs=fovs, cell_ids=cell_ids)

    logger.info(
        f"Computing neighborhood composition with k={k_neighbors} "
        f"({'including' if include_self else 'excluding'} self) "
        f"for {len(frames)} fields of view and {len(universe)} labels"
    )

    if n_jobs == 1 or len(frames) == 1:
        parts = [
            _frame_compositions(frame, k_neighbors, universe, include_self, normalize, n_jobs)
            for frame in frames
        ]
    else:
        parts = Parallel(n_jobs=n_jobs)(
            delayed(_frame_compositions)(frame, k_neighbors, universe, include_self, normalize, 1)
            for frame in frames
        )

    positions = np.concatenate([frame.positions for frame in frames])
    composition_df = pd.concat(parts, axis=0)
    composition_df = composition_df.iloc[np.argsort(positions, kind="stable")]

    logger.info(f"Computed neighborhood composition for {len(composition_df)} cells")

    return composition_df


def add_composition_to_adata(
    adata,
    composition_df: pd.DataFrame,
    obsm_key: str = "niche_composition",
):
    """
    Add neighborhood composition to adata.obsm.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object.
    composition_df : pd.DataFrame
        Composition dataframe indexed by adata.obs_names.
    obsm_key : str
        Key to store composition in adata.obsm.

    Returns
    -------
    anndata.AnnData
        Modified AnnData object.
    """
    composition_df = composition_df.reindex(adata.obs_names)
    if composition_df.isna().any().any():
        raise DimensionMismatchError("Composition table does not cover every cell in adata")

    adata.obsm[obsm_key] = composition_df.to_numpy()
    adata.uns[f"{obsm_key}_columns"] = [str(c) for c in composition_df.columns]

    logger.info(f"Added neighborhood composition to adata.obsm['{obsm_key}']")

    return adata


def composition_from_adata(adata, obsm_key: str = "niche_composition") -> pd.DataFrame:
    """Rebuild the composition dataframe stored by :func:`add_composition_to_adata`."""
    if obsm_key not in adata.obsm:
        raise ValueError(f"Composition key '{obsm_key}' not found in adata.obsm")

    columns = adata.uns.get(f"{obsm_key}_columns")
    values = np.asarray(adata.obsm[obsm_key])
    if columns is None:
        columns = [str(i) for i in range(values.shape[1])]

    return pd.DataFrame(values, index=adata.obs_names, columns=list(columns))
