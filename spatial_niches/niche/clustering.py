"""Clustering neighborhood compositions into niche states."""

import logging
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.preprocessing import StandardScaler

from ..errors import (
    DimensionMismatchError,
    InsufficientCellsError,
    NicheConvergenceWarning,
    NicheInputError,
)

logger = logging.getLogger(__name__)


@dataclass
class NicheAssignment:
    """Result of clustering composition vectors into niches."""

    labels: pd.Series
    centroids: pd.DataFrame
    inertia: float
    n_iter: int
    converged: bool
    k_niches: int
    random_seed: int
    standardized: bool = False
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_niches_found(self) -> int:
        """Number of niches with at least one cell."""
        return int(self.labels.nunique())

    def summary(self) -> Dict[str, Any]:
        return {
            "k_niches": self.k_niches,
            "n_niches_found": self.n_niches_found,
            "random_seed": self.random_seed,
            "inertia": float(self.inertia),
            "n_iter": int(self.n_iter),
            "converged": bool(self.converged),
            "standardized": self.standardized,
            "cells_per_niche": {str(k): int(v) for k, v in self.labels.value_counts().sort_index().items()},
        }


def as_composition_frame(compositions) -> pd.DataFrame:
    """
    Coerce compositions to a numeric DataFrame and check its shape.

    Parameters
    ----------
    compositions : pd.DataFrame, np.ndarray or mapping
        Composition vectors, one per cell. A mapping goes from cell key to
        vector; every vector must have the same length.

    Returns
    -------
    pd.DataFrame
        Float dataframe with rows=cells.
    """
    if isinstance(compositions, pd.DataFrame):
        composition_df = compositions
    elif isinstance(compositions, Mapping):
        lengths = {len(np.atleast_1d(v)) for v in compositions.values()}
        if len(lengths) > 1:
            raise DimensionMismatchError(
                f"Composition vectors have differing lengths: {sorted(lengths)}"
            )
        composition_df = pd.DataFrame.from_dict(
            {k: np.atleast_1d(v) for k, v in compositions.items()}, orient="index"
        )
    else:
        values = np.asarray(compositions, dtype=float)
        if values.ndim != 2:
            raise DimensionMismatchError(
                f"Compositions must be 2D (cells x labels), got {values.ndim}D"
            )
        composition_df = pd.DataFrame(values)

    if composition_df.shape[0] == 0:
        raise NicheInputError("No composition vectors provided")
    if composition_df.shape[1] == 0:
        raise DimensionMismatchError("Composition vectors have zero dimensions")

    try:
        composition_df = composition_df.astype(float)
    except (TypeError, ValueError) as e:
        raise NicheInputError(f"Composition vectors must be numeric: {e}") from e

    if not np.all(np.isfinite(composition_df.to_numpy())):
        raise NicheInputError("Composition vectors contain NaN or infinite values")

    return composition_df


def _is_fixed_point(clusterer: KMeans, X: np.ndarray, tol: float) -> bool:
    """Check whether a fitted k-means run is stable under one more iteration."""
    labels = clusterer.labels_
    if not np.array_equal(clusterer.predict(X), labels):
        return False

    centers = clusterer.cluster_centers_
    recomputed = centers.copy()
    for j in range(centers.shape[0]):
        members = X[labels == j]
        if len(members) > 0:
            recomputed[j] = members.mean(axis=0)

    # Same scaling of tol as scikit-learn's center shift criterion
    shift = float(((recomputed - centers) ** 2).sum())
    return np.allclose(recomputed, centers) or shift <= tol * float(np.mean(np.var(X, axis=0)))


def assign_niches(
    compositions,
    k_niches: int,
    random_seed: int = 42,
    n_init: int = 10,
    max_iter: int = 300,
    tol: float = 1e-4,
    standardize: bool = False,
) -> NicheAssignment:
    """
    Cluster composition vectors into ``k_niches`` niches with k-means.

    Parameters
    ----------
    compositions : pd.DataFrame, np.ndarray or mapping
        Composition vectors, one per cell.
    k_niches : int
        Number of niches. Must not exceed the number of cells.
    random_seed : int
        Seed for centroid initialization. Same inputs and seed give the same
        partition.
    n_init : int
        Number of initializations; the run with lowest inertia is kept.
    max_iter : int
        Iteration budget per run.
    tol : float
        Relative tolerance on centroid movement for convergence.
    standardize : bool
        If True, standardize features before clustering.

    Returns
    -------
    NicheAssignment
        Labels in ``[0, k_niches)`` plus centroids and convergence status.
        If the best run used all ``max_iter`` iterations without reaching a
        fixed point it is still returned, with ``converged=False`` and a
        :class:`NicheConvergenceWarning`.
    """
    composition_df = as_composition_frame(compositions)
    n_cells = composition_df.shape[0]

    if isinstance(k_niches, bool) or not isinstance(k_niches, (int, np.integer)) or k_niches < 1:
        raise NicheInputError(f"k_niches must be a positive integer, got {k_niches!r}")
    if k_niches > n_cells:
        raise InsufficientCellsError(n_cells, k_niches, what="cells to form the requested niches")
    if max_iter < 1 or n_init < 1:
        raise NicheInputError("max_iter and n_init must be >= 1")

    logger.info(
        f"Clustering {n_cells} neighborhoods into {k_niches} niches using kmeans "
        f"(seed={random_seed})"
    )

    X = composition_df.to_numpy()
    scaler = None
    if standardize:
        scaler = StandardScaler()
        X = scaler.fit_transform(X)

    clusterer = KMeans(
        n_clusters=k_niches,
        n_init=n_init,
        max_iter=max_iter,
        tol=tol,
        random_state=random_seed,
    )
    labels = clusterer.fit_predict(X)

    converged = clusterer.n_iter_ < max_iter or _is_fixed_point(clusterer, X, tol)
    if not converged:
        message = (
            f"Niche clustering did not converge within {max_iter} iterations; "
            f"returning the best of {n_init} runs (inertia={clusterer.inertia_:.4g})"
        )
        logger.warning(message)
        warnings.warn(message, NicheConvergenceWarning, stacklevel=2)

    centers = clusterer.cluster_centers_
    if scaler is not None:
        centers = scaler.inverse_transform(centers)

    assignment = NicheAssignment(
        labels=pd.Series(labels.astype(int), index=composition_df.index, name="niche"),
        centroids=pd.DataFrame(centers, columns=composition_df.columns),
        inertia=float(clusterer.inertia_),
        n_iter=int(clusterer.n_iter_),
        converged=bool(converged),
        k_niches=int(k_niches),
        random_seed=random_seed,
        standardized=standardize,
        params={"n_init": n_init, "max_iter": max_iter, "tol": tol},
    )

    if assignment.n_niches_found < k_niches:
        logger.warning(
            f"Only {assignment.n_niches_found} of {k_niches} niches received cells"
        )

    logger.info(f"Identified {assignment.n_niches_found} niche clusters")

    return assignment


def assign_niche_labels(
    adata,
    assignment: NicheAssignment,
    niche_col_name: str = "niches",
):
    """
    Write niche labels to adata.obs as a categorical column.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object.
    assignment : NicheAssignment
        Result of :func:`assign_niches`, indexed by adata.obs_names.
    niche_col_name : str
        Column name for niche labels in adata.obs.

    Returns
    -------
    anndata.AnnData
        Modified AnnData object with niche labels.
    """
    labels = assignment.labels.reindex(adata.obs_names)
    if labels.isna().any():
        raise DimensionMismatchError("Niche labels do not cover every cell in adata")

    categories = [str(i) for i in range(assignment.k_niches)]
    adata.obs[niche_col_name] = pd.Categorical(
        labels.astype(int).astype(str).to_numpy(), categories=categories
    )

    logger.info(f"Assigned niche labels to adata.obs['{niche_col_name}']")

    return adata
