"""Build a niche assay on an AnnData object."""

import logging
from typing import Optional

import anndata
import numpy as np

from ..config import NicheParameters, validate_parameters
from ..errors import NicheInputError
from ..io.validator import validate_niche_inputs
from .clustering import assign_niche_labels, assign_niches
from .composition import add_composition_to_adata, compute_compositions_by_fov

logger = logging.getLogger(__name__)


def build_niche_assay(
    adata: anndata.AnnData,
    group_by: str,
    fov_key: Optional[str] = None,
    spatial_key: str = "spatial",
    neighbors_k: int = 30,
    niches_k: int = 4,
    random_state: int = 42,
    include_self: bool = False,
    normalize: bool = False,
    standardize: bool = False,
    n_init: int = 10,
    max_iter: int = 300,
    tol: float = 1e-4,
    n_jobs: int = 1,
    obsm_key: str = "niche_composition",
    niche_col: str = "niches",
) -> anndata.AnnData:
    """
    Compute neighborhood compositions and niche labels for every cell.

    Neighbors are searched separately inside each field of view. The label
    universe is shared across fields of view, so all composition vectors are
    clustered together.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object with coordinates in obsm[spatial_key].
    group_by : str
        Column in adata.obs with group labels (e.g. predicted cell type).
    fov_key : str, optional
        Column in adata.obs with the field of view. If None, one frame.
    spatial_key : str
        Key in adata.obsm containing spatial coordinates.
    neighbors_k : int
        Number of spatial neighbors per cell.
    niches_k : int
        Number of niches.
    random_state : int
        Seed for niche clustering.
    include_self : bool
        Count the focal cell as part of its own neighborhood.
    normalize : bool
        Store fractions instead of counts.
    standardize : bool
        Standardize composition features before clustering.
    n_init : int
        Number of k-means initializations.
    max_iter : int
        Iteration budget per k-means run.
    tol : float
        Relative tolerance for k-means convergence.
    n_jobs : int
        Fields of view processed in parallel.
    obsm_key : str
        Key in adata.obsm for the composition matrix.
    niche_col : str
        Column in adata.obs for niche labels.

    Returns
    -------
    anndata.AnnData
        Modified AnnData object with obsm[obsm_key], obs[niche_col] and
        uns['niche_params'].
    """
    params = NicheParameters(
        group_by=group_by,
        fov_key=fov_key,
        spatial_key=spatial_key,
        neighbors_k=neighbors_k,
        niches_k=niches_k,
        random_state=random_state,
        include_self=include_self,
        normalize=normalize,
        standardize=standardize,
        n_init=n_init,
        max_iter=max_iter,
        tol=tol,
        n_jobs=n_jobs,
    )
    is_valid, errors = validate_parameters(params)
    if not is_valid:
        raise NicheInputError("Invalid niche parameters: " + "; ".join(errors))

    is_valid, messages = validate_niche_inputs(
        adata, group_by=group_by, fov_key=fov_key, spatial_key=spatial_key
    )
    if not is_valid:
        raise NicheInputError(
            "Invalid input for niche analysis: "
            + "; ".join(m for m in messages if m.startswith("ERROR"))
        )

    logger.info(
        f"Building niche assay from '{group_by}' for {adata.n_obs} cells "
        f"(neighbors_k={neighbors_k}, niches_k={niches_k})"
    )

    labels = adata.obs[group_by].astype(str).to_numpy()
    fovs = adata.obs[fov_key].astype(str).to_numpy() if fov_key else None
    coords = np.asarray(adata.obsm[spatial_key], dtype=float)

    composition_df = compute_compositions_by_fov(
        coords,
        labels,
        neighbors_k,
        fovs=fovs,
        cell_ids=adata.obs_names,
        include_self=include_self,
        normalize=normalize,
        n_jobs=n_jobs,
    )

    assignment = assign_niches(
        composition_df,
        niches_k,
        random_seed=random_state,
        n_init=n_init,
        max_iter=max_iter,
        tol=tol,
        standardize=standardize,
    )

    adata = add_composition_to_adata(adata, composition_df, obsm_key=obsm_key)
    adata = assign_niche_labels(adata, assignment, niche_col_name=niche_col)

    # h5ad cannot store None inside uns
    adata.uns["niche_params"] = {
        **{k: v for k, v in params.to_dict().items() if v is not None},
        "obsm_key": obsm_key,
        "niche_col": niche_col,
        "result": assignment.summary(),
    }

    return adata
