"""Validator for niche analysis inputs."""

import logging
from typing import List, Optional, Tuple

import anndata
import numpy as np

logger = logging.getLogger(__name__)


def validate_niche_inputs(
    adata: anndata.AnnData,
    group_by: Optional[str],
    fov_key: Optional[str] = None,
    spatial_key: str = "spatial",
    neighbors_k: Optional[int] = None,
) -> Tuple[bool, List[str]]:
    """
    Validate that the AnnData object can be used for niche analysis.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object.
    group_by : str
        Column in adata.obs with group labels.
    fov_key : str, optional
        Column in adata.obs with the field of view.
    spatial_key : str
        Key in adata.obsm containing spatial coordinates.
    neighbors_k : int, optional
        If given, check every field of view holds more than this many cells.

    Returns
    -------
    tuple of (bool, list)
        (is_valid, list of warning/error messages)
    """
    messages = []
    is_valid = True

    if adata.n_obs == 0:
        messages.append("ERROR: No cells (observations) in the dataset.")
        is_valid = False

    if not adata.obs.index.is_unique:
        messages.append("ERROR: Cell IDs (obs.index) are not unique.")
        is_valid = False

    # Spatial coordinates
    if spatial_key not in adata.obsm:
        messages.append(f"ERROR: No spatial coordinates found in adata.obsm['{spatial_key}'].")
        is_valid = False
    else:
        coords = np.asarray(adata.obsm[spatial_key])
        if coords.ndim != 2 or coords.shape[1] not in (2, 3):
            messages.append(
                f"ERROR: Spatial coordinates in obsm['{spatial_key}'] should have 2 or 3 columns, "
                f"found shape {coords.shape}."
            )
            is_valid = False
        elif not np.all(np.isfinite(coords.astype(float))):
            messages.append(
                f"ERROR: Spatial coordinates contain NaN or infinite values in obsm['{spatial_key}']."
            )
            is_valid = False

    # Group labels
    if not group_by:
        messages.append("ERROR: No group label column given.")
        is_valid = False
    elif group_by not in adata.obs.columns:
        messages.append(f"ERROR: Group column '{group_by}' not found in adata.obs.")
        is_valid = False
    else:
        n_missing = int(adata.obs[group_by].isna().sum())
        if n_missing > 0:
            messages.append(f"ERROR: {n_missing} cells have no label in '{group_by}'.")
            is_valid = False
        n_groups = adata.obs[group_by].nunique()
        if n_groups == 1:
            messages.append(f"WARNING: Only one group label in '{group_by}'; all niches will be identical.")

    # Fields of view
    fov_sizes = None
    if fov_key:
        if fov_key not in adata.obs.columns:
            messages.append(f"ERROR: FOV column '{fov_key}' not found in adata.obs.")
            is_valid = False
        elif adata.obs[fov_key].isna().any():
            messages.append(f"ERROR: Some cells have no field of view in '{fov_key}'.")
            is_valid = False
        else:
            fov_sizes = adata.obs[fov_key].astype(str).value_counts()
    else:
        messages.append("WARNING: No FOV column given; all cells are treated as one coordinate frame.")

    if neighbors_k is not None and adata.n_obs > 0:
        if fov_sizes is None:
            fov_sizes = {"all": adata.n_obs}
        for fov, n_cells in dict(fov_sizes).items():
            if n_cells <= neighbors_k:
                messages.append(
                    f"ERROR: Field of view '{fov}' has {n_cells} cells; "
                    f"need at least {neighbors_k + 1} for neighbors_k={neighbors_k}."
                )
                is_valid = False

    logger.info(f"Validation completed: {'PASSED' if is_valid else 'FAILED'}")
    for msg in messages:
        if msg.startswith("ERROR"):
            logger.error(msg)
        else:
            logger.warning(msg)

    return is_valid, messages
