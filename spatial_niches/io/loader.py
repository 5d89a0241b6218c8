"""Loaders for cell tables and H5AD files with automatic mapping detection."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import anndata
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

X_CANDIDATES = [
    "x_slide_mm",
    "x_centroid",
    "x_location",
    "center_x",
    "CenterX_global_px",
    "x_global_px",
    "x_FOV_px",
    "x",
    "X",
]
Y_CANDIDATES = [
    "y_slide_mm",
    "y_centroid",
    "y_location",
    "center_y",
    "CenterY_global_px",
    "y_global_px",
    "y_FOV_px",
    "y",
    "Y",
]
Z_CANDIDATES = ["z_centroid", "z_location", "center_z", "z", "Z"]
FOV_CANDIDATES = ["fov", "FOV", "field_of_view", "fov_id", "region", "SampleID", "sample_id"]
GROUP_CANDIDATES = [
    "predicted.celltype",
    "predicted_celltype",
    "cell_type",
    "celltype",
    "CellType",
    "cell_label",
    "cluster",
]
CELL_ID_CANDIDATES = ["cell_id", "cell", "cell_ID", "CellID", "EntityID"]


def _first_present(candidates: List[str], columns: List[str]) -> Optional[str]:
    for col in candidates:
        if col in columns:
            return col
    return None


def load_h5ad(file_path: str) -> anndata.AnnData:
    """
    Load an H5AD file.

    Parameters
    ----------
    file_path : str
        Path to H5AD file.

    Returns
    -------
    anndata.AnnData
        Loaded AnnData object.
    """
    logger.info(f"Loading H5AD file: {file_path}")
    adata = anndata.read_h5ad(file_path)
    logger.info(f"Loaded {adata.n_obs} cells × {adata.n_vars} features from {file_path}")
    return adata


def load_cell_table(file_path: str) -> pd.DataFrame:
    """
    Load a per-cell metadata table from CSV or Parquet.

    Parameters
    ----------
    file_path : str
        Path to a .csv, .csv.gz, .tsv or .parquet file.

    Returns
    -------
    pd.DataFrame
        One row per cell.
    """
    path = Path(file_path)
    suffixes = "".join(path.suffixes).lower()

    logger.info(f"Loading cell table: {file_path}")
    if suffixes.endswith(".parquet"):
        df = pd.read_parquet(path)
    elif suffixes.endswith((".tsv", ".tsv.gz")):
        df = pd.read_csv(path, sep="\t")
    elif suffixes.endswith((".csv", ".csv.gz")):
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported cell table format: {path.name}")

    logger.info(f"Loaded {len(df)} cells with {df.shape[1]} columns from {file_path}")
    return df


def detect_mappings(obs: pd.DataFrame, obsm_keys: Optional[List[str]] = None) -> Dict[str, Optional[str]]:
    """
    Auto-detect column mappings for coordinates, field of view and group labels.

    Parameters
    ----------
    obs : pd.DataFrame
        Per-cell metadata (a cell table or adata.obs).
    obsm_keys : list of str, optional
        Keys of adata.obsm, searched for spatial coordinates.

    Returns
    -------
    dict
        Dictionary with detected mappings:
        - 'x_col', 'y_col', 'z_col': coordinate columns
        - 'fov_col': field of view column
        - 'group_col': group label column
        - 'cell_id_col': cell id column
        - 'spatial_key': key in obsm for spatial coords
        - 'units': coordinate units ('mm', 'px' or 'unknown')
    """
    columns = obs.columns.tolist()
    obsm_keys = obsm_keys or []

    mappings = {
        "x_col": _first_present(X_CANDIDATES, columns),
        "y_col": _first_present(Y_CANDIDATES, columns),
        "z_col": _first_present(Z_CANDIDATES, columns),
        "fov_col": _first_present(FOV_CANDIDATES, columns),
        "group_col": _first_present(GROUP_CANDIDATES, columns),
        "cell_id_col": _first_present(CELL_ID_CANDIDATES, columns),
        "spatial_key": _first_present(["spatial", "X_spatial"], obsm_keys),
        "units": None,
    }

    if mappings["x_col"]:
        if "_mm" in mappings["x_col"]:
            mappings["units"] = "mm"
        elif "_px" in mappings["x_col"]:
            mappings["units"] = "px"
        else:
            mappings["units"] = "unknown"

    for key, value in mappings.items():
        if value is not None and key != "units":
            logger.info(f"Detected {key}: {value}")

    return mappings


def cells_to_anndata(
    df: pd.DataFrame,
    x_col: str,
    y_col: str,
    z_col: Optional[str] = None,
    cell_id_col: Optional[str] = None,
    spatial_key: str = "spatial",
) -> anndata.AnnData:
    """
    Build an AnnData object from a cell table.

    The matrix is empty; all columns go to obs and coordinates to obsm.

    Parameters
    ----------
    df : pd.DataFrame
        Cell table.
    x_col, y_col : str
        Coordinate columns.
    z_col : str, optional
        Third coordinate column for 3D data.
    cell_id_col : str, optional
        Column with unique cell ids. If None, the row number is used.
    spatial_key : str
        Key in adata.obsm for coordinates.

    Returns
    -------
    anndata.AnnData
        AnnData object with coordinates in obsm[spatial_key].
    """
    coord_cols = [x_col, y_col] + ([z_col] if z_col else [])
    missing = [c for c in coord_cols if c not in df.columns]
    if missing:
        raise ValueError(f"Coordinate columns not found in cell table: {missing}")

    obs = df.copy()
    if cell_id_col:
        if cell_id_col not in obs.columns:
            raise ValueError(f"Cell id column '{cell_id_col}' not found in cell table")
        obs.index = obs[cell_id_col].astype(str).to_numpy()
    else:
        obs.index = [str(i) for i in range(len(obs))]
    obs.index.name = None

    adata = anndata.AnnData(X=np.zeros((len(obs), 0), dtype=np.float32), obs=obs)
    adata.obsm[spatial_key] = obs[coord_cols].to_numpy(dtype=float)

    logger.info(f"Created AnnData with {adata.n_obs} cells from cell table")

    return adata


def load_cells(file_path: str, spatial_key: str = "spatial") -> anndata.AnnData:
    """
    Load cells from an H5AD file or a flat cell table.

    For cell tables, coordinate and cell id columns are auto-detected.

    Parameters
    ----------
    file_path : str
        Path to .h5ad, .csv or .parquet file.
    spatial_key : str
        Key in adata.obsm for coordinates.

    Returns
    -------
    anndata.AnnData
        Loaded AnnData object.
    """
    if str(file_path).lower().endswith(".h5ad"):
        adata = load_h5ad(file_path)
        if spatial_key not in adata.obsm:
            mappings = detect_mappings(adata.obs, list(adata.obsm.keys()))
            if mappings["x_col"] and mappings["y_col"]:
                adata.obsm[spatial_key] = adata.obs[
                    [mappings["x_col"], mappings["y_col"]]
                ].to_numpy(dtype=float)
                logger.info(
                    f"Created adata.obsm['{spatial_key}'] from "
                    f"{mappings['x_col']}, {mappings['y_col']}"
                )
        return adata

    df = load_cell_table(file_path)
    mappings = detect_mappings(df)
    if not (mappings["x_col"] and mappings["y_col"]):
        raise ValueError(
            f"Could not detect coordinate columns in {file_path}. "
            f"Expected one of {X_CANDIDATES} and {Y_CANDIDATES}."
        )

    return cells_to_anndata(
        df,
        x_col=mappings["x_col"],
        y_col=mappings["y_col"],
        z_col=mappings["z_col"],
        cell_id_col=mappings["cell_id_col"],
        spatial_key=spatial_key,
    )


def summarize_adata(adata: anndata.AnnData, fov_key: Optional[str] = None) -> Dict:
    """
    Generate a summary of the AnnData object.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object.
    fov_key : str, optional
        Column in adata.obs with the field of view.

    Returns
    -------
    dict
        Summary statistics and metadata.
    """
    summary = {
        "n_obs": adata.n_obs,
        "n_vars": adata.n_vars,
        "obs_columns": adata.obs.columns.tolist(),
        "obsm_keys": list(adata.obsm.keys()),
        "uns_keys": list(adata.uns.keys()) if adata.uns else [],
    }

    if fov_key and fov_key in adata.obs.columns:
        summary["n_fovs"] = int(adata.obs[fov_key].nunique())
        summary["cells_per_fov"] = {
            str(k): int(v) for k, v in adata.obs[fov_key].value_counts().items()
        }

    return summary
