"""Writers for niche results."""

import logging
from pathlib import Path
from typing import Dict, Literal, Optional

import anndata
import pandas as pd

from ..niche.composition import composition_from_adata
from ..niche.summaries import summarize_niche_composition

logger = logging.getLogger(__name__)


def export_niches(
    adata: anndata.AnnData,
    output_file: str,
    niche_col: str = "niches",
    fov_key: Optional[str] = None,
    group_by: Optional[str] = None,
) -> None:
    """
    Export niche assignments to CSV.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object with niche labels.
    output_file : str
        Output CSV file path.
    niche_col : str
        Column containing niche labels.
    fov_key : str, optional
        Field of view column to include.
    group_by : str, optional
        Group label column to include.
    """
    if niche_col not in adata.obs.columns:
        raise ValueError(f"Niche column '{niche_col}' not found in adata.obs")

    logger.info(f"Exporting niche assignments to {output_file}")

    export_df = pd.DataFrame({"cell_id": adata.obs_names.astype(str)})
    for col in (fov_key, group_by):
        if col and col in adata.obs.columns:
            export_df[col] = adata.obs[col].astype(str).to_numpy()
    export_df[niche_col] = adata.obs[niche_col].astype(str).to_numpy()

    export_df.to_csv(output_file, index=False)

    logger.info(f"Exported {len(export_df)} cells with niche labels")


def export_compositions(
    adata: anndata.AnnData,
    output_file: str,
    obsm_key: str = "niche_composition",
    format: Literal["parquet", "csv"] = "parquet",
) -> None:
    """
    Export neighborhood composition vectors.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object with composition in obsm[obsm_key].
    output_file : str
        Output file path.
    obsm_key : str
        Key in adata.obsm.
    format : {'parquet', 'csv'}
        Output format.
    """
    composition_df = composition_from_adata(adata, obsm_key=obsm_key)
    composition_df.insert(0, "cell_id", composition_df.index.astype(str))
    composition_df = composition_df.reset_index(drop=True)

    logger.info(f"Exporting {composition_df.shape[1] - 1} composition columns to {output_file}")

    if format == "parquet":
        composition_df.to_parquet(output_file, index=False)
    elif format == "csv":
        composition_df.to_csv(output_file, index=False)
    else:
        raise ValueError(f"Unknown format: {format}")


def export_all(
    adata: anndata.AnnData,
    output_dir: str,
    niche_col: str = "niches",
    obsm_key: str = "niche_composition",
    fov_key: Optional[str] = None,
    group_by: Optional[str] = None,
    composition_format: Literal["parquet", "csv"] = "parquet",
) -> Dict[str, str]:
    """
    Export niche labels, compositions and per-niche summary to a directory.

    Returns
    -------
    dict
        Mapping of output name to written path.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    exported = {}

    niches_file = out / "niches.csv"
    export_niches(adata, str(niches_file), niche_col=niche_col, fov_key=fov_key, group_by=group_by)
    exported["niches"] = str(niches_file)

    if obsm_key in adata.obsm:
        composition_file = out / f"niche_composition.{composition_format}"
        export_compositions(adata, str(composition_file), obsm_key=obsm_key, format=composition_format)
        exported["composition"] = str(composition_file)

        summary_file = out / "niche_summary.csv"
        summary = summarize_niche_composition(
            adata, composition_from_adata(adata, obsm_key=obsm_key), niche_col=niche_col
        )
        summary.to_csv(summary_file)
        exported["summary"] = str(summary_file)

    logger.info(f"Exported {len(exported)} files to {output_dir}")

    return exported
