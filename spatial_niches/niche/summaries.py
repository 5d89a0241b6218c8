"""Summaries of niche assignments."""

import logging

import anndata
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def compute_diversity_metrics(composition_df: pd.DataFrame) -> pd.DataFrame:
    """
    Compute diversity metrics from neighborhood composition.

    Counts are converted to fractions per cell before computing the metrics.

    Parameters
    ----------
    composition_df : pd.DataFrame
        Composition dataframe (counts or fractions).

    Returns
    -------
    pd.DataFrame
        DataFrame with shannon_entropy, simpson_diversity and richness per cell.
    """
    values = composition_df.to_numpy(dtype=float)
    totals = values.sum(axis=1, keepdims=True)
    totals[totals == 0] = 1
    p = values / totals

    with np.errstate(divide="ignore", invalid="ignore"):
        log_p = np.where(p > 0, np.log(p), 0.0)

    diversity_df = pd.DataFrame(index=composition_df.index)
    diversity_df["shannon_entropy"] = -(p * log_p).sum(axis=1)
    diversity_df["simpson_diversity"] = 1 - (p ** 2).sum(axis=1)
    diversity_df["richness"] = (values > 0).sum(axis=1)

    return diversity_df


def summarize_niche_composition(
    adata: anndata.AnnData,
    composition_df: pd.DataFrame,
    niche_col: str = "niches",
) -> pd.DataFrame:
    """
    Summarize mean neighborhood composition for each niche.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object with niche labels.
    composition_df : pd.DataFrame
        Neighborhood composition dataframe indexed by adata.obs_names.
    niche_col : str
        Column in adata.obs containing niche labels.

    Returns
    -------
    pd.DataFrame
        DataFrame with niche × group label mean composition.
    """
    if niche_col not in adata.obs.columns:
        raise ValueError(f"Niche column '{niche_col}' not found in adata.obs")

    logger.info(f"Summarizing composition for niches in '{niche_col}'")

    niche_labels = adata.obs[niche_col].reindex(composition_df.index)
    niche_summary = composition_df.groupby(niche_labels.to_numpy()).mean()
    niche_summary.index.name = niche_col

    return niche_summary.sort_index(axis=1)


def compute_niche_enrichment(
    adata: anndata.AnnData,
    niche_col: str = "niches",
    group_by: str = "cell_type",
) -> pd.DataFrame:
    """
    Compute enrichment of group labels within each niche.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object.
    niche_col : str
        Column containing niche labels.
    group_by : str
        Column containing group labels.

    Returns
    -------
    pd.DataFrame
        DataFrame with enrichment scores, log2((observed + 1) / (expected + 1)).
    """
    if niche_col not in adata.obs.columns:
        raise ValueError(f"Niche column '{niche_col}' not found in adata.obs")
    if group_by not in adata.obs.columns:
        raise ValueError(f"Group column '{group_by}' not found in adata.obs")

    logger.info(f"Computing niche enrichment for '{group_by}'")

    contingency = pd.crosstab(adata.obs[niche_col], adata.obs[group_by])

    niche_totals = contingency.sum(axis=1).to_numpy()[:, np.newaxis]
    group_totals = contingency.sum(axis=0).to_numpy()[np.newaxis, :]
    total = contingency.to_numpy().sum()

    expected = niche_totals * group_totals / total
    enrichment = np.log2((contingency.to_numpy() + 1) / (expected + 1))

    return pd.DataFrame(enrichment, index=contingency.index, columns=contingency.columns)


def niche_counts_by_fov(
    adata: anndata.AnnData,
    niche_col: str = "niches",
    fov_key: str = "fov",
) -> pd.DataFrame:
    """Cells per niche in each field of view (rows=fov, columns=niche)."""
    if niche_col not in adata.obs.columns:
        raise ValueError(f"Niche column '{niche_col}' not found in adata.obs")
    if fov_key not in adata.obs.columns:
        raise ValueError(f"FOV column '{fov_key}' not found in adata.obs")

    return pd.crosstab(adata.obs[fov_key], adata.obs[niche_col])
