"""Plots of niche assignments."""

import logging
from typing import Optional

import anndata
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from ..niche.composition import composition_from_adata
from ..niche.summaries import summarize_niche_composition

logger = logging.getLogger(__name__)


def plot_spatial_niches(
    adata: anndata.AnnData,
    niche_col: str = "niches",
    spatial_key: str = "spatial",
    fov_key: Optional[str] = None,
    fov: Optional[str] = None,
    size: float = 4,
    opacity: float = 0.8,
    title: Optional[str] = None,
    width: int = 800,
    height: int = 600,
) -> go.Figure:
    """
    Create a spatial scatter plot colored by niche.

    Coordinates of different fields of view are not aligned, so pass
    ``fov`` to plot a single frame.

    Parameters
    ----------
    adata : anndata.AnnData
        Input AnnData object with niche labels.
    niche_col : str
        Column in adata.obs with niche labels.
    spatial_key : str
        Key in adata.obsm for spatial coordinates.
    fov_key : str, optional
        Column in adata.obs with the field of view.
    fov : str, optional
        Field of view to plot. Requires ``fov_key``.
    size : float
        Marker size in pixels.
    opacity : float
        Marker opacity.
    title : str, optional
        Plot title.
    width : int
        Figure width in pixels.
    height : int
        Figure height in pixels.

    Returns
    -------
    plotly.graph_objects.Figure
        Plotly figure object.
    """
    if spatial_key not in adata.obsm:
        raise ValueError(f"Spatial key '{spatial_key}' not found in adata.obsm")
    if niche_col not in adata.obs.columns:
        raise ValueError(f"Niche column '{niche_col}' not found in adata.obs")

    coords = adata.obsm[spatial_key]
    plot_data = pd.DataFrame(
        {
            "x": coords[:, 0],
            "y": coords[:, 1],
            niche_col: adata.obs[niche_col].astype(str).to_numpy(),
        },
        index=adata.obs_names,
    )

    if fov is not None:
        if not fov_key or fov_key not in adata.obs.columns:
            raise ValueError("Plotting a single fov requires a valid fov_key")
        plot_data = plot_data[adata.obs[fov_key].astype(str).to_numpy() == str(fov)]
        if plot_data.empty:
            raise ValueError(f"No cells found in fov '{fov}'")

    categories = sorted(plot_data[niche_col].unique(), key=lambda v: (len(v), v))

    fig = px.scatter(
        plot_data,
        x="x",
        y="y",
        color=niche_col,
        category_orders={niche_col: categories},
        color_discrete_sequence=px.colors.qualitative.Set1,
        opacity=opacity,
        title=title or (f"Niches: fov {fov}" if fov is not None else "Niches"),
    )
    fig.update_traces(marker=dict(size=size))

    fig.update_layout(
        width=width,
        height=height,
        xaxis_title="X",
        yaxis_title="Y",
        plot_bgcolor="white",
        xaxis=dict(showgrid=True, gridcolor="lightgray"),
        yaxis=dict(showgrid=True, gridcolor="lightgray", scaleanchor="x", scaleratio=1),
        dragmode="zoom",
    )

    return fig


def plot_niche_composition(
    adata: anndata.AnnData,
    niche_col: str = "niches",
    obsm_key: str = "niche_composition",
    title: str = "Mean neighborhood composition per niche",
    width: int = 800,
    height: int = 500,
) -> go.Figure:
    """
    Heatmap of mean neighborhood composition for each niche.

    Parameters
    ----------
    adata : anndata.AnnData
        AnnData object with niche labels and compositions.
    niche_col : str
        Column in adata.obs with niche labels.
    obsm_key : str
        Key in adata.obsm with composition vectors.
    title : str
        Plot title.
    width : int
        Figure width.
    height : int
        Figure height.

    Returns
    -------
    plotly.graph_objects.Figure
        Plotly figure object.
    """
    composition_df = composition_from_adata(adata, obsm_key=obsm_key)
    summary = summarize_niche_composition(adata, composition_df, niche_col=niche_col)

    fig = px.imshow(
        summary.to_numpy(),
        x=[str(c) for c in summary.columns],
        y=[str(i) for i in summary.index],
        color_continuous_scale="viridis",
        aspect="auto",
        labels=dict(x="Group", y="Niche", color="Mean count"),
        title=title,
    )
    fig.update_layout(width=width, height=height)

    return fig
