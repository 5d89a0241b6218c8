"""Tests for visualization module."""

import numpy as np
import pandas as pd
import pytest
from anndata import AnnData

from spatial_niches.niche import build_niche_assay
from spatial_niches.viz import plot_niche_composition, plot_spatial_niches


def create_test_adata(n_obs=60):
    rng = np.random.default_rng(0)
    obs = pd.DataFrame(
        {
            "fov": ["a"] * (n_obs // 2) + ["b"] * (n_obs // 2),
            "cell_type": rng.choice(["T", "B", "Tumor"], size=n_obs),
        },
        index=[f"cell_{i}" for i in range(n_obs)],
    )
    adata = AnnData(X=np.zeros((n_obs, 0), dtype=np.float32), obs=obs)
    adata.obsm["spatial"] = rng.random((n_obs, 2)) * 100
    return build_niche_assay(adata, group_by="cell_type", fov_key="fov", neighbors_k=5, niches_k=2)


class TestPlots:
    """Tests for niche plots."""

    def test_plot_spatial_niches_single_fov(self):
        """Test plotting one field of view."""
        adata = create_test_adata()

        fig = plot_spatial_niches(adata, fov_key="fov", fov="a")

        assert sum(len(trace.x) for trace in fig.data) == 30

    def test_plot_spatial_niches_unknown_fov(self):
        """Test error for a field of view without cells."""
        adata = create_test_adata()

        with pytest.raises(ValueError):
            plot_spatial_niches(adata, fov_key="fov", fov="missing")

    def test_plot_niche_composition(self):
        """Test composition heatmap dimensions."""
        adata = create_test_adata()

        fig = plot_niche_composition(adata)

        assert np.asarray(fig.data[0].z).shape[1] == 3
