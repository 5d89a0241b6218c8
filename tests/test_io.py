"""Tests for I/O module."""

import numpy as np
import pandas as pd
import pytest
from anndata import AnnData

from spatial_niches.io import loader, validator


def create_test_table(n_obs=100):
    """Create a minimal per-cell table."""
    rng = np.random.default_rng(0)
    return pd.DataFrame(
        {
            "cell_id": [f"cell_{i}" for i in range(n_obs)],
            "x_slide_mm": rng.random(n_obs) * 10,
            "y_slide_mm": rng.random(n_obs) * 10,
            "fov": ["fov_1"] * (n_obs // 2) + ["fov_2"] * (n_obs - n_obs // 2),
            "cell_type": rng.choice(["T", "B", "Tumor"], size=n_obs),
        }
    )


def create_test_adata(n_obs=100):
    """Create a test AnnData object with spatial coordinates."""
    df = create_test_table(n_obs)
    return loader.cells_to_anndata(df, x_col="x_slide_mm", y_col="y_slide_mm", cell_id_col="cell_id")


class TestLoader:
    """Tests for loader functions."""

    def test_detect_mappings(self):
        """Test automatic mapping detection."""
        df = create_test_table()

        mappings = loader.detect_mappings(df)

        assert mappings["x_col"] == "x_slide_mm"
        assert mappings["y_col"] == "y_slide_mm"
        assert mappings["z_col"] is None
        assert mappings["fov_col"] == "fov"
        assert mappings["group_col"] == "cell_type"
        assert mappings["cell_id_col"] == "cell_id"
        assert mappings["units"] == "mm"

    def test_detect_spatial_key(self):
        """Test detection of coordinates stored in obsm."""
        mappings = loader.detect_mappings(pd.DataFrame(index=["a"]), obsm_keys=["X_umap", "spatial"])

        assert mappings["spatial_key"] == "spatial"
        assert mappings["x_col"] is None

    def test_cells_to_anndata(self):
        """Test building AnnData from a cell table."""
        adata = create_test_adata(50)

        assert adata.n_obs == 50
        assert adata.n_vars == 0
        assert adata.obs_names[0] == "cell_0"
        assert adata.obsm["spatial"].shape == (50, 2)
        assert "cell_type" in adata.obs.columns

    def test_cells_to_anndata_missing_column(self):
        """Test error on missing coordinate column."""
        with pytest.raises(ValueError):
            loader.cells_to_anndata(create_test_table(), x_col="x_slide_mm", y_col="nope")

    def test_load_cells_csv(self, tmp_path):
        """Test loading and auto-mapping a CSV cell table."""
        path = tmp_path / "cells.csv"
        create_test_table(30).to_csv(path, index=False)

        adata = loader.load_cells(str(path))

        assert adata.n_obs == 30
        assert adata.obsm["spatial"].shape == (30, 2)
        assert adata.obs_names[-1] == "cell_29"

    def test_load_cells_h5ad(self, tmp_path):
        """Test loading an H5AD file without obsm coordinates."""
        df = create_test_table(20).set_index("cell_id")
        adata = AnnData(X=np.zeros((20, 0), dtype=np.float32), obs=df)
        path = tmp_path / "cells.h5ad"
        adata.write_h5ad(path)

        loaded = loader.load_cells(str(path))

        np.testing.assert_allclose(
            loaded.obsm["spatial"], df[["x_slide_mm", "y_slide_mm"]].to_numpy()
        )

    def test_load_cell_table_unsupported(self, tmp_path):
        """Test error on unknown table format."""
        path = tmp_path / "cells.xlsx"
        path.write_text("")

        with pytest.raises(ValueError):
            loader.load_cell_table(str(path))

    def test_summarize_adata(self):
        """Test AnnData summarization."""
        adata = create_test_adata(100)

        summary = loader.summarize_adata(adata, fov_key="fov")

        assert summary["n_obs"] == 100
        assert summary["n_fovs"] == 2
        assert summary["cells_per_fov"] == {"fov_1": 50, "fov_2": 50}
        assert "spatial" in summary["obsm_keys"]


class TestValidator:
    """Tests for validator functions."""

    def test_validate_valid(self):
        """Test validation of valid input."""
        adata = create_test_adata()

        is_valid, messages = validator.validate_niche_inputs(
            adata, group_by="cell_type", fov_key="fov", neighbors_k=10
        )

        assert is_valid
        assert len(messages) == 0

    def test_validate_no_spatial(self):
        """Test validation without spatial coordinates."""
        adata = create_test_adata()
        del adata.obsm["spatial"]

        is_valid, messages = validator.validate_niche_inputs(adata, group_by="cell_type")

        assert not is_valid
        assert any("spatial" in msg.lower() for msg in messages)

    def test_validate_missing_group(self):
        """Test validation with a missing group column."""
        adata = create_test_adata()

        is_valid, messages = validator.validate_niche_inputs(adata, group_by="cluster")

        assert not is_valid
        assert any("cluster" in msg for msg in messages)

    def test_validate_missing_labels(self):
        """Test validation with unlabeled cells."""
        adata = create_test_adata()
        adata.obs.loc[adata.obs_names[0], "cell_type"] = np.nan

        is_valid, messages = validator.validate_niche_inputs(adata, group_by="cell_type")

        assert not is_valid

    def test_validate_small_fov(self):
        """Test validation of fov size against neighbors_k."""
        adata = create_test_adata(20)

        is_valid, messages = validator.validate_niche_inputs(
            adata, group_by="cell_type", fov_key="fov", neighbors_k=10
        )

        assert not is_valid
        assert sum("fov_" in msg for msg in messages) == 2

    def test_validate_without_fov_warns(self):
        """Test that a missing fov column is only a warning."""
        adata = create_test_adata()

        is_valid, messages = validator.validate_niche_inputs(adata, group_by="cell_type")

        assert is_valid
        assert any(msg.startswith("WARNING") for msg in messages)
