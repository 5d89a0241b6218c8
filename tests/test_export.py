"""Tests for export module."""

import json
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
from anndata import AnnData

from spatial_niches.export import manifest, writers
from spatial_niches.niche import build_niche_assay


def create_test_adata(n_obs=100):
    """Create a test AnnData object with niche results."""
    rng = np.random.default_rng(0)
    obs = pd.DataFrame(
        {
            "fov": ["fov_1"] * (n_obs // 2) + ["fov_2"] * (n_obs // 2),
            "cell_type": rng.choice(["T", "B", "Tumor"], size=n_obs),
        },
        index=[f"cell_{i}" for i in range(n_obs)],
    )
    adata = AnnData(X=np.zeros((n_obs, 0), dtype=np.float32), obs=obs)
    adata.obsm["spatial"] = rng.random((n_obs, 2)) * 1000

    return build_niche_assay(adata, group_by="cell_type", fov_key="fov", neighbors_k=8, niches_k=3)


class TestWriters:
    """Tests for export writers."""

    def test_export_niches(self):
        """Test exporting niche labels to CSV."""
        adata = create_test_adata()

        with tempfile.TemporaryDirectory() as tmpdir:
            output_file = Path(tmpdir) / "niches.csv"

            writers.export_niches(adata, str(output_file), fov_key="fov", group_by="cell_type")

            assert output_file.exists()

            df = pd.read_csv(output_file)
            assert df.columns.tolist() == ["cell_id", "fov", "cell_type", "niches"]
            assert len(df) == adata.n_obs
            assert df["cell_id"].tolist() == adata.obs_names.tolist()

    def test_export_compositions_parquet(self):
        """Test exporting compositions to Parquet."""
        adata = create_test_adata()

        with tempfile.TemporaryDirectory() as tmpdir:
            output_file = Path(tmpdir) / "composition.parquet"

            writers.export_compositions(adata, str(output_file), format="parquet")

            assert output_file.exists()

            df = pd.read_parquet(output_file)
            assert df.columns.tolist() == ["cell_id", "B", "T", "Tumor"]
            assert len(df) == adata.n_obs
            assert (df[["B", "T", "Tumor"]].sum(axis=1) == 8).all()

    def test_export_compositions_csv(self):
        """Test exporting compositions to CSV."""
        adata = create_test_adata()

        with tempfile.TemporaryDirectory() as tmpdir:
            output_file = Path(tmpdir) / "composition.csv"

            writers.export_compositions(adata, str(output_file), format="csv")

            df = pd.read_csv(output_file)
            assert df.shape == (adata.n_obs, 4)

    def test_export_all(self):
        """Test exporting every output to a directory."""
        adata = create_test_adata()

        with tempfile.TemporaryDirectory() as tmpdir:
            exported = writers.export_all(adata, tmpdir, fov_key="fov", group_by="cell_type")

            assert set(exported) == {"niches", "composition", "summary"}
            for path in exported.values():
                assert Path(path).exists()

            summary = pd.read_csv(exported["summary"], index_col=0)
            assert summary.shape[1] == 3


class TestManifest:
    """Tests for manifest creation."""

    def test_create_manifest(self):
        """Test creating manifest."""
        adata = create_test_adata()

        with tempfile.NamedTemporaryFile(suffix=".h5ad", delete=False) as tmp:
            input_file = tmp.name
            tmp.write(b"cells")

        run_manifest = manifest.create_manifest(adata, input_files=[input_file])

        assert "timestamp" in run_manifest
        assert run_manifest["input"]["n_cells"] == adata.n_obs
        assert len(run_manifest["input"]["files"]) == 1
        assert run_manifest["parameters"]["neighbors_k"] == 8
        assert sum(run_manifest["output"]["cells_per_niche"].values()) == adata.n_obs
        assert run_manifest["fovs"]["n_fovs"] == 2

        Path(input_file).unlink()

    def test_save_manifest(self):
        """Test saving manifest to JSON."""
        adata = create_test_adata()
        run_manifest = manifest.create_manifest(adata, input_files=[])

        with tempfile.TemporaryDirectory() as tmpdir:
            output_file = Path(tmpdir) / "manifest.json"

            manifest.save_manifest(run_manifest, str(output_file))

            assert output_file.exists()

            with open(output_file) as f:
                loaded = json.load(f)

            assert loaded["parameters"]["niches_k"] == 3

    def test_validate_manifest(self):
        """Test manifest validation."""
        adata = create_test_adata()
        run_manifest = manifest.create_manifest(adata, input_files=[])

        is_valid, errors = manifest.validate_manifest(run_manifest)
        assert is_valid
        assert len(errors) == 0

        del run_manifest["output"]
        is_valid, errors = manifest.validate_manifest(run_manifest)
        assert not is_valid

    def test_add_diagnostics(self):
        """Test attaching neighborhood diagnostics."""
        run_manifest = {"timestamp": "now"}

        run_manifest = manifest.add_diagnostics_to_manifest(run_manifest, {"n_fovs": 2})

        assert run_manifest["neighborhood_diagnostics"]["n_fovs"] == 2
