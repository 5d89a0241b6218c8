"""Tests for the command-line interface."""

import json

import anndata
import numpy as np
import pandas as pd
import pytest
from click.testing import CliRunner

from spatial_niches.cli import main
from spatial_niches.niche import clustering


@pytest.fixture
def cells_csv(tmp_path):
    """Write a small cell table with two fields of view."""
    rng = np.random.default_rng(0)
    n_obs = 80
    df = pd.DataFrame(
        {
            "cell_id": [f"cell_{i}" for i in range(n_obs)],
            "x": rng.random(n_obs) * 100,
            "y": rng.random(n_obs) * 100,
            "fov": ["fov_1"] * 40 + ["fov_2"] * 40,
            "cell_type": rng.choice(["T", "B", "Tumor"], size=n_obs),
        }
    )
    path = tmp_path / "cells.csv"
    df.to_csv(path, index=False)
    return path


@pytest.fixture
def runner():
    return CliRunner()


class TestCli:
    """Tests for CLI commands."""

    def test_validate(self, runner, cells_csv):
        """Test validating a cell table."""
        result = runner.invoke(main, ["validate", str(cells_csv), "--neighbors-k", "10"])

        assert result.exit_code == 0
        assert "PASSED" in result.output
        assert "group_col: cell_type" in result.output

    def test_validate_fails_for_large_k(self, runner, cells_csv):
        """Test that validation fails when a fov is too small."""
        result = runner.invoke(main, ["validate", str(cells_csv), "--neighbors-k", "40"])

        assert result.exit_code == 1
        assert "FAILED" in result.output

    def test_build(self, runner, cells_csv, tmp_path):
        """Test building a niche assay from a cell table."""
        output = tmp_path / "niches.h5ad"

        result = runner.invoke(
            main,
            ["build", str(cells_csv), "-o", str(output), "--neighbors-k", "5", "--niches-k", "2"],
        )

        assert result.exit_code == 0, result.output
        adata = anndata.read_h5ad(output)
        assert adata.obsm["niche_composition"].shape == (80, 3)
        assert set(adata.obs["niches"].astype(str)) <= {"0", "1"}
        assert adata.uns["niche_params"]["group_by"] == "cell_type"
        assert adata.uns["niche_params"]["fov_key"] == "fov"

    def test_build_with_config(self, runner, cells_csv, tmp_path):
        """Test that command-line options override the config file."""
        config = tmp_path / "params.json"
        config.write_text(json.dumps({"neighbors_k": 5, "niches_k": 3, "include_self": True}))
        output = tmp_path / "niches.h5ad"

        result = runner.invoke(
            main,
            ["build", str(cells_csv), "--config", str(config), "--niches-k", "2", "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        params = anndata.read_h5ad(output).uns["niche_params"]
        assert params["niches_k"] == 2
        assert params["neighbors_k"] == 5
        assert bool(params["include_self"])

    def test_build_uses_config_tol(self, runner, cells_csv, tmp_path, monkeypatch):
        """Test that the k-means tolerance from the config file reaches clustering."""
        seen = {}
        kmeans = clustering.KMeans

        def recording_kmeans(**kwargs):
            seen.update(kwargs)
            return kmeans(**kwargs)

        monkeypatch.setattr(clustering, "KMeans", recording_kmeans)
        config = tmp_path / "params.json"
        config.write_text(json.dumps({"neighbors_k": 5, "niches_k": 2, "tol": 0.5}))
        output = tmp_path / "niches.h5ad"

        result = runner.invoke(
            main, ["build", str(cells_csv), "--config", str(config), "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert seen["tol"] == 0.5
        assert anndata.read_h5ad(output).uns["niche_params"]["tol"] == 0.5

    def test_build_insufficient_cells(self, runner, cells_csv, tmp_path):
        """Test that a too-large neighborhood exits with an error."""
        result = runner.invoke(
            main, ["build", str(cells_csv), "-o", str(tmp_path / "out.h5ad"), "--neighbors-k", "40"]
        )

        assert result.exit_code == 1
        assert not (tmp_path / "out.h5ad").exists()

    def test_summarize_and_export(self, runner, cells_csv, tmp_path):
        """Test summarizing and exporting a built assay."""
        built = tmp_path / "niches.h5ad"
        result = runner.invoke(
            main, ["build", str(cells_csv), "-o", str(built), "--neighbors-k", "5", "--niches-k", "2"]
        )
        assert result.exit_code == 0, result.output

        summary_file = tmp_path / "summary.json"
        result = runner.invoke(main, ["summarize", str(built), "-o", str(summary_file)])
        assert result.exit_code == 0, result.output

        with open(summary_file) as f:
            summary = json.load(f)
        assert sum(summary["niches"].values()) == 80
        assert set(summary["niches_by_fov"]) == {"fov_1", "fov_2"}
        assert summary["neighborhood_diagnostics"]["n_fovs"] == 2
        assert "enrichment" in summary

        out_dir = tmp_path / "export"
        result = runner.invoke(
            main, ["export", str(built), "-o", str(out_dir), "--composition-format", "csv"]
        )
        assert result.exit_code == 0, result.output
        assert (out_dir / "niches.csv").exists()
        assert (out_dir / "niche_composition.csv").exists()

        with open(out_dir / "run_manifest.json") as f:
            run_manifest = json.load(f)
        assert run_manifest["input"]["n_cells"] == 80
        assert "neighborhood_diagnostics" in run_manifest
