"""Tests for niche parameters."""

import json

from spatial_niches.config import (
    NicheParameters,
    load_parameters,
    save_parameters,
    validate_parameters,
)


class TestNicheParameters:
    """Tests for NicheParameters."""

    def test_defaults_are_valid(self):
        """Test that default parameters pass validation."""
        params = NicheParameters()

        is_valid, errors = validate_parameters(params)

        assert is_valid
        assert errors == []
        assert params.neighbors_k == 30
        assert params.include_self is False

    def test_invalid_parameters(self):
        """Test that invalid values are reported."""
        params = NicheParameters(neighbors_k=0, niches_k=-1, n_jobs=0)

        is_valid, errors = validate_parameters(params)

        assert not is_valid
        assert len(errors) == 3

    def test_from_dict_ignores_unknown(self):
        """Test that unknown keys are dropped."""
        params = NicheParameters.from_dict({"neighbors_k": 12, "not_a_param": 1})

        assert params.neighbors_k == 12
        assert not hasattr(params, "not_a_param")

    def test_update_skips_none(self):
        """Test that None overrides keep existing values."""
        params = NicheParameters(neighbors_k=12)

        updated = params.update(neighbors_k=None, niches_k=6)

        assert updated.neighbors_k == 12
        assert updated.niches_k == 6
        assert params.niches_k == 4

    def test_save_and_load(self, tmp_path):
        """Test JSON persistence."""
        path = tmp_path / "params.json"
        params = NicheParameters(group_by="cell_type", neighbors_k=15, standardize=True)

        save_parameters(params, path)
        loaded = load_parameters(path)

        assert loaded == params
        with open(path) as f:
            assert json.load(f)["group_by"] == "cell_type"
