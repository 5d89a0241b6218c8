"""Manifest creation for documenting run parameters and metadata."""

import hashlib
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import anndata

logger = logging.getLogger(__name__)


def compute_file_hash(file_path: str, algorithm: str = "sha256") -> str:
    """
    Compute hash of a file.

    Parameters
    ----------
    file_path : str
        Path to file.
    algorithm : str
        Hash algorithm ('md5', 'sha256').

    Returns
    -------
    str
        Hex digest of file hash.
    """
    hash_func = hashlib.new(algorithm)

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def create_manifest(
    adata: anndata.AnnData,
    input_files: list,
    parameters: Optional[Dict[str, Any]] = None,
    niche_col: str = "niches",
) -> Dict[str, Any]:
    """
    Create a manifest documenting the niche run.

    Parameters
    ----------
    adata : anndata.AnnData
        AnnData object with niche results.
    input_files : list
        List of input file paths.
    parameters : dict, optional
        Niche parameters. Defaults to adata.uns['niche_params'].
    niche_col : str
        Column in adata.obs with niche labels.

    Returns
    -------
    dict
        Manifest dictionary.
    """
    from .. import __version__

    parameters = parameters if parameters is not None else dict(adata.uns.get("niche_params", {}))
    fov_key = parameters.get("fov_key")

    manifest = {
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "input": {
            "files": [],
            "n_cells": adata.n_obs,
        },
        "parameters": parameters,
        "output": {
            "n_niches": int(adata.obs[niche_col].nunique()) if niche_col in adata.obs else None,
            "cells_per_niche": (
                {str(k): int(v) for k, v in adata.obs[niche_col].value_counts().sort_index().items()}
                if niche_col in adata.obs
                else None
            ),
        },
    }

    for file_path in input_files:
        if Path(file_path).exists():
            manifest["input"]["files"].append(
                {
                    "path": str(file_path),
                    "name": Path(file_path).name,
                    "size_bytes": Path(file_path).stat().st_size,
                    "sha256": compute_file_hash(file_path, "sha256"),
                }
            )

    if fov_key and fov_key in adata.obs:
        manifest["fovs"] = {
            "n_fovs": int(adata.obs[fov_key].nunique()),
            "cells_per_fov": {str(k): int(v) for k, v in adata.obs[fov_key].value_counts().items()},
        }

    try:
        import sklearn
        import scipy

        manifest["software"] = {
            "python_version": sys.version,
            "spatial_niches_version": __version__,
            "anndata_version": anndata.__version__,
            "scikit_learn_version": sklearn.__version__,
            "scipy_version": scipy.__version__,
        }
    except ImportError as e:
        logger.warning(f"Could not retrieve software versions: {e}")

    return manifest


def save_manifest(manifest: Dict[str, Any], output_file: str) -> None:
    """
    Save manifest to JSON file.

    Parameters
    ----------
    manifest : dict
        Manifest dictionary.
    output_file : str
        Output JSON file path.
    """
    logger.info(f"Saving manifest to {output_file}")

    with open(output_file, "w") as f:
        json.dump(manifest, f, indent=2, default=str)

    logger.info("Manifest saved")


def add_diagnostics_to_manifest(
    manifest: Dict[str, Any], diagnostics: Dict[str, Any]
) -> Dict[str, Any]:
    """Add neighborhood diagnostics to manifest."""
    manifest["neighborhood_diagnostics"] = diagnostics
    return manifest


def validate_manifest(manifest: Dict[str, Any]) -> tuple[bool, list]:
    """
    Validate manifest structure.

    Parameters
    ----------
    manifest : dict
        Manifest dictionary to validate.

    Returns
    -------
    tuple of (bool, list)
        (is_valid, list of error messages)
    """
    errors = []

    required_keys = ["timestamp", "version", "input", "parameters", "output"]
    for key in required_keys:
        if key not in manifest:
            errors.append(f"Missing required key: {key}")

    if "input" in manifest and "files" not in manifest["input"]:
        errors.append("Missing 'files' in input section")

    if "output" in manifest and "n_niches" not in manifest["output"]:
        errors.append("Missing 'n_niches' in output section")

    is_valid = len(errors) == 0

    return is_valid, errors
