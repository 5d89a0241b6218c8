"""Parameter management for niche runs."""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class NicheParameters:
    """Parameters for a niche assay run."""

    # Input columns
    group_by: Optional[str] = None
    fov_key: Optional[str] = None
    spatial_key: str = "spatial"

    # Neighborhood composition
    neighbors_k: int = 30
    include_self: bool = False
    normalize: bool = False

    # Niche clustering
    niches_k: int = 4
    standardize: bool = False
    n_init: int = 10
    max_iter: int = 300
    tol: float = 1e-4

    # Misc
    random_state: int = 42
    n_jobs: int = 1

    def to_dict(self):
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict):
        """Create from dictionary."""
        names = {f.name for f in fields(cls)}
        unknown = set(d) - names
        if unknown:
            logger.warning(f"Ignoring unknown niche parameters: {sorted(unknown)}")
        return cls(**{k: v for k, v in d.items() if k in names})

    def update(self, **overrides) -> "NicheParameters":
        """Return a copy with non-None overrides applied."""
        values = self.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return NicheParameters.from_dict(values)


def validate_parameters(params: NicheParameters) -> tuple[bool, list[str]]:
    """
    Validate parameters.

    Parameters
    ----------
    params : NicheParameters
        Parameters to validate.

    Returns
    -------
    tuple of (bool, list)
        (is_valid, list of error messages)
    """
    errors = []

    if not isinstance(params.neighbors_k, int) or params.neighbors_k < 1:
        errors.append("neighbors_k must be a positive integer")
    if not isinstance(params.niches_k, int) or params.niches_k < 1:
        errors.append("niches_k must be a positive integer")

    if params.n_init < 1:
        errors.append("n_init must be >= 1")
    if params.max_iter < 1:
        errors.append("max_iter must be >= 1")
    if params.tol < 0:
        errors.append("tol must be >= 0")
    if params.n_jobs == 0:
        errors.append("n_jobs must be non-zero (use -1 for all cores)")

    is_valid = len(errors) == 0

    return is_valid, errors


def load_parameters(file_path: Union[str, Path]) -> NicheParameters:
    """
    Load parameters from a JSON file.

    Parameters
    ----------
    file_path : str or Path
        Path to a JSON object whose keys are NicheParameters fields.

    Returns
    -------
    NicheParameters
        Loaded parameters.
    """
    logger.info(f"Loading niche parameters from {file_path}")

    with open(file_path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Parameter file {file_path} must contain a JSON object")

    return NicheParameters.from_dict(data)


def save_parameters(params: NicheParameters, file_path: Union[str, Path]) -> None:
    """Save parameters to a JSON file."""
    with open(file_path, "w") as f:
        json.dump(params.to_dict(), f, indent=2)

    logger.info(f"Saved niche parameters to {file_path}")
