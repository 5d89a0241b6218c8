"""
spatial-niches: neighborhood composition and niche assignment for spatial single-cell data.

This package provides tools to:
- Load cell tables or H5AD files and detect coordinate / label columns
- Compute per-cell neighborhood composition within each field of view
- Cluster composition vectors into niches
- Summarize, plot and export niche assignments
"""

__version__ = "0.1.0"

from . import io, spatial, niche, export, viz
from .errors import (
    DimensionMismatchError,
    EmptyLabelSetError,
    InsufficientCellsError,
    NicheConvergenceWarning,
    NicheError,
    NicheInputError,
)
from .niche import assign_niches, build_niche_assay, compute_compositions

__all__ = [
    "io",
    "spatial",
    "niche",
    "export",
    "viz",
    "compute_compositions",
    "assign_niches",
    "build_niche_assay",
    "NicheError",
    "NicheInputError",
    "InsufficientCellsError",
    "EmptyLabelSetError",
    "DimensionMismatchError",
    "NicheConvergenceWarning",
    "__version__",
]
