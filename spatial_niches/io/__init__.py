"""I/O utilities for loading and validating cell data."""

from .loader import (
    load_h5ad,
    load_cell_table,
    load_cells,
    cells_to_anndata,
    detect_mappings,
    summarize_adata,
)
from .validator import validate_niche_inputs

__all__ = [
    "load_h5ad",
    "load_cell_table",
    "load_cells",
    "cells_to_anndata",
    "detect_mappings",
    "summarize_adata",
    "validate_niche_inputs",
]
