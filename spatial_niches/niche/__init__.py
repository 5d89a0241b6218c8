"""Niche analysis module."""

from .composition import (
    add_composition_to_adata,
    composition_from_adata,
    compute_compositions,
    compute_compositions_by_fov,
    label_universe,
)
from .clustering import NicheAssignment, assign_niche_labels, assign_niches
from .assay import build_niche_assay
from .summaries import (
    compute_diversity_metrics,
    compute_niche_enrichment,
    niche_counts_by_fov,
    summarize_niche_composition,
)

__all__ = [
    "add_composition_to_adata",
    "composition_from_adata",
    "compute_compositions",
    "compute_compositions_by_fov",
    "label_universe",
    "NicheAssignment",
    "assign_niche_labels",
    "assign_niches",
    "build_niche_assay",
    "compute_diversity_metrics",
    "compute_niche_enrichment",
    "niche_counts_by_fov",
    "summarize_niche_composition",
]
