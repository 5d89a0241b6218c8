"""Visualization utilities."""

from .niche_plots import plot_niche_composition, plot_spatial_niches

__all__ = ["plot_niche_composition", "plot_spatial_niches"]
