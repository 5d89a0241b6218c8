"""Spatial neighbor utilities."""

from .neighbors import SpatialFrame, knn_indices, partition_frames
from .diagnostics import (
    identify_isolated_cells,
    kth_neighbor_distances,
    neighbor_distance_diagnostics,
)

__all__ = [
    "SpatialFrame",
    "knn_indices",
    "partition_frames",
    "identify_isolated_cells",
    "kth_neighbor_distances",
    "neighbor_distance_diagnostics",
]
