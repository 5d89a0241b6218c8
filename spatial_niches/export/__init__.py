"""Export utilities for niche results."""

from .writers import export_all, export_compositions, export_niches
from .manifest import (
    add_diagnostics_to_manifest,
    create_manifest,
    save_manifest,
    validate_manifest,
)

__all__ = [
    "export_all",
    "export_compositions",
    "export_niches",
    "add_diagnostics_to_manifest",
    "create_manifest",
    "save_manifest",
    "validate_manifest",
]
