"""
Example workflow demonstrating the spatial-niches pipeline.

This script shows how to:
1. Load a cell table and detect mappings
2. Validate inputs
3. Check neighborhood extent per field of view
4. Compute neighborhood compositions and assign niches
5. Summarize and plot niches
6. Export results
"""

import logging
from pathlib import Path

from spatial_niches import export, io, niche, spatial, viz

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    """Run the example workflow."""

    # ==================== 1. Load Data ====================
    logger.info("Step 1: Loading cell table")

    input_file = "data/cells.csv"  # Replace with your file
    adata = io.load_cells(input_file)

    mappings = io.detect_mappings(adata.obs, list(adata.obsm.keys()))
    group_by = mappings["group_col"]
    fov_key = mappings["fov_col"]
    logger.info(f"Using group labels '{group_by}' and fov column '{fov_key}'")

    # ==================== 2. Validate ====================
    logger.info("Step 2: Validating inputs")

    neighbors_k = 20
    is_valid, messages = io.validate_niche_inputs(
        adata, group_by=group_by, fov_key=fov_key, neighbors_k=neighbors_k
    )
    if not is_valid:
        logger.error("Validation failed!")
        for msg in messages:
            logger.error(msg)
        return

    # ==================== 3. Neighborhood Diagnostics ====================
    logger.info("Step 3: Checking neighborhood extent")

    fovs = adata.obs[fov_key].astype(str).to_numpy() if fov_key else None
    diag = spatial.neighbor_distance_diagnostics(adata.obsm["spatial"], neighbors_k, fovs=fovs)
    logger.info(
        f"Median k-th neighbor distance {diag['kth_distance']['median']:.2f}, "
        f"{diag['isolated_cells']} isolated cells"
    )

    # ==================== 4. Build Niche Assay ====================
    logger.info("Step 4: Computing compositions and niches")

    adata = niche.build_niche_assay(
        adata,
        group_by=group_by,
        fov_key=fov_key,
        neighbors_k=neighbors_k,
        niches_k=6,
        random_state=42,
    )

    result = adata.uns["niche_params"]["result"]
    logger.info(f"Assigned {result['n_niches_found']} niches (converged: {result['converged']})")

    # ==================== 5. Summaries & Plots ====================
    logger.info("Step 5: Summarizing niches")

    output_dir = Path("results")
    output_dir.mkdir(parents=True, exist_ok=True)

    enrichment = niche.compute_niche_enrichment(adata, group_by=group_by)
    enrichment.to_csv(output_dir / "niche_enrichment.csv")

    fig = viz.plot_niche_composition(adata)
    fig.write_html(str(output_dir / "niche_composition.html"))

    if fov_key:
        first_fov = str(adata.obs[fov_key].iloc[0])
        fig = viz.plot_spatial_niches(adata, fov_key=fov_key, fov=first_fov)
        fig.write_html(str(output_dir / f"niches_fov_{first_fov}.html"))

    # ==================== 6. Export Results ====================
    logger.info("Step 6: Exporting results")

    export.export_all(
        adata,
        output_dir=str(output_dir),
        fov_key=fov_key,
        group_by=group_by,
        composition_format="parquet",
    )

    manifest = export.create_manifest(adata, input_files=[input_file])
    manifest = export.add_diagnostics_to_manifest(manifest, diag)
    export.save_manifest(manifest, str(output_dir / "run_manifest.json"))

    output_h5ad = output_dir / "niches.h5ad"
    adata.write_h5ad(output_h5ad)

    logger.info("Workflow complete!")
    logger.info(f"Results exported to {output_dir}/")
    logger.info("  - niches.csv: Niche assignments")
    logger.info("  - niche_composition.parquet: Neighborhood compositions")
    logger.info("  - niche_summary.csv: Mean composition per niche")
    logger.info("  - run_manifest.json: Run metadata")


if __name__ == "__main__":
    main()
