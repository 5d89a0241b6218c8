"""Command-line interface for spatial-niches."""

import json
import logging
import sys
from pathlib import Path

import click

from . import __version__, export, io, niche, spatial
from .config import NicheParameters, load_parameters
from .errors import NicheError


# Configure logging
def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _default_output(input_file: str, suffix: str) -> str:
    path = Path(input_file)
    stem = path.name.split(".")[0]
    return str(path.with_name(f"{stem}{suffix}"))


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def main(verbose):
    """spatial-niches: neighborhood composition and niche assignment for spatial data."""
    setup_logging(verbose)


@main.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option("--group-by", help="Column with group labels [default: auto-detect]")
@click.option("--fov", "fov_key", help="Column with field of view [default: auto-detect]")
@click.option("--neighbors-k", type=int, default=30, help="Number of neighbors [default: 30]")
def validate(input_file, group_by, fov_key, neighbors_k):
    """
    Validate cells for niche analysis.

    INPUT_FILE: Path to H5AD, CSV or Parquet file
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Validating {input_file}")

    adata = io.load_cells(input_file)
    mappings = io.detect_mappings(adata.obs, list(adata.obsm.keys()))
    group_by = group_by or mappings["group_col"]
    fov_key = fov_key or mappings["fov_col"]

    is_valid, messages = io.validate_niche_inputs(
        adata, group_by=group_by, fov_key=fov_key, neighbors_k=neighbors_k
    )

    click.echo("\n=== Validation Results ===")
    click.echo(f"Status: {'PASSED' if is_valid else 'FAILED'}")
    click.echo("\nMessages:")
    for msg in messages:
        click.echo(f"  {msg}")

    click.echo("\n=== Detected Mappings ===")
    for key, value in mappings.items():
        click.echo(f"  {key}: {value}")

    sys.exit(0 if is_valid else 1)


@main.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), help="Output H5AD file")
@click.option("--config", "config_file", type=click.Path(exists=True), help="JSON parameter file")
@click.option("--group-by", help="Column with group labels [default: auto-detect]")
@click.option("--fov", "fov_key", help="Column with field of view [default: auto-detect]")
@click.option("--neighbors-k", type=int, help="Number of neighbors [default: 30]")
@click.option("--niches-k", type=int, help="Number of niches [default: 4]")
@click.option("--random-state", type=int, help="Random seed [default: 42]")
@click.option("--include-self/--exclude-self", default=None, help="Count the focal cell in its neighborhood")
@click.option("--normalize/--counts", default=None, help="Store fractions instead of counts")
@click.option("--standardize/--no-standardize", default=None, help="Standardize features before clustering")
@click.option("--n-jobs", type=int, help="Fields of view processed in parallel")
def build(
    input_file,
    output,
    config_file,
    group_by,
    fov_key,
    neighbors_k,
    niches_k,
    random_state,
    include_self,
    normalize,
    standardize,
    n_jobs,
):
    """
    Compute neighborhood compositions and assign niches.

    INPUT_FILE: Path to H5AD, CSV or Parquet file
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Building niche assay for {input_file}")

    params = load_parameters(config_file) if config_file else NicheParameters()
    params = params.update(
        group_by=group_by,
        fov_key=fov_key,
        neighbors_k=neighbors_k,
        niches_k=niches_k,
        random_state=random_state,
        include_self=include_self,
        normalize=normalize,
        standardize=standardize,
        n_jobs=n_jobs,
    )

    adata = io.load_cells(input_file, spatial_key=params.spatial_key)

    mappings = io.detect_mappings(adata.obs, list(adata.obsm.keys()))
    if params.group_by is None:
        params.group_by = mappings["group_col"]
    if params.fov_key is None:
        params.fov_key = mappings["fov_col"]
    if params.group_by is None:
        click.echo("ERROR: No group label column found; pass --group-by", err=True)
        sys.exit(1)

    try:
        adata = niche.build_niche_assay(
            adata,
            group_by=params.group_by,
            fov_key=params.fov_key,
            spatial_key=params.spatial_key,
            neighbors_k=params.neighbors_k,
            niches_k=params.niches_k,
            random_state=params.random_state,
            include_self=params.include_self,
            normalize=params.normalize,
            standardize=params.standardize,
            n_init=params.n_init,
            max_iter=params.max_iter,
            tol=params.tol,
            n_jobs=params.n_jobs,
        )
    except NicheError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    output_file = output or _default_output(input_file, "_niches.h5ad")
    logger.info(f"Saving to {output_file}")
    adata.write_h5ad(output_file)

    result = adata.uns["niche_params"]["result"]
    click.echo(f"Niche assay complete: {output_file}")
    click.echo(f"Assigned {result['n_niches_found']} niches (converged: {result['converged']})")


@main.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), help="Output JSON file")
@click.option("--niche-col", default="niches", help="Column with niche labels")
def summarize(input_file, output, niche_col):
    """
    Summarize niche sizes, per-FOV counts and neighborhood diagnostics.

    INPUT_FILE: Path to H5AD file produced by 'build'
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Summarizing {input_file}")

    adata = io.load_h5ad(input_file)
    params = dict(adata.uns.get("niche_params", {}))
    fov_key = params.get("fov_key")
    group_by = params.get("group_by")

    if niche_col not in adata.obs.columns:
        click.echo(f"ERROR: Niche column '{niche_col}' not found; run 'build' first", err=True)
        sys.exit(1)

    summary = {
        "data": io.summarize_adata(adata, fov_key=fov_key),
        "niches": {
            str(k): int(v) for k, v in adata.obs[niche_col].value_counts().sort_index().items()
        },
        "parameters": params,
    }

    if fov_key:
        counts = niche.niche_counts_by_fov(adata, niche_col=niche_col, fov_key=fov_key)
        summary["niches_by_fov"] = {
            str(fov): {str(k): int(v) for k, v in row.items()} for fov, row in counts.iterrows()
        }

    if "neighbors_k" in params and params.get("spatial_key", "spatial") in adata.obsm:
        fovs = adata.obs[fov_key].astype(str).to_numpy() if fov_key else None
        summary["neighborhood_diagnostics"] = spatial.neighbor_distance_diagnostics(
            adata.obsm[params.get("spatial_key", "spatial")], int(params["neighbors_k"]), fovs=fovs
        )

    if group_by and group_by in adata.obs.columns:
        enrichment = niche.compute_niche_enrichment(adata, niche_col=niche_col, group_by=group_by)
        summary["enrichment"] = {
            str(n): {str(g): float(v) for g, v in row.items()} for n, row in enrichment.iterrows()
        }

    output_file = output or _default_output(input_file, "_summary.json")
    with open(output_file, "w") as f:
        json.dump(summary, f, indent=2, default=str)

    logger.info(f"Summary saved to {output_file}")
    click.echo(f"Summary: {output_file}")


@main.command("export")
@click.argument("input_file", type=click.Path(exists=True))
@click.option("--output-dir", "-o", type=click.Path(), required=True, help="Output directory")
@click.option("--composition-format", type=click.Choice(["parquet", "csv"]), default="parquet")
@click.option("--niche-col", default="niches", help="Column with niche labels")
def export_cmd(input_file, output_dir, composition_format, niche_col):
    """
    Export niche labels, compositions and a run manifest.

    INPUT_FILE: Path to H5AD file produced by 'build'
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Exporting {input_file} to {output_dir}")

    adata = io.load_h5ad(input_file)
    params = dict(adata.uns.get("niche_params", {}))

    if niche_col not in adata.obs.columns:
        click.echo(f"ERROR: Niche column '{niche_col}' not found; run 'build' first", err=True)
        sys.exit(1)

    exported = export.export_all(
        adata,
        output_dir=output_dir,
        niche_col=niche_col,
        obsm_key=params.get("obsm_key", "niche_composition"),
        fov_key=params.get("fov_key"),
        group_by=params.get("group_by"),
        composition_format=composition_format,
    )

    manifest = export.create_manifest(
        adata, input_files=[input_file], parameters=params, niche_col=niche_col
    )

    spatial_key = params.get("spatial_key", "spatial")
    if "neighbors_k" in params and spatial_key in adata.obsm:
        fov_key = params.get("fov_key")
        fovs = adata.obs[fov_key].astype(str).to_numpy() if fov_key else None
        diagnostics = spatial.neighbor_distance_diagnostics(
            adata.obsm[spatial_key], int(params["neighbors_k"]), fovs=fovs
        )
        manifest = export.add_diagnostics_to_manifest(manifest, diagnostics)

    manifest_file = Path(output_dir) / "run_manifest.json"
    export.save_manifest(manifest, str(manifest_file))

    click.echo("\n=== Exported Files ===")
    for key, path in exported.items():
        click.echo(f"  {key}: {path}")
    click.echo(f"  manifest: {manifest_file}")


if __name__ == "__main__":
    main()
