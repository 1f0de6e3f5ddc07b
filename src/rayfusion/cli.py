"""CLI entry point for the rayfusion pipeline.

Usage:
    rayfusion run                        # Run full pipeline
    rayfusion run-step ray_fusion -i '{"views_manifest": "..."}'
    rayfusion info                       # Show pipeline info
    rayfusion fuse --grid-dims 100 100 100 --grid-spacing 0.1 0.1 0.1 \\
        --grid-origin -5 -5 -5 --data-folder data/raw --output out/output.vts
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rayfusion.core.logging import setup_logging

app = typer.Typer(name="rayfusion", help="Multi-view depth map fusion into a ray-potential voxel grid")
console = Console()

DEFAULT_CONFIG = Path("configs/pipeline.yaml")


@app.command()
def run(
    config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path"),
    verbose: bool = typer.Option(False, "--verbose", help="Display debug information"),
) -> None:
    """Run the full pipeline."""
    setup_logging(verbose=verbose)
    from rayfusion.core.pipeline_runner import run_pipeline

    run_pipeline(config)


@app.command()
def run_step(
    step_name: str = typer.Argument(..., help="Step name (e.g. ray_fusion)"),
    config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path"),
    input_json: str = typer.Option(None, "--input", "-i", help="Input as JSON string"),
) -> None:
    """Run a single pipeline step."""
    import json

    setup_logging()
    from rayfusion.core.pipeline_runner import load_pipeline_config, import_step_class, load_step_config

    pipeline_cfg = load_pipeline_config(config)
    entry = next((s for s in pipeline_cfg.steps if s.name == step_name), None)
    if entry is None:
        console.print(f"[red]Step '{step_name}' not found in pipeline config[/red]")
        raise typer.Exit(1)

    step_cls = import_step_class(entry.module)
    step_config = load_step_config(Path(entry.config_file), step_cls.config_type)
    step_instance = step_cls(config=step_config, data_root=pipeline_cfg.data_root)

    input_data = dict(entry.inputs)
    if input_json:
        input_data.update(json.loads(input_json))
    missing = [f for f in step_cls.input_type.model_json_schema().get("required", []) if f not in input_data]
    if missing:
        console.print(f"[yellow]Step '{step_name}' requires input fields: {missing}[/yellow]")
        console.print("[yellow]Use --input/-i with JSON string, e.g.:[/yellow]")
        console.print(f'  rayfusion run-step {step_name} -i \'{{"{missing[0]}": "value"}}\'')
        raise typer.Exit(1)

    console.print(f"[green]Running step: {step_name}[/green]")
    step_input = step_cls.input_type(**input_data)
    output = step_instance.execute(step_input)
    console.print(f"[green]Done. Output:[/green] {output.model_dump_json(indent=2)}")


@app.command()
def info(config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path")) -> None:
    """Show pipeline steps and their status."""
    from rayfusion.core.pipeline_runner import load_pipeline_config

    pipeline_cfg = load_pipeline_config(config)
    table = Table(title=f"Pipeline: {pipeline_cfg.project_name}")
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Module", style="green")
    table.add_column("Enabled", style="yellow")
    table.add_column("Depends On", style="dim")

    for i, step in enumerate(pipeline_cfg.steps, 1):
        table.add_row(
            str(i),
            step.name,
            step.module,
            "Y" if step.enabled else "N",
            ", ".join(step.depends_on) if step.depends_on else "-",
        )
    console.print(table)


@app.command()
def fuse(
    grid_dims: tuple[int, int, int] = typer.Option(..., help="Grid dimensions"),
    grid_spacing: tuple[float, float, float] = typer.Option(..., help="Grid spacing"),
    grid_origin: tuple[float, float, float] = typer.Option(..., help="Grid origin"),
    grid_vec_x: tuple[float, float, float] = typer.Option((1.0, 0.0, 0.0), help="Grid direction X"),
    grid_vec_y: tuple[float, float, float] = typer.Option((0.0, 1.0, 0.0), help="Grid direction Y"),
    grid_vec_z: tuple[float, float, float] = typer.Option((0.0, 0.0, 1.0), help="Grid direction Z"),
    data_folder: Path = typer.Option(..., help="Folder which contains all data"),
    output: Path = typer.Option(..., help="Output grid filename (.vts)"),
    depth_map_file: str = typer.Option("vtiList.txt", help="File which lists the depth maps"),
    krt_file: str = typer.Option("kList.txt", help="File which lists the .krtd files"),
    ray_thick: float = typer.Option(2.0, help="Ray potential thickness"),
    ray_rho: float = typer.Option(3.0, help="Ray potential saturation rate outside the band"),
    parallel: bool = typer.Option(True, "--parallel/--no-parallel", help="Fuse on a thread pool"),
    work_dir: Path = typer.Option(None, help="Directory for intermediate files (default: next to output)"),
    verbose: bool = typer.Option(False, "--verbose", help="Display debug information"),
) -> None:
    """Load views from a data folder, fuse them and write a structured grid."""
    setup_logging(verbose=verbose)
    from rayfusion.utils.geometry import are_vectors_orthogonal
    from rayfusion.steps.s01_load_views.config import LoadViewsConfig
    from rayfusion.steps.s01_load_views.contracts import LoadViewsInput
    from rayfusion.steps.s01_load_views.step import LoadViewsStep
    from rayfusion.steps.s02_ray_fusion.config import GridConfig, RayFusionConfig
    from rayfusion.steps.s02_ray_fusion.contracts import RayFusionInput
    from rayfusion.steps.s02_ray_fusion.step import RayFusionStep
    from rayfusion.steps.s03_grid_export.config import GridExportConfig
    from rayfusion.steps.s03_grid_export.contracts import GridExportInput
    from rayfusion.steps.s03_grid_export.step import GridExportStep

    if not are_vectors_orthogonal(grid_vec_x, grid_vec_y, grid_vec_z, atol=1e-9):
        console.print("[red]Given vectors are not orthogonal[/red]")
        raise typer.Exit(1)

    data_root = work_dir or output.parent
    grid_cfg = GridConfig(
        dims=grid_dims, spacing=grid_spacing, origin=grid_origin,
        vec_x=grid_vec_x, vec_y=grid_vec_y, vec_z=grid_vec_z,
    )
    try:
        loaded = LoadViewsStep(
            LoadViewsConfig(depth_map_list=depth_map_file, krtd_list=krt_file), data_root
        ).execute(LoadViewsInput(data_folder=data_folder))
        fusion_step = RayFusionStep(
            RayFusionConfig(thickness=ray_thick, rho=ray_rho, use_parallel=parallel, grid=grid_cfg), data_root
        )
        fused = fusion_step.execute(RayFusionInput(views_manifest=loaded.views_manifest))
        exported = GridExportStep(
            GridExportConfig(output_dir=output.parent, output_name=output.stem), data_root
        ).execute(GridExportInput(fused_grid_path=fused.fused_grid_path))
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(f"Execution time : {fused.execution_time:.3f} s")
    console.print(
        f"[green]{fused.num_views} views fused, {fused.num_observed_voxels} voxels observed. "
        f"Output:[/green] {exported.vts_path}"
    )


if __name__ == "__main__":
    app()
