import typer
from hue import file_utils, legend
from hue.errors import HueError
from hue.session import PaletteSession
from hue.settings import PRESETS, resolve_settings
import logging
from pathlib import Path
from PIL import UnidentifiedImageError
from typing import Optional, List, Dict

import sys

import rich.traceback

from enum import Enum


class PaletteFile(Enum):
    PALETTE_JSON = "palette_json"
    PALETTE_LEGEND = "palette_legend"
    PALETTE_SVG = "palette_svg"


# Map PaletteFile enum members to their base filenames
PALETTE_FILE_BASENAMES: Dict[PaletteFile, str] = {
    PaletteFile.PALETTE_JSON: "palette.json",
    PaletteFile.PALETTE_LEGEND: "palette-legend.png",
    PaletteFile.PALETTE_SVG: "palette-swatches.svg",
}


def validate_output_dir(
    output_dir: Path, overwrite: bool = False, expect: Optional[List[PaletteFile]] = None,
) -> Dict[PaletteFile, Path]:
    files_to_check_for_clobber = [output_dir / PALETTE_FILE_BASENAMES[key] for key in (expect or [])]

    if not overwrite:
        clobbered_files_found = [str(p) for p in files_to_check_for_clobber if p.exists()]
        if clobbered_files_found:
            typer.secho("Error: Files already exist:", fg=typer.colors.RED)
            for path_str in clobbered_files_found: typer.secho(f"  {path_str}", fg=typer.colors.RED)
            typer.secho("Use --yes (-y) to overwrite.", fg=typer.colors.YELLOW); raise typer.Exit(code=1)

    return {key: output_dir / name for key, name in PALETTE_FILE_BASENAMES.items()}


def huegen_cli(
    input_path: Path = typer.Argument(
        ...,
        help="Input image file (e.g., image.jpg).",
        metavar="INPUT_FILE",
        exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True,
    ),
    output_dir: Optional[Path] = typer.Argument(
        None,
        help="Directory for palette exports. Will be created if it doesn't exist. Omit to only print the palette.",
        metavar="OUTPUT_DIRECTORY",
        file_okay=False, dir_okay=True, writable=True, resolve_path=True,
    ),
    # --- Clustering Options ---
    preset: Optional[str] = typer.Option(
        None, help=f"Preset effort level: {', '.join(PRESETS)}."
    ),
    num_colors: Optional[int] = typer.Option(
        None, "--num-colors", "-k", min=1, help="Number of palette colors (k). Default: 5."
    ),
    attempts: Optional[int] = typer.Option(
        None, "--attempts", min=1, help="Independent k-means attempts; the lowest-inertia one wins. Default: 5."
    ),
    iterations: Optional[int] = typer.Option(
        None, "--iterations", min=1, help="Assignment/update rounds per attempt. Default: 50."
    ),
    sample_size: Optional[int] = typer.Option(
        None, "--sample-size", min=1, help="Image is downsampled to NxN pixels before clustering. Default: 50."
    ),
    seed: Optional[int] = typer.Option(
        None, "--seed", help="Random seed for reproducible palettes. Default: $HUEGEN_SEED or random."
    ),
    tol: Optional[float] = typer.Option(
        None, "--tol", min=0.0, help="Stop an attempt once centroids move less than this. Default: run all iterations."
    ),
    jobs: Optional[int] = typer.Option(
        None, "--jobs", "-j", min=1, help="Threads for running attempts in parallel. Default: $HUEGEN_JOBS or 1."
    ),
    weighting: Optional[str] = typer.Option(
        None, "--weighting", help="Percentage per color: 'equal' (100/k each) or 'population' (share of pixels). Default: equal."
    ),
    # --- Output Options ---
    skip_json: bool = typer.Option(False, "--skip-json", help="Skip the JSON palette export."),
    skip_legend: bool = typer.Option(False, "--skip-legend", help="Skip the PNG palette legend."),
    skip_svg: bool = typer.Option(False, "--skip-svg", help="Skip the SVG swatch strip."),
    swatch_size: int = typer.Option(80, "--swatch-size", min=10, help="Legend/SVG swatch size. Default: 80px."),
    font_path: Optional[Path] = typer.Option(
        None, "--font-path", help="Path to a .ttf font file for the legend.",
        exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True,
    ),
    font_size: int = typer.Option(14, "--font-size", min=1, help="Legend caption font size. Default: 14."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Overwrite existing files."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log clustering progress."),
):
    """
    Extracts a color palette from an input image with multi-attempt k-means.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    command_line_str = " ".join(sys.argv)

    try:
        settings = resolve_settings(
            preset,
            num_colors=num_colors,
            attempts=attempts,
            iterations=iterations,
            sample_size=sample_size,
            seed=seed,
            tol=tol,
            n_jobs=jobs,
            weighting=weighting,
        )
    except HueError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED); raise typer.Exit(code=1)

    if preset:
        typer.echo(f"Applying preset: '{preset}'")
    typer.echo(f"Extracting {settings.num_colors} colors "
               f"({settings.attempts} attempts x {settings.iterations} iterations, "
               f"{settings.sample_size}x{settings.sample_size} sample).")

    output_paths: Optional[Dict[PaletteFile, Path]] = None
    if output_dir is not None:
        expected_outputs: List[PaletteFile] = []
        if not skip_json: expected_outputs.append(PaletteFile.PALETTE_JSON)
        if not skip_legend: expected_outputs.append(PaletteFile.PALETTE_LEGEND)
        if not skip_svg: expected_outputs.append(PaletteFile.PALETTE_SVG)
        output_paths = validate_output_dir(output_dir, overwrite=yes, expect=expected_outputs)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            typer.secho(f"Error creating output directory {output_dir}: {e}", fg=typer.colors.RED); raise typer.Exit(code=1)

    session = PaletteSession(settings=settings)
    try:
        colors = session.process_image(input_path)
    except UnidentifiedImageError:
        typer.secho(f"Error: {input_path} is not a readable image.", fg=typer.colors.RED); raise typer.Exit(code=1)
    except OSError as e:
        typer.secho(f"Error reading image {input_path}: {e}", fg=typer.colors.RED); raise typer.Exit(code=1)
    except HueError as e:
        typer.secho(f"Error extracting palette from {input_path}: {e}", fg=typer.colors.RED); raise typer.Exit(code=1)

    result = session.last_result
    typer.echo(f"Best of {settings.attempts} attempts: #{result.attempt + 1}, inertia {result.inertia:.4f}.")
    for idx, entry in enumerate(colors):
        typer.echo(f"  {idx:>2}  {entry.hex}  {entry.percentage:>3}%  {entry.name}")

    if output_paths is None:
        typer.secho("\nProcessing complete!", fg=typer.colors.GREEN)
        return

    metadata = {
        "SourceImage": str(input_path),
        "NumColors": str(settings.num_colors),
        "Attempts": str(settings.attempts),
        "Iterations": str(settings.iterations),
        "SampleSize": str(settings.sample_size),
        "Weighting": settings.weighting,
        "Seed": "random" if settings.seed is None else str(settings.seed),
        "Inertia": f"{result.inertia:.6f}",
    }

    if not skip_json:
        try:
            json_path = file_utils.export_palette_json(colors, output_paths[PaletteFile.PALETTE_JSON])
            typer.echo(f"Palette JSON saved to: {json_path}")
        except OSError as e:
            typer.secho(f"Error writing palette JSON: {e}", fg=typer.colors.RED); raise typer.Exit(code=1)

    if not skip_legend:
        legend_image = legend.create_legend_image(
            colors,
            font_path=str(font_path) if font_path else None,
            font_size=font_size,
            swatch_size=swatch_size,
        )
        if legend_image:
            try:
                legend_path = file_utils.save_palette_png(
                    legend_image,
                    output_paths[PaletteFile.PALETTE_LEGEND],
                    command_line_invocation=command_line_str,
                    additional_metadata={**metadata, "FileType": "Palette Legend"},
                )
                typer.echo(f"Palette legend saved to: {legend_path}")
            except OSError as e:
                typer.secho(f"Error writing palette legend: {e}", fg=typer.colors.RED); raise typer.Exit(code=1)
        else:
            typer.secho("Warning: Palette legend could not be generated (empty palette).", fg=typer.colors.YELLOW)

    if not skip_svg:
        try:
            svg_path = file_utils.save_palette_svg(
                colors,
                output_paths[PaletteFile.PALETTE_SVG],
                swatch_size=swatch_size,
                command_line_invocation=command_line_str,
                additional_metadata={**metadata, "FileType": "Palette Swatches"},
            )
            typer.echo(f"Palette SVG saved to: {svg_path}")
        except OSError as e:
            typer.secho(f"Error writing palette SVG: {e}", fg=typer.colors.RED); raise typer.Exit(code=1)

    typer.secho("\nProcessing complete!", fg=typer.colors.GREEN)
    typer.echo(f"Outputs in: {output_dir.resolve()}")


def main():
    rich.traceback.install(show_locals=False, suppress=[typer])
    typer.run(huegen_cli)


if __name__ == "__main__":
    main()
