"""
Oligoscreen CLI - Degenerate oligo window screening.

Usage:
    oligoscreen screen -t template.fasta -r references.fasta -o results.json
    oligoscreen screen -t a.fasta -t b.fasta -r refs.fasta --save-dir runs/
    oligoscreen summary results.json --threshold 90
    oligoscreen detail results.json --length 20 --position 112
"""

import json
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn

from oligoscreen import __version__
from oligoscreen.analysis.screener import InvalidScreenInput, run_screening
from oligoscreen.config import get_config
from oligoscreen.core.iupac import format_sequence
from oligoscreen.io.fasta import FastaFormatError, load_fasta, load_template
from oligoscreen.io.results import ResultsFileError, auto_save, load_results, save_results
from oligoscreen.models.data_classes import (
    AlignmentParams,
    PositionResult,
    ProgressUpdate,
    ScreenParams,
    ScreenResult,
)
from oligoscreen.models.enums import AnalysisMethod

# Initialize Typer app and Rich console
app = typer.Typer(
    name="oligoscreen",
    help="Degenerate oligonucleotide window screening",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


# =============================================================================
# Version callback
# =============================================================================

def version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold blue]Oligoscreen[/bold blue] version {__version__}")
        raise typer.Exit()


def setup_logging(level: str, log_file: Optional[Path] = None) -> None:
    """Route log records to stderr through rich, plus an optional file."""
    handlers: List[logging.Handler] = [
        RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    ]
    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        handlers.append(file_handler)
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


# =============================================================================
# Main app options
# =============================================================================

@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """
    Oligoscreen - Degenerate Oligonucleotide Window Screening

    Find template windows where a few IUPAC-degenerate oligos cover a
    diverse reference panel.
    """
    config = get_config()
    setup_logging(log_level or config.log_level, config.log_file)


# =============================================================================
# Screen command
# =============================================================================

def _build_params(defaults: Any, overrides: Dict[str, Any], model: type) -> Any:
    values = defaults.model_dump()
    values.update({k: v for k, v in overrides.items() if v is not None})
    return model(**values)


@app.command()
def screen(
    templates: List[Path] = typer.Option(
        ...,
        "--template", "-t",
        help="Template FASTA (first record used). Repeat to queue several runs.",
    ),
    references: Path = typer.Option(
        ...,
        "--references", "-r",
        help="Reference sequences FASTA",
    ),
    exclusivity: Optional[List[Path]] = typer.Option(
        None,
        "--exclusivity", "-x",
        help="Exclusivity FASTA; repeat to combine sets. Enables differential analysis.",
    ),
    method: str = typer.Option(
        "no_ambiguities",
        "--method", "-m",
        help="Analysis method: no_ambiguities, fixed_ambiguities, incremental",
    ),
    fixed_ambiguities: Optional[int] = typer.Option(
        None, "--ambiguities", "-a",
        help="Ambiguity budget per variant (fixed_ambiguities)",
    ),
    incremental_percent: Optional[int] = typer.Option(
        None, "--percent",
        help="Share of remaining sequences each variant must cover (incremental)",
    ),
    incremental_max_ambiguities: Optional[int] = typer.Option(
        None, "--max-ambiguities",
        help="Ambiguity cap per variant (incremental); unlimited if omitted",
    ),
    exclude_n: bool = typer.Option(
        False, "--exclude-n",
        help="Never create fully ambiguous (N) positions",
    ),
    min_length: Optional[int] = typer.Option(None, "--min-length", help="Minimum oligo length"),
    max_length: Optional[int] = typer.Option(None, "--max-length", help="Maximum oligo length"),
    resolution: Optional[int] = typer.Option(None, "--resolution", help="Position step"),
    threshold: Optional[float] = typer.Option(
        None, "--threshold",
        help="Coverage threshold (%) for 'variants needed'",
    ),
    ignore_count: Optional[int] = typer.Option(
        None, "--ignore-count",
        help="Closest exclusivity matches to ignore when scoring",
    ),
    max_mismatches: Optional[int] = typer.Option(
        None, "--max-mismatches",
        help="Maximum mismatches for an accepted alignment",
    ),
    match_score: Optional[int] = typer.Option(None, "--match", help="Match score"),
    mismatch_score: Optional[int] = typer.Option(None, "--mismatch", help="Mismatch score"),
    gap_open: Optional[int] = typer.Option(None, "--gap-open", help="Gap open penalty"),
    gap_extend: Optional[int] = typer.Option(None, "--gap-extend", help="Gap extend penalty"),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w",
        help="Worker processes (default: configured or CPU count)",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output file. If not specified, prints to stdout.",
    ),
    save_dir: Optional[Path] = typer.Option(
        None,
        "--save-dir",
        help="Auto-save each run as <template>_<id>.json in this folder",
    ),
    format: str = typer.Option(
        "table",
        "--format", "-f",
        help="Output format: json, tsv, table",
    ),
    top: int = typer.Option(20, "--top", help="Positions shown in table output"),
) -> None:
    """
    Screen template windows against a reference panel.

    Examples:
        oligoscreen screen -t tpl.fasta -r refs.fasta -m fixed -a 2
        oligoscreen screen -t tpl.fasta -r refs.fasta -x offtargets.fasta -f json -o out.json
    """
    config = get_config()

    if output is not None and len(templates) > 1:
        console.print("[red]Error:[/red] --output takes a single template; use --save-dir for several")
        raise typer.Exit(1)

    try:
        method_enum = AnalysisMethod.from_string(method)
        params = _build_params(config.screen, {
            "method": method_enum,
            "fixed_ambiguities": fixed_ambiguities,
            "incremental_percent": incremental_percent,
            "incremental_max_ambiguities": incremental_max_ambiguities,
            "exclude_n": exclude_n or None,
            "min_oligo_length": min_length,
            "max_oligo_length": max_length,
            "resolution": resolution,
            "coverage_threshold": threshold,
            "ignore_count": ignore_count,
            "differential": bool(exclusivity) or None,
        }, ScreenParams)
        alignment = _build_params(config.alignment, {
            "match_score": match_score,
            "mismatch_score": mismatch_score,
            "gap_open_penalty": gap_open,
            "gap_extend_penalty": gap_extend,
            "max_mismatches": max_mismatches,
        }, AlignmentParams)
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        reference_records = load_fasta(references)
        exclusivity_sets = [load_fasta(path) for path in exclusivity or []]
        jobs = [(path, *load_template(path)) for path in templates]
    except FastaFormatError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    results = []
    for job_id, (path, name, sequence) in enumerate(jobs, start=1):
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=err_console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Screening {name}...", total=len(params.oligo_lengths))

            def on_progress(update: ProgressUpdate) -> None:
                fraction = update.positions_completed / max(update.total_positions, 1)
                progress.update(
                    task,
                    completed=update.lengths_completed + (0 if update.current_position < 0 else fraction),
                    description=update.message,
                )

            try:
                result = run_screening(
                    sequence,
                    reference_records,
                    params=params,
                    alignment=alignment,
                    exclusivity=exclusivity_sets,
                    workers=workers,
                    progress=on_progress,
                    template_name=name,
                )
            except InvalidScreenInput as e:
                console.print(f"[red]Error:[/red] {path.name}: {e}")
                raise typer.Exit(1)

        if save_dir is not None:
            try:
                saved = auto_save(result, save_dir, job_id, name=path.name)
            except ResultsFileError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1)
            err_console.print(f"[green]Saved {saved}[/green]")
        results.append(result)

    if save_dir is not None and output is None and len(results) > 1:
        return

    for result in results:
        _output_results(result, output, format, top)


# =============================================================================
# Summary / detail commands
# =============================================================================

def _load_or_exit(path: Path) -> ScreenResult:
    try:
        return load_results(path)
    except ResultsFileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def summary(
    results_file: Path = typer.Argument(..., help="Saved results JSON"),
    threshold: Optional[float] = typer.Option(
        None, "--threshold",
        help="Re-evaluate with a new coverage threshold (%)",
    ),
    ignore_count: Optional[int] = typer.Option(
        None, "--ignore-count",
        help="Re-evaluate exclusivity scores with a new ignore count",
    ),
    top: int = typer.Option(20, "--top", help="Positions shown"),
    format: str = typer.Option("table", "--format", "-f", help="Output format: json, tsv, table"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
) -> None:
    """
    Rank positions of a saved run, optionally under new thresholds.
    """
    result = _load_or_exit(results_file)
    if threshold is not None:
        if not 0 < threshold <= 100:
            console.print("[red]Error:[/red] --threshold must be in (0, 100]")
            raise typer.Exit(1)
        result = result.with_coverage_threshold(threshold)
    if ignore_count is not None:
        if ignore_count < 0:
            console.print("[red]Error:[/red] --ignore-count must be >= 0")
            raise typer.Exit(1)
        result = result.with_ignore_count(ignore_count)

    _output_results(result, output, format, top)


@app.command()
def detail(
    results_file: Path = typer.Argument(..., help="Saved results JSON"),
    length: int = typer.Option(..., "--length", "-l", help="Oligo length"),
    position: int = typer.Option(..., "--position", "-p", help="Template position (0-based)"),
    reverse_complement: bool = typer.Option(
        False, "--reverse-complement", "--rc",
        help="Show sequences reverse-complemented",
    ),
    codon_spacing: bool = typer.Option(
        False, "--codon-spacing",
        help="Group bases in threes",
    ),
) -> None:
    """
    Show the variants and exclusivity profile of one position.
    """
    result = _load_or_exit(results_file)
    cell = result.get_position(length, position)
    if cell is None:
        console.print(f"[red]Error:[/red] No result for length {length} at position {position}")
        raise typer.Exit(1)

    window = result.template_sequence[position:position + length]
    console.print(Panel.fit(
        f"Template: {format_sequence(window, reverse_complement, codon_spacing)}\n"
        f"Matched: {cell.sequences_analyzed}/{cell.total_sequences}  "
        f"No match: {cell.no_match_count}\n"
        f"Variants for {result.params.coverage_threshold:g}%: {cell.variants_needed} "
        f"({cell.coverage_at_threshold:.1f}%)",
        title=f"{result.template_name} length {length} position {position}",
    ))

    if cell.skipped:
        console.print(f"[yellow]Skipped:[/yellow] {cell.skip_reason}")
    else:
        table = Table(title="Variants")
        table.add_column("Rank", style="dim")
        table.add_column("Sequence", style="cyan", no_wrap=True)
        table.add_column("Count", justify="right")
        table.add_column("%", justify="right")
        table.add_column("Cum. %", justify="right")
        table.add_column("Amb.", justify="right", style="yellow")
        for variant in cell.variants:
            table.add_row(
                str(variant.rank),
                format_sequence(variant.sequence, reverse_complement, codon_spacing),
                str(variant.count),
                f"{variant.percentage:.1f}",
                f"{variant.cumulative_percentage:.1f}",
                str(variant.ambiguities),
            )
        console.print(table)

    if cell.differential is not None:
        profile = cell.differential
        table = Table(title=f"Exclusivity (score: {_format_score(profile.score)})")
        table.add_column("Mismatches", justify="right")
        table.add_column("Sequences", justify="right")
        table.add_column("Example", style="magenta")
        for bucket in profile.histogram:
            table.add_row(str(bucket.mismatches), str(bucket.count), bucket.example_name)
        if profile.no_match_count:
            table.add_row("no match", str(profile.no_match_count), profile.no_match_example or "")
        console.print(table)


@app.command()
def info() -> None:
    """Show configuration and available analysis methods."""
    config = get_config()

    console.print(Panel.fit(
        f"[bold blue]Oligoscreen[/bold blue] v{__version__}\n"
        f"Output directory: {config.output_dir}\n"
        f"Workers: {config.workers or 'CPU count'}\n"
        f"Oligo lengths: {config.screen.min_oligo_length}-{config.screen.max_oligo_length}\n"
        f"Max mismatches: {config.alignment.max_mismatches}",
        title="Configuration",
    ))

    table = Table(title="Analysis Methods")
    table.add_column("Method", style="cyan")
    table.add_column("Description")
    descriptions = {
        AnalysisMethod.NO_AMBIGUITIES: "One variant per distinct sequence",
        AnalysisMethod.FIXED_AMBIGUITIES: "Greedy cover within an ambiguity budget",
        AnalysisMethod.INCREMENTAL: "Each variant covers a share of what remains",
    }
    for method, description in descriptions.items():
        table.add_row(method.value, description)
    console.print(table)


# =============================================================================
# Utility functions
# =============================================================================

def _format_score(score: Optional[int]) -> str:
    return "n/a" if score is None else str(score)


def _ranked_positions(result: ScreenResult) -> List[tuple]:
    """Screened cells ordered best first: fewest variants, then coverage, then specificity."""
    cells = []
    for length in result.oligo_lengths:
        for cell in result.results_by_length[length].positions:
            if cell.skipped:
                continue
            score = cell.differential.score if cell.differential is not None else None
            cells.append((length, cell, score))
    cells.sort(key=lambda c: (
        c[1].variants_needed,
        -c[1].coverage_at_threshold,
        -(c[2] if c[2] is not None else -1),
        c[0],
        c[1].position,
    ))
    return cells


def _position_row(length: int, cell: PositionResult, score: Optional[int]) -> List[str]:
    top_variant = cell.variants[0].sequence if cell.variants else ""
    return [
        str(length),
        str(cell.position),
        str(cell.variants_needed),
        f"{cell.coverage_at_threshold:.1f}",
        str(cell.no_match_count),
        _format_score(score),
        top_variant,
    ]


def _output_results(result: ScreenResult, output: Optional[Path], format: str, top: int = 20) -> None:
    """Output results in specified format."""
    if format == "json":
        if output:
            try:
                save_results(result, output)
            except ResultsFileError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1)
            console.print(f"[green]Results written to {output}[/green]")
        else:
            # Print to stdout for piping
            print(json.dumps(result.model_dump(mode="json"), indent=2))

    elif format == "tsv":
        headers = ["length", "position", "variants_needed", "coverage", "no_match", "score", "top_variant"]
        lines = ["\t".join(headers)]
        for length, cell, score in _ranked_positions(result):
            lines.append("\t".join(_position_row(length, cell, score)))

        tsv_str = "\n".join(lines)
        if output:
            output.write_text(tsv_str + "\n")
        else:
            print(tsv_str)

    elif format == "table":
        table = Table(title=f"{result.template_name}: best positions ({result.params.coverage_threshold:g}% coverage)")
        table.add_column("Length", style="dim")
        table.add_column("Position")
        table.add_column("Variants", style="green")
        table.add_column("Coverage %")
        table.add_column("No match")
        table.add_column("Score", style="yellow")
        table.add_column("Top variant", style="cyan", no_wrap=True)

        for length, cell, score in _ranked_positions(result)[:top]:
            table.add_row(*_position_row(length, cell, score))

        console.print(table)

    else:
        console.print(f"[red]Error:[/red] Unknown format: {format}")
        raise typer.Exit(1)


# =============================================================================
# Entry point
# =============================================================================

if __name__ == "__main__":
    app()
