"""Command-line interface for Vocal Analyzer.

Provides commands for:
- analyze: Key, tempo, vocal range and voice type of a recording
- track: Replay a file through the live engine, frame by frame
- info: Show audio file information
"""

import json
import warnings
from pathlib import Path
from typing import List, Optional

import numpy as np
import typer
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .core import AnalysisConfig, AnalysisError, DEFAULT_SR
from .core.constants import NOISE_GATE_RMS

app = typer.Typer(
    name="vocal-analyzer",
    help="Pitch, key, tempo and vocal range analysis for singers",
    rich_markup_mode="markdown",
)
console = Console()


def _require_file(input_file: Path) -> None:
    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)


def _build_config(**values) -> AnalysisConfig:
    try:
        return AnalysisConfig(**values)
    except AnalysisError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _show_warnings(caught: List[warnings.WarningMessage]) -> None:
    for warning in caught:
        console.print(f"[yellow]Warning: {warning.message}[/yellow]")


@app.command()
def analyze(
    input_file: Path = typer.Argument(..., help="Input audio file"),
    duration: float = typer.Option(
        0.0, "-d", "--duration", help="Seconds to analyze from the start. 0 = whole file"
    ),
    algorithm: str = typer.Option(
        "yin", "-a", "--algorithm", help="Pitch algorithm for the key histogram: yin/autocorrelation/crepe"
    ),
    spectral: bool = typer.Option(
        True, "--spectral/--histogram", help="Key from Goertzel spectrum or from a pitch histogram"
    ),
    bandpass: bool = typer.Option(
        True, "--filter/--no-filter", help="Band-pass to the vocal range before the range scan"
    ),
    gain: float = typer.Option(
        1.0, "-g", "--gain", help="Input gain applied before analysis"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
):
    """Analyze key, tempo, vocal range and voice type.

    **Examples:**

        vocal-analyzer analyze take1.wav

        vocal-analyzer analyze song.mp3 -d 30 --histogram --json
    """
    from .input import AudioLoader
    from .engine import OfflineAnalyzer

    _require_file(input_file)
    config = _build_config(
        input_gain=gain,
        analysis_window_seconds=duration,
        key_pitch_algorithm=algorithm,
        use_spectral_key_detection=spectral,
        vocal_bandpass=bandpass,
    )

    try:
        loader = AudioLoader(target_sr=DEFAULT_SR)
        buffer = loader.load(input_file, duration=duration or None)
    except Exception as e:
        console.print(f"[red]Error: Could not decode {input_file.name}: {e}[/red]")
        raise typer.Exit(1)

    analyzer = OfflineAnalyzer(config)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            if json_output:
                report = analyzer.analyze(buffer)
            else:
                console.print(f"\n[bold blue]Analysis: {input_file.name}[/bold blue]")
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[cyan]{task.description}"),
                    TimeElapsedColumn(),
                    console=console,
                    transient=True,
                ) as progress:
                    task = progress.add_task("Starting", total=None)
                    report = analyzer.analyze(
                        buffer,
                        progress=lambda stage: progress.update(task, description=stage),
                    )
        except AnalysisError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

    if json_output:
        result = report.to_dict()
        result["input"] = str(input_file)
        result["warnings"] = [str(w.message) for w in caught]
        typer.echo(json.dumps(result, indent=2))
        return

    _show_warnings(caught)
    _show_report_table(report)
    console.print("\n[green][OK] Analysis complete![/green]")


@app.command()
def track(
    input_file: Path = typer.Argument(..., help="Input audio file"),
    fps: float = typer.Option(60.0, "--fps", help="Simulated display frame rate"),
    block_size: int = typer.Option(
        735, "-b", "--block-size", help="Samples pushed per frame (44100 / 60 = 735)"
    ),
    gate: float = typer.Option(
        NOISE_GATE_RMS, "--gate", help="Noise gate RMS threshold"
    ),
    algorithm: str = typer.Option(
        "autocorrelation", "-a", "--algorithm", help="Pitch algorithm: autocorrelation/yin/crepe"
    ),
    max_rows: int = typer.Option(40, "--max-rows", help="Rows shown in the table"),
    json_output: bool = typer.Option(
        False, "--json", help="Output snapshots as JSON (for scripting)"
    ),
):
    """Replay a file through the live engine and show what a display would.

    **Examples:**

        vocal-analyzer track scale.wav

        vocal-analyzer track take1.wav --algorithm yin --gate 0.02
    """
    from .input import AudioLoader
    from .engine import LiveSession

    _require_file(input_file)
    if fps <= 0 or block_size <= 0:
        console.print("[red]Error: --fps and --block-size must be positive[/red]")
        raise typer.Exit(1)
    config = _build_config(noise_gate_threshold=gate, pitch_algorithm=algorithm)

    try:
        loader = AudioLoader(target_sr=DEFAULT_SR)
        buffer = loader.load(input_file)
    except Exception as e:
        console.print(f"[red]Error: Could not decode {input_file.name}: {e}[/red]")
        raise typer.Exit(1)

    try:
        session = LiveSession(buffer.sample_rate, config)
    except AnalysisError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    audio = buffer.mono()
    session.start()

    snapshots = []
    for frame, start in enumerate(range(0, len(audio), block_size)):
        session.push(audio[start:start + block_size])
        snapshot = session.tick(now=frame / fps)
        if snapshot is not None:
            snapshots.append(snapshot)

    if json_output:
        typer.echo(json.dumps([s.to_dict() for s in snapshots], indent=2))
        return

    console.print(f"\n[bold blue]Live replay: {input_file.name}[/bold blue]")
    console.print(f"  Frames analyzed: {session.frames_analyzed}, snapshots: {len(snapshots)}")
    _show_snapshots_table(snapshots[:max_rows])
    if len(snapshots) > max_rows:
        console.print(f"   [dim]... and {len(snapshots) - max_rows} more snapshots[/dim]")

    key = session.key_tracker.stable_key
    console.print(f"\n  Live key: {key.name if key else 'Detecting...'}")


@app.command()
def info(
    input_file: Path = typer.Argument(..., help="Input audio file"),
):
    """Show information about an audio file."""
    from .input import AudioLoader

    _require_file(input_file)

    try:
        loader = AudioLoader(target_sr=None, mono=False)
        buffer = loader.load(input_file)
    except Exception as e:
        console.print(f"[red]Error: Could not decode {input_file.name}: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Audio Info:[/bold] {input_file.name}")
    console.print(f"  Duration: {buffer.duration:.2f} seconds")
    console.print(f"  Sample rate: {buffer.sample_rate} Hz")
    console.print(f"  Channels: {buffer.channels}")
    console.print(f"  Samples: {buffer.frames:,}")

    samples = buffer.samples
    peak = float(np.abs(samples).max())
    level = float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))
    console.print(f"  Peak level: {peak:.3f}")
    console.print(f"  RMS level: {level:.4f}")
    if peak > 0:
        console.print(f"  Non-silent: {loader.non_silent_duration(buffer):.2f} seconds")


def _show_report_table(report):
    """Display an offline report in a table."""
    table = Table(title="Analysis Results")
    table.add_column("Measure", style="cyan")
    table.add_column("Value", style="green")

    key = report.key
    table.add_row("Key", key.name)
    table.add_row("Key confidence", f"{key.confidence}%")
    if key.is_known:
        table.add_row("Relative key", key.relative_key)

    tempo = report.tempo
    table.add_row("Tempo", f"{tempo.bpm} BPM" if tempo.is_known else "Unknown")

    voice = report.voice
    table.add_row("Voice type", voice.voice_type)
    table.add_row("Range", voice.range_label)
    if not voice.is_instrumental:
        table.add_row("Tessitura", f"{voice.tessitura_midi:.1f} (MIDI)")

    table.add_row("Duration", f"{report.duration_seconds:.2f}s")
    if report.timed_out:
        table.add_row("Timed out", ", ".join(report.timed_out))

    console.print(table)


def _show_snapshots_table(snapshots):
    """Display live snapshots in a table."""
    table = Table(title="Live Snapshots")
    table.add_column("Time (s)", style="yellow")
    table.add_column("Freq (Hz)", style="green")
    table.add_column("Note", style="cyan")
    table.add_column("Cents", style="magenta")
    table.add_column("Register")
    table.add_column("Vibrato")

    for snapshot in snapshots:
        vibrato = snapshot.vibrato
        table.add_row(
            f"{snapshot.timestamp:.2f}",
            f"{snapshot.stable_frequency or snapshot.frequency:.1f}" if snapshot.is_voiced else "-",
            snapshot.note.full_name if snapshot.note else "-",
            f"{snapshot.cents:+d}" if snapshot.note else "",
            snapshot.voice_type,
            f"{vibrato.rate_hz:.1f} Hz / {vibrato.depth_cents:.0f}c" if vibrato.is_vibrato else "",
        )

    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
