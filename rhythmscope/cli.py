"""Command-line interface for rhythmscope."""

import json
import sys
from pathlib import Path

import click
from rich.console import Console

from .config import (
    AnalyzerConfig,
    DetectorConfig,
    validate_analyzer_config,
    validate_detector_config,
)
from .display import build_range_table, render_summary
from .exceptions import AudioLoadError, AudioTooShortError, ConfigurationError
from .logging_config import setup_logging
from .models import OnsetKind
from .pipeline import analyze_file

ONSET_LABELS = {
    OnsetKind.BEAT: "Beats",
    OnsetKind.KICK: "Kicks",
    OnsetKind.SNARE: "Snares",
    OnsetKind.HIHAT: "Hi-hats",
}


def format_time(ms):
    """Formats milliseconds into M:SS.ss format.

    Args:
        ms: Time in milliseconds.

    Returns:
        str: Formatted time string.

    Example:
        >>> format_time(125300)
        '2:05.30'
    """
    seconds = ms / 1000.0
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}:{secs:05.2f}"


def format_analysis_result(result, show_events=False):
    """Format a single analysis result for text output.

    Args:
        result: Analysis result dict
        show_events: Also list every onset time

    Returns:
        str: Formatted analysis output
    """
    lines = [f"Analyzing: {result['file']}"]

    if result.get("warning"):
        lines.append(result["warning"])
        return "\n".join(lines)

    summary = result["_summary"]
    lines.append(f"Duration: {summary.duration:.1f}s ({summary.frame_count} frames)")
    lines.append(f"BPM: {summary.bpm_str} (confidence: {summary.confidence:.2f})")
    lines.append(f"Energy: {summary.mean_energy:.2f} (average)")
    lines.append(
        "  ".join(
            f"{ONSET_LABELS[kind]}: {summary.onset_count(kind)}" for kind in OnsetKind
        )
    )

    if show_events:
        for kind in OnsetKind:
            times = summary.onsets.get(kind.value, [])
            if times:
                stamps = ", ".join(format_time(t) for t in times)
                lines.append(f"  {ONSET_LABELS[kind]}: {stamps}")

    return "\n".join(lines)


def _result_dict(result):
    """Convert an analysis result to a JSON-serializable dict."""
    if result.get("warning"):
        return {"file": result["file"], "warning": result["warning"], "bpm": None}
    output = {"file": result["file"]}
    output.update(result["_summary"].to_dict())
    return output


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose):
    """rhythmscope - Real-time style rhythm analysis of audio."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("audio_files", nargs=-1, required=True)
@click.option("--fft-size", default=2048, type=int, help="FFT window size (power of two)")
@click.option("--smoothing", default=0.8, type=float, help="Band level smoothing (0-1)")
@click.option("--frame-rate", default=60.0, type=float, help="Analysis frames per second")
@click.option("--threshold", default=0.15, type=float, help="Beat energy-rise threshold (0-1)")
@click.option(
    "--min-beat-interval", default=200.0, type=float, help="Beat refractory interval (ms)"
)
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
@click.option("--events", is_flag=True, help="List every onset time")
@click.option("--timeline", is_flag=True, help="Draw an onset timeline")
def analyze(
    audio_files,
    fft_size,
    smoothing,
    frame_rate,
    threshold,
    min_beat_interval,
    output_format,
    events,
    timeline,
):
    """Analyze audio files for beats, drum onsets and tempo.

    Steps through each file at FRAME_RATE frames per second, tracking six
    frequency bands and overall energy, and reports detected onsets, the
    tempo estimate and mean band levels.

    Example:
        rhythmscope analyze track.wav --format json
    """
    try:
        analyzer_config = validate_analyzer_config(
            AnalyzerConfig(fft_size=fft_size, smoothing=smoothing)
        )
        detector_config = validate_detector_config(
            DetectorConfig(threshold=threshold, min_beat_interval=min_beat_interval)
        )
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    results = []

    for file_path in audio_files:
        if not Path(file_path).exists():
            click.echo("Error: Unable to load audio file", err=True)
            sys.exit(1)

        try:
            summary = analyze_file(
                file_path,
                frame_rate=frame_rate,
                analyzer_config=analyzer_config,
                detector_config=detector_config,
            )
            results.append({"file": file_path, "_summary": summary})
        except AudioLoadError:
            click.echo("Error: Unable to load audio file", err=True)
            sys.exit(1)
        except AudioTooShortError:
            results.append({"file": file_path, "warning": "File too short for analysis"})
        except ConfigurationError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(2)
        except Exception:
            click.echo("Error: Unable to decode audio file", err=True)
            sys.exit(1)

    if output_format == "json":
        if len(results) == 1:
            output = _result_dict(results[0])
        else:
            output = {"tracks": [_result_dict(r) for r in results]}
        click.echo(json.dumps(output, indent=2))
        return

    console = Console()
    for i, result in enumerate(results):
        if i > 0:
            click.echo()
        click.echo(format_analysis_result(result, show_events=events))
        if "_summary" in result:
            render_summary(result["_summary"], timeline=timeline, console=console)


@cli.command()
@click.option("--sample-rate", default=44100.0, type=float, help="Sample rate in Hz")
@click.option("--fft-size", default=2048, type=int, help="FFT window size (power of two)")
def bands(sample_rate, fft_size):
    """Show the frequency bands and the FFT bins they cover.

    Example:
        rhythmscope bands --sample-rate 48000 --fft-size 1024
    """
    try:
        config = validate_analyzer_config(
            AnalyzerConfig(fft_size=fft_size, sample_rate=sample_rate)
        )
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)
    table = build_range_table(config.frequency_ranges, config.sample_rate, config.fft_size)
    Console().print(table)


if __name__ == "__main__":
    cli()
