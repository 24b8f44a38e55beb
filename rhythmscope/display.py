"""Rich terminal rendering of rhythm analysis results."""

from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import DEFAULT_FREQUENCY_RANGES
from .features import band_bin_range
from .models import FrequencyBand, FrequencyRange, OnsetKind, SessionSummary

BLOCKS = " ▁▂▃▄▅▆▇█"
COLORS = ["blue", "cyan", "green", "yellow", "red"]
ONSET_COLORS = {
    OnsetKind.BEAT: "bold white",
    OnsetKind.KICK: "red",
    OnsetKind.SNARE: "yellow",
    OnsetKind.HIHAT: "cyan",
}


def _level_color(level: float) -> str:
    """Map a normalized level (0-1) to a color name."""
    idx = min(int(level * len(COLORS)), len(COLORS) - 1)
    return COLORS[idx]


def _format_time(seconds: float) -> str:
    """Format seconds as M:SS."""
    m = int(seconds) // 60
    s = int(seconds) % 60
    return f"{m}:{s:02d}"


def _level_meter(level: float, width: int = 20) -> Text:
    """Horizontal bar of full blocks with a partial block for the remainder."""
    level = max(0.0, min(1.0, level))
    cells = level * width
    full = int(cells)
    text = Text("█" * full, style=_level_color(level))
    if full < width:
        partial = BLOCKS[int((cells - full) * (len(BLOCKS) - 1))]
        text.append(partial, style=_level_color(level))
        text.append(" " * (width - full - 1))
    return text


def build_band_table(band_means: Dict[str, float], title: Optional[str] = None) -> Table:
    """Table of mean band levels with a meter per band."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Band")
    table.add_column("Range", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("")
    for band in FrequencyBand:
        level = band_means.get(band.value, 0.0)
        rng = DEFAULT_FREQUENCY_RANGES[band]
        table.add_row(
            band.value,
            f"{rng.min_freq:g}-{rng.max_freq:g} Hz",
            f"{level:.3f}",
            _level_meter(level),
        )
    return table


def build_range_table(
    frequency_ranges: Dict[FrequencyBand, FrequencyRange],
    sample_rate: float,
    fft_size: int,
) -> Table:
    """Table of band frequency ranges and the FFT bins they map onto."""
    nyquist = sample_rate / 2
    bin_count = fft_size // 2
    table = Table(
        title=f"Frequency bands ({sample_rate:g} Hz, fft_size {fft_size})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Band")
    table.add_column("Min Hz", justify="right")
    table.add_column("Max Hz", justify="right")
    table.add_column("Bins", justify="right")
    for band in FrequencyBand:
        rng = frequency_ranges[band]
        min_bin, max_bin = band_bin_range(rng.min_freq, rng.max_freq, nyquist, bin_count)
        bins = f"{min_bin}-{max_bin}" if min_bin < max_bin else "empty"
        table.add_row(band.value, f"{rng.min_freq:g}", f"{rng.max_freq:g}", bins)
    return table


def _build_onset_lane(times: List[float], duration: float, width: int, style: str) -> Text:
    """One row of the timeline: a mark in every column holding an onset."""
    cells = [" "] * width
    if duration > 0:
        for t in times:
            pos = min(int(t / 1000.0 / duration * width), width - 1)
            cells[pos] = "|"
    line = Text("".join(cells))
    line.stylize(style, 0, width)
    return line


def _build_ruler(duration: float, width: int) -> Text:
    """Timeline ruler with a marker every ten seconds."""
    line = Text(" " * width)
    if duration <= 0:
        return line
    t = 0.0
    while t <= duration:
        pos = int(t / duration * (width - 1))
        label = _format_time(t)
        for i, ch in enumerate(label):
            p = pos + i
            if p < width:
                line.plain = line.plain[:p] + ch + line.plain[p + 1 :]
        t += 10.0
    line.stylize("dim", 0, width)
    return line


def build_timeline(summary: SessionSummary, width: int = 60) -> Panel:
    """Panel with one onset lane per kind over the length of the signal."""
    content = Text()
    for kind in OnsetKind:
        label = f"{kind.value:<6}"
        content.append(label, style="bold")
        content.append_text(
            _build_onset_lane(
                summary.onsets.get(kind.value, []), summary.duration, width, ONSET_COLORS[kind]
            )
        )
        content.append("\n")
    content.append(" " * 6)
    content.append_text(_build_ruler(summary.duration, width))
    return Panel(content, title="Onsets", expand=False)


def render_summary(
    summary: SessionSummary,
    title: Optional[str] = None,
    timeline: bool = False,
    console: Console = None,
) -> None:
    """Print band meters (and optionally the onset timeline) for a session."""
    console = console or Console()
    console.print(build_band_table(summary.band_means, title=title))
    if timeline:
        console.print(build_timeline(summary))
