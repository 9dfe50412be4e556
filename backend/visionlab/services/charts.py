"""
Histogram Charts
================
Renders a Histogram as a three-series bar chart (one bar per intensity
value) in a light or dark palette.
"""

import io
from dataclasses import dataclass

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from visionlab.core.config import settings
from visionlab.core.histogram import BINS, Histogram


@dataclass(frozen=True)
class ChartTheme:
    """Chart color palette."""
    background: str
    text: str
    tick: str
    grid: str
    border: str


THEMES = {
    "light": ChartTheme(
        background="#ffffff",
        text="#374151",
        tick="#6b7280",
        grid="#e5e7eb",
        border="#d1d5db",
    ),
    "dark": ChartTheme(
        background="#1f2937",
        text="#e5e7eb",
        tick="#9ca3af",
        grid="#374151",
        border="#4b5563",
    ),
}

# (label, fill RGBA, edge RGBA) per channel
SERIES = (
    ("Red", (239 / 255, 68 / 255, 68 / 255, 0.6), (239 / 255, 68 / 255, 68 / 255, 1.0)),
    ("Green", (34 / 255, 197 / 255, 94 / 255, 0.6), (34 / 255, 197 / 255, 94 / 255, 1.0)),
    ("Blue", (59 / 255, 130 / 255, 246 / 255, 0.6), (59 / 255, 130 / 255, 246 / 255, 1.0)),
)


def render_histogram_chart(
    histogram: Histogram,
    title: str = "Histogram",
    theme: str = "light",
    dpi: int | None = None
) -> io.BytesIO:
    """
    Draw the histogram as a PNG bar chart.

    Args:
        histogram: Per-channel counts to plot
        title: Chart title
        theme: "light" or "dark"
        dpi: Output resolution (defaults to settings.chart_dpi)

    Returns:
        Rewound PNG stream
    """
    if theme not in THEMES:
        raise ValueError(f"Unknown chart theme: {theme} (expected one of {sorted(THEMES)})")
    palette = THEMES[theme]

    # Detached from pyplot: no shared figure registry
    fig = Figure(figsize=(8, 4))
    FigureCanvasAgg(fig)
    ax = fig.add_subplot()
    fig.patch.set_facecolor(palette.background)
    ax.set_facecolor(palette.background)

    x = np.arange(BINS)
    for (label, fill, edge), counts in zip(SERIES, histogram.channels):
        ax.bar(x, counts, width=1.0, color=fill, edgecolor=edge, linewidth=0.3, label=label)

    ax.set_xlim(-0.5, BINS - 0.5)
    ax.set_title(title, color=palette.text, fontsize=12)
    ax.set_xlabel("Pixel Value", color=palette.tick, fontsize=9)
    ax.set_ylabel("Frequency", color=palette.tick, fontsize=9)
    ax.tick_params(colors=palette.tick, labelsize=8)
    ax.grid(axis='y', color=palette.grid, linewidth=0.5)
    ax.set_axisbelow(True)
    for spine in ax.spines.values():
        spine.set_color(palette.border)

    legend = ax.legend(loc='upper right', fontsize=8, frameon=False)
    for text in legend.get_texts():
        text.set_color(palette.text)

    fig.tight_layout()
    buf = io.BytesIO()
    fig.savefig(buf, format='png', dpi=dpi or settings.chart_dpi,
                facecolor=palette.background, edgecolor='none')
    buf.seek(0)

    return buf
