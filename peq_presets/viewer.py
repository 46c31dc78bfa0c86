from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from .config import RESPONSE_FREQ_RANGE_HZ
from .presets import Preset
from .response import ResponseSynthesizer

DB_RANGE = 24.0  # visible ±12 dB window
FREQ_TICKS = [20, 50, 100, 200, 500, 1000, 2000, 5000, 10000, 20000]


def _tick_label(freq: float) -> str:
    return f"{freq / 1000:g}k" if freq >= 1000 else f"{freq:g}"


class ResponseViewer:
    """Log-frequency plot of a preset's synthesized magnitude curve."""

    def __init__(self, synthesizer: Optional[ResponseSynthesizer] = None, *, figsize=(10, 4)):
        self.synthesizer = synthesizer or ResponseSynthesizer()
        self._setup_figure(figsize)

    # ------------------------------------------------------------------
    def _setup_figure(self, figsize):
        self.fig, self.ax = plt.subplots(figsize=figsize)
        (self.line,) = self.ax.semilogx([], [], lw=2.0, color="#4a90e2")
        self.ax.axhline(0.0, color="0.6", lw=0.8, ls="--")
        self.ax.set_xlim(*RESPONSE_FREQ_RANGE_HZ)
        self.ax.set_ylim(-DB_RANGE / 2, DB_RANGE / 2)
        self.ax.set_xticks(FREQ_TICKS)
        self.ax.set_xticklabels([_tick_label(f) for f in FREQ_TICKS])
        self.ax.set_xlabel("Frequency (Hz)")
        self.ax.set_ylabel("Gain (dB)")
        self.ax.grid(True, which="both", alpha=0.25)
        self.fig.tight_layout()

    # ------------------------------------------------------------------
    def plot(self, preset: Preset) -> np.ndarray:
        """Draw *preset* and return the magnitude curve that was drawn."""
        freqs, magnitude = self.synthesizer.response(preset)
        self.line.set_data(freqs, magnitude)
        peak = float(np.max(np.abs(magnitude))) if magnitude.size else 0.0
        half = max(DB_RANGE / 2, np.ceil(peak / 6.0) * 6.0)
        self.ax.set_ylim(-half, half)
        title = preset.name
        if preset.preamp:
            title += f"  (preamp {preset.preamp:+.1f} dB)"
        self.ax.set_title(title)
        return magnitude

    def save(self, path: str | Path) -> None:
        self.fig.savefig(path)

    def show(self):
        plt.show()

    def close(self):
        plt.close(self.fig)
