from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Iterable, Tuple

import numpy as np

from .config import (
    RESPONSE_CACHE_SIZE,
    RESPONSE_CLAMP_DB,
    RESPONSE_FREQ_RANGE_HZ,
    RESPONSE_POINTS,
    RESPONSE_SKIP_GAIN_DB,
)
from .presets import Band, FilterType, Preset

__all__ = ["frequency_grid", "band_response", "evaluate", "synthesize", "ResponseSynthesizer"]

Curve = Tuple[np.ndarray, np.ndarray]

# Helper --------------------------------------------------------------------

def frequency_grid(points: int = RESPONSE_POINTS) -> np.ndarray:
    """Return *points* log-spaced frequencies from 20 Hz to 20 kHz."""
    if points < 2:
        raise ValueError(f"need at least 2 grid points, got {points}")
    log_min, log_max = np.log10(RESPONSE_FREQ_RANGE_HZ[0]), np.log10(RESPONSE_FREQ_RANGE_HZ[1])
    i = np.arange(points, dtype=np.float64)
    return 10.0 ** (log_min + i / (points - 1) * (log_max - log_min))


def _peaking(ratio: np.ndarray, gain: float, q: float) -> np.ndarray:
    # Lorentzian bell over log2 distance; bandwidth in octaves is 2/Q.
    bandwidth = 2.0 / q
    norm_dist = np.abs(np.log2(ratio)) / (bandwidth / 2.0)
    bell = gain * (1.0 / (1.0 + (2.0 * norm_dist) ** 2))
    return np.where(norm_dist <= 0.01, gain, bell)


def _lowshelf(ratio: np.ndarray, gain: float, q: float) -> np.ndarray:
    above = np.maximum(ratio, 1.0)
    return np.where(ratio <= 1.0, gain, gain / (1.0 + np.log2(above) * q))


def _highshelf(ratio: np.ndarray, gain: float, q: float) -> np.ndarray:
    below = np.maximum(1.0 / ratio, 1.0)
    return np.where(ratio >= 1.0, gain, gain / (1.0 + np.log2(below) * q))


def _lowpass(ratio: np.ndarray, gain: float, q: float) -> np.ndarray:
    # Q acts as a slope multiplier in 6 dB/octave units.
    above = np.maximum(ratio, 1.0)
    return np.where(ratio <= 1.0, 0.0, -6.0 * np.log2(above) * q)


def _highpass(ratio: np.ndarray, gain: float, q: float) -> np.ndarray:
    below = np.maximum(1.0 / ratio, 1.0)
    return np.where(ratio >= 1.0, 0.0, -6.0 * np.log2(below) * q)


_SHAPES = {
    FilterType.PEAKING: _peaking,
    FilterType.LOWSHELF: _lowshelf,
    FilterType.HIGHSHELF: _highshelf,
    FilterType.LOWPASS: _lowpass,
    FilterType.HIGHPASS: _highpass,
}

# -----------------------
# Response utilities
# -----------------------

def band_response(band: Band, freqs: np.ndarray) -> np.ndarray:
    """Contribution of one band in dB at each of *freqs*.

    Bands with ``|gain| < 0.001`` contribute nothing, pass filters included.
    Types without a shape (notch, unknown) contribute 0 dB.
    """
    freqs = np.asarray(freqs, dtype=np.float64)
    shape = _SHAPES.get(band.type)
    if (
        shape is None
        or abs(band.gain) < RESPONSE_SKIP_GAIN_DB
        or band.frequency <= 0
        or band.q <= 0
    ):
        return np.zeros_like(freqs)
    ratio = freqs / band.frequency
    return shape(ratio, float(band.gain), float(band.q))


def evaluate(bands: Iterable[Band], freqs: np.ndarray) -> np.ndarray:
    """Summed magnitude of *bands* at *freqs*, clamped to ±48 dB."""
    freqs = np.asarray(freqs, dtype=np.float64)
    total = np.zeros_like(freqs)
    for band in bands:
        total += band_response(band, freqs)
    return np.clip(total, -RESPONSE_CLAMP_DB, RESPONSE_CLAMP_DB)


def synthesize(bands: Iterable[Band], points: int = RESPONSE_POINTS) -> Curve:
    """Return ``(frequencies, magnitude_db)`` sampled on the log grid."""
    freqs = frequency_grid(points)
    return freqs, evaluate(bands, freqs)


class ResponseSynthesizer:
    """Response-curve service holding its own bounded cache.

    Construct once in the host application and pass it to whatever draws
    curves. Returned arrays are read-only because they are shared between
    callers.
    """

    def __init__(self, *, points: int = RESPONSE_POINTS, cache_size: int = RESPONSE_CACHE_SIZE):
        self.points = points
        self.cache_size = cache_size
        self.frequencies = frequency_grid(points)
        self.frequencies.flags.writeable = False
        self._cache: "OrderedDict[Tuple[Band, ...], np.ndarray]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    # ---- queries ----
    def response(self, bands: Iterable[Band] | Preset) -> Curve:
        if isinstance(bands, Preset):
            bands = bands.bands
        key = tuple(bands)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                self.hits += 1
                return self.frequencies, cached

        magnitude = evaluate(key, self.frequencies)
        magnitude.flags.writeable = False
        with self._lock:
            self.misses += 1
            self._cache[key] = magnitude
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return self.frequencies, magnitude

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
