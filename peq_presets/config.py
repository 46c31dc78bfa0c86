"""Shared constants: canonical ranges, band layouts, format limits and storage keys."""
from __future__ import annotations

import os
from pathlib import Path

# Canonical band model ranges
FREQ_RANGE_HZ = (20.0, 20000.0)
GAIN_RANGE_DB = (-24.0, 24.0)
Q_RANGE = (0.1, 10.0)
PREAMP_RANGE_DB = (-24.0, 24.0)

DEFAULT_PEAKING_Q = 1.0
DEFAULT_SHELF_Q = 0.707

# Reference 10-band layout (Hz, type). Used to pad under-filled imports.
BAND_LAYOUT = [
    (32.0, "lowshelf"),
    (64.0, "peaking"),
    (125.0, "peaking"),
    (250.0, "peaking"),
    (500.0, "peaking"),
    (1000.0, "peaking"),
    (2000.0, "peaking"),
    (4000.0, "peaking"),
    (8000.0, "peaking"),
    (16000.0, "highshelf"),
]

# AutoEQ reduction
MAX_SIGNIFICANT_FILTERS = 10
TARGET_BAND_COUNT = 10
FLAT_GAIN_EPSILON = 0.01
FALLBACK_PAD_BASE_HZ = 1000.0
FALLBACK_PAD_STEP_HZ = 100.0

# PowerAmp uses fixed 10-band frequencies (Hz)
POWERAMP_FREQUENCIES = [60, 170, 310, 600, 1000, 3000, 6000, 12000, 14000, 16000]
POWERAMP_EXTREME_GAIN_DB = 20.0

# Qudelix 5K hardware limits
QUDELIX_FREQ_RANGE_HZ = (20.0, 20000.0)
QUDELIX_GAIN_RANGE_DB = (-12.0, 12.0)
QUDELIX_PREAMP_RANGE_DB = (-12.0, 12.0)
QUDELIX_Q_RANGE = (0.1, 10.0)
QUDELIX_MAX_BANDS = 10

# Response curve
RESPONSE_POINTS = 512
RESPONSE_FREQ_RANGE_HZ = (20.0, 20000.0)
RESPONSE_CLAMP_DB = 48.0
RESPONSE_SKIP_GAIN_DB = 0.001
RESPONSE_CACHE_SIZE = 64

# Persistence
STORAGE_PREFIX = "peq-presets"
STORAGE_KEYS = {
    "peq_state": f"{STORAGE_PREFIX}-peq-state",
    "preset_library": f"{STORAGE_PREFIX}-preset-library",
    "user_preferences": f"{STORAGE_PREFIX}-prefs",
}
STATE_VERSION = "1.0"
STATE_MAX_AGE_DAYS = 30
SAVE_DEBOUNCE_SECONDS = 1.0

HOME_ENV_VAR = "PEQ_PRESETS_HOME"


def default_store_dir(passed: str | Path | None = None) -> Path:
    """Priority: explicit argument > PEQ_PRESETS_HOME > ~/.peq_presets."""
    if passed:
        return Path(passed).expanduser()
    env = os.environ.get(HOME_ENV_VAR, "").strip()
    if env:
        return Path(env).expanduser()
    return Path.home() / ".peq_presets"
