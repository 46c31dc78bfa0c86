import matplotlib

matplotlib.use("Agg")

import pytest

from peq_presets.store import MemoryStore

SAMPLE_AUTOEQ_TEXT = """\
# Sennheiser HD 600
Preamp: -3.0 dB
Filter 1: ON PK Fc 100 Hz Gain 4.0 dB Q 0.70
Filter 2: ON LSC Fc 50 Hz Gain -2.0 dB Q 0.71
"""

NOW = 1_700_000_000.0  # 2023-11-14T22:13:20Z


class FakeClock:
    def __init__(self, start=NOW):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def autoeq_text():
    return SAMPLE_AUTOEQ_TEXT
