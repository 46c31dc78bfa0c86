import json

import pytest

from peq_presets.errors import ValidationError
from peq_presets.presets import (
    Band,
    FilterType,
    Preset,
    PresetSource,
    load_preset,
    normalize_preset,
    recommended_preamp,
    round_half_away,
    round_half_up,
    save_preset,
    validate_preset,
)


def _raw_preset(**overrides):
    data = {
        "name": "  Warm  ",
        "preamp": -40,
        "bands": [
            {"frequency": 30000, "gain": 3, "Q": 20, "type": "peaking"},
            {"frequency": 5, "gain": -50, "Q": 0.01, "type": "bogus"},
            {"frequency": 1000, "gain": 1.5, "Q": 1.2, "type": "highshelf"},
        ],
    }
    data.update(overrides)
    return data


def test_normalize_clamps_and_sorts():
    preset = normalize_preset(_raw_preset(), now="2024-01-01T00:00:00.000+00:00")
    assert preset.name == "Warm"
    assert preset.preamp == -24.0
    assert [b.frequency for b in preset.bands] == [20.0, 1000.0, 20000.0]
    low, mid, high = preset.bands
    assert (low.gain, low.q, low.type) == (-24.0, 0.1, FilterType.PEAKING)
    assert mid.type is FilterType.HIGHSHELF
    assert (high.gain, high.q) == (3.0, 10.0)
    assert preset.import_date == "2024-01-01T00:00:00.000+00:00"


def test_normalize_is_idempotent():
    once = normalize_preset(_raw_preset())
    twice = normalize_preset(once)
    assert once == twice
    assert once.import_date == twice.import_date


def test_blank_name_gets_default():
    assert normalize_preset({"name": "   ", "bands": []}).name == "Untitled Preset"


def test_missing_q_uses_type_default():
    preset = normalize_preset({"name": "x", "bands": [
        {"frequency": 100, "gain": 1, "type": "lowshelf"},
        {"frequency": 200, "gain": 1},
    ]})
    assert preset.bands[0].q == 0.707
    assert preset.bands[1].q == 1.0


def test_sort_is_stable_for_equal_frequencies():
    preset = normalize_preset({"name": "x", "bands": [
        {"frequency": 500, "gain": 1, "Q": 1},
        {"frequency": 100, "gain": 0, "Q": 1},
        {"frequency": 500, "gain": 2, "Q": 1},
    ]})
    assert [b.gain for b in preset.bands] == [0, 1, 2]


def test_band_aliases_and_preamp_gain():
    preset = Preset.from_dict({
        "name": "alias",
        "preampGain": -2,
        "bands": [{"fc": 250, "gain_db": 3, "q": 2}],
    })
    assert preset.preamp == -2.0
    assert preset.bands[0] == Band(frequency=250.0, gain=3.0, q=2.0)


@pytest.mark.parametrize("bad", ["loud", None, True, float("nan")])
def test_non_numeric_frequency_rejected(bad):
    with pytest.raises(ValidationError) as exc:
        Preset.from_dict({"name": "x", "bands": [{"frequency": bad, "gain": 0}]})
    assert exc.value.field == "bands[0].frequency"


def test_validate_accepts_canonical_preset():
    validate_preset(normalize_preset(_raw_preset()))


@pytest.mark.parametrize("data, field", [
    ({"name": "", "bands": []}, "name"),
    ({"name": "x", "preamp": "0", "bands": []}, "preamp"),
    ({"name": "x", "bands": {}}, "bands"),
    ({"name": "x", "bands": [{"frequency": 10, "gain": 0, "Q": 1, "type": "peaking"}]}, "bands[0].frequency"),
    ({"name": "x", "bands": [{"frequency": 100, "gain": 30, "Q": 1, "type": "peaking"}]}, "bands[0].gain"),
    ({"name": "x", "bands": [{"frequency": 100, "gain": 0, "Q": 11, "type": "peaking"}]}, "bands[0].Q"),
    ({"name": "x", "bands": [{"frequency": 100, "gain": 0, "Q": 1, "type": "bell"}]}, "bands[0].type"),
    ({"name": "x", "bands": [{"frequency": 100, "gain": 0, "Q": 1, "type": ["peaking"]}]}, "bands[0].type"),
])
def test_validate_reports_field(data, field):
    with pytest.raises(ValidationError) as exc:
        validate_preset(data)
    assert exc.value.field == field


def test_unknown_source_becomes_user():
    assert normalize_preset({"name": "x", "bands": [], "source": "winamp"}).source is PresetSource.USER


def test_recommended_preamp():
    bands = [Band(100, 3.5), Band(200, -6)]
    assert recommended_preamp(bands) == -3.5
    assert recommended_preamp([Band(100, -2)]) == 0.0
    assert recommended_preamp([]) == 0.0


@pytest.mark.parametrize("value, expected", [(99.5, 100), (100.4, 100), (-0.5, 0), (0.49, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


@pytest.mark.parametrize("value, digits, expected", [
    (2.25, 1, 2.3),
    (-0.25, 1, -0.3),
    (0.125, 2, 0.13),
    (1.234, 2, 1.23),
    (0.7, 2, 0.7),
])
def test_round_half_away(value, digits, expected):
    assert round_half_away(value, digits) == expected


def test_round_half_away_drops_negative_zero():
    assert str(round_half_away(-0.04, 1)) == "0.0"


def test_save_and_load_preset(tmp_path):
    preset = normalize_preset(_raw_preset())
    path = tmp_path / "warm.json"
    save_preset(path, preset)
    assert json.loads(path.read_text())["bands"][0]["Q"] == 0.1
    assert load_preset(path) == preset
