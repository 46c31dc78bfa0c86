import json

import pytest

from peq_presets.errors import MissingEqData, ValidationError
from peq_presets.presets import Band, FilterType, Preset, PresetSource
from peq_presets.qudelix import (
    from_qudelix,
    optimize_for_qudelix,
    to_qudelix,
    to_qudelix_json,
    validate_qudelix_preset,
)

CREATED = "2024-05-01T12:00:00.000+00:00"


def test_export_shape():
    preset = Preset(name="Q", preamp=-3.04, bands=(
        Band(10.0, 2.0),
        Band(99.5, 1.26, 0.707, FilterType.LOWSHELF),
        Band(1000.0, 0.0, 1.234),
        Band(15000.0, -4.0, 2.0, FilterType.HIGHPASS),
    ))
    data = to_qudelix(preset, created=CREATED)

    assert data["created"] == CREATED
    assert data["eq"]["preamp"] == -3.0
    assert data["metadata"] == {"source": "peq-presets", "originalBandCount": 4, "exportedBandCount": 3}
    assert data["eq"]["bands"] == [
        {"id": 0, "frequency": 100, "gain": 1.3, "q": 0.71, "type": "low_shelf", "enabled": True},
        {"id": 1, "frequency": 1000, "gain": 0.0, "q": 1.23, "type": "bell", "enabled": False},
        {"id": 2, "frequency": 15000, "gain": -4.0, "q": 2.0, "type": "high_pass", "enabled": True},
    ]


def test_notch_exports_as_bell():
    data = to_qudelix(Preset(name="n", bands=(Band(500.0, -3.0, 5.0, FilterType.NOTCH),)), created=CREATED)
    assert data["eq"]["bands"][0]["type"] == "bell"


def test_export_ties_round_away_from_zero():
    data = to_qudelix(Preset(name="t", preamp=-0.25, bands=(Band(60.0, 2.25, 0.125),)), created=CREATED)
    assert data["eq"]["preamp"] == -0.3
    assert data["eq"]["bands"][0]["gain"] == 2.3
    assert data["eq"]["bands"][0]["q"] == 0.13


def test_import():
    payload = {
        "name": "From DAC",
        "eq": {
            "preamp": -4,
            "bands": [
                {"frequency": 8000, "gain": 2, "q": 0.7, "type": "high_shelf"},
                {"frequency": 60, "gain": 3, "q": 0.7, "type": "low_shelf"},
                {"frequency": 1000, "gain": -1, "type": "mystery"},
            ],
        },
    }
    preset = from_qudelix(json.dumps(payload))
    assert preset.name == "From DAC"
    assert preset.source is PresetSource.QUDELIX
    assert preset.preamp == -4.0
    assert [(b.frequency, b.type) for b in preset.bands] == [
        (60.0, FilterType.LOWSHELF),
        (1000.0, FilterType.PEAKING),
        (8000.0, FilterType.HIGHSHELF),
    ]
    assert preset.bands[1].q == 1.0


def test_import_without_preamp():
    preset = from_qudelix({"eq": {"bands": [{"frequency": 100, "gain": 1}]}})
    assert preset.preamp == 0.0
    assert preset.name == "Qudelix Preset"


@pytest.mark.parametrize("data", ["{not json", {"name": "x"}, {"eq": {}}, {"eq": {"bands": "none"}}, "[]"])
def test_missing_eq_data(data):
    with pytest.raises(MissingEqData):
        from_qudelix(data)


def test_bad_band_entry():
    with pytest.raises(ValidationError) as exc:
        from_qudelix({"eq": {"bands": [{"gain": 1}]}})
    assert exc.value.field == "eq.bands[0].frequency"


@pytest.mark.parametrize("eq, field", [
    ({"preamp": "x", "bands": []}, "eq.preamp"),
    ({"bands": [{"frequency": "low"}]}, "eq.bands[0].frequency"),
    ({"bands": [{"frequency": 100, "gain": [1]}]}, "eq.bands[0].gain"),
    ({"bands": [{"frequency": 100, "q": "narrow"}]}, "eq.bands[0].q"),
])
def test_non_numeric_fields(eq, field):
    with pytest.raises(ValidationError) as exc:
        from_qudelix({"eq": eq})
    assert exc.value.field == field


def test_unhashable_type_falls_back_to_bell():
    preset = from_qudelix({"eq": {"bands": [{"frequency": 100, "gain": 1, "type": ["low_shelf"]}]}})
    assert preset.bands[0].type is FilterType.PEAKING


def test_optimize_properties():
    gains = [1.0, -15.0, 2.0, 0.5, 13.0, -3.0, 4.0, 0.0, 6.0, -7.0, 8.0, 0.2]
    bands = tuple(Band(100.0 * (12 - i), g, 12.0 if i == 0 else 1.0) for i, g in enumerate(gains))
    optimized = optimize_for_qudelix(Preset(name="big", preamp=-20.0, bands=bands))

    assert len(optimized.bands) == 10
    assert [b.frequency for b in optimized.bands] == sorted(b.frequency for b in optimized.bands)
    assert all(-12.0 <= b.gain <= 12.0 for b in optimized.bands)
    assert all(0.1 <= b.q <= 10.0 for b in optimized.bands)
    assert optimized.preamp == -12.0
    assert {b.gain for b in optimized.bands} == {1.0, -12.0, 2.0, 0.5, 12.0, -3.0, 4.0, 6.0, -7.0, 8.0}


def test_optimize_small_preset_only_clamps():
    preset = Preset(name="s", bands=(Band(2000.0, 3.0), Band(100.0, -20.0)))
    optimized = optimize_for_qudelix(preset)
    assert optimized.bands == (Band(100.0, -12.0), Band(2000.0, 3.0))


def test_export_json_round_trip_keeps_bands():
    preset = Preset(name="rt", preamp=-2.0, bands=(Band(100.0, 3.0, 0.7, FilterType.LOWSHELF), Band(3000.0, -2.5, 1.5)))
    back = from_qudelix(to_qudelix_json(preset, created=CREATED))
    assert back.bands == preset.bands
    assert back.preamp == preset.preamp


def test_validate_warnings():
    preset = Preset(name="w", preamp=13.0, bands=(Band(100.0, 14.0, 11.0),))
    assert len(validate_qudelix_preset(preset)["warnings"]) == 3
