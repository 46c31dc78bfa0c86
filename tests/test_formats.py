import json

import pytest

from peq_presets.errors import NoFiltersFound, UnknownFormat, ValidationError
from peq_presets.formats import (
    EXPORT_FORMATS,
    convert_to_native,
    export_preset,
    import_preset_text,
    sanitize_filename,
    sanitize_filename_keep_spaces,
    try_import_preset,
)
from peq_presets.presets import Band, FilterType, Preset, PresetSource


def test_text_import_uses_filename(autoeq_text):
    preset = import_preset_text(autoeq_text, "sennheiser_hd600 ParametricEQ.txt")
    assert preset.name == "Sennheiser Hd600"
    assert preset.source is PresetSource.AUTOEQ
    assert len(preset.bands) == 10


def test_text_import_without_filename(autoeq_text):
    assert import_preset_text(autoeq_text).name == "AutoEq Preset"


def test_autoeq_json_import():
    text = json.dumps({"name": "J", "preamp": -1.5, "filters": [{"type": "HSC", "fc": 9000, "gain": 2, "Q": 0.7}]})
    preset = import_preset_text(text, "j.json")
    assert preset.name == "J"
    assert preset.preamp == -1.5
    assert Band(9000.0, 2.0, 0.7, FilterType.HIGHSHELF) in preset.bands


def test_native_import_normalizes():
    text = json.dumps({"name": "N", "bands": [{"frequency": 2000, "gain": 40, "Q": 1, "type": "peaking"},
                                              {"frequency": 100, "gain": 1, "Q": 1, "type": "peaking"}]})
    preset = import_preset_text(text)
    assert [b.frequency for b in preset.bands] == [100.0, 2000.0]
    assert preset.bands[1].gain == 24.0


def test_generic_import():
    preset = convert_to_native({"bands": [{"freq": 500, "gain": -2}]})
    assert preset.name == "Imported Preset"
    assert preset.description == "Generic EQ preset"
    assert preset.source is PresetSource.GENERIC
    assert preset.bands == (Band(500.0, -2.0),)


def test_poweramp_json_import():
    preset = import_preset_text(json.dumps({"EQSettings": {"preamp": 1, "bands": [{"gain": 2}]}}))
    assert preset.source is PresetSource.POWERAMP
    assert preset.bands[0].type is FilterType.LOWSHELF


def test_qudelix_import_is_routed():
    text = json.dumps({"name": "Qx", "eq": {"preamp": -2, "bands": [{"frequency": 100, "gain": 1, "q": 1, "type": "bell"}]}})
    preset = import_preset_text(text)
    assert preset.source is PresetSource.QUDELIX
    assert preset.name == "Qx"


@pytest.mark.parametrize("text, error", [
    ("# nothing here\n", NoFiltersFound),
    ("[1, 2]", NoFiltersFound),
    ('{"hello": "world"}', UnknownFormat),
    ('{"preamp": 0, "filters": []}', UnknownFormat),
    ('{"name": "x", "bands": [{"frequency": "low"}]}', ValidationError),
    ('{"EQSettings": {"bands": [{"gain": "loud"}]}}', ValidationError),
    ('{"EQSettings": {"preamp": "x", "bands": []}}', ValidationError),
    ('{"eq": {"preamp": "x", "bands": []}}', ValidationError),
])
def test_import_errors(text, error):
    with pytest.raises(error):
        import_preset_text(text)
    result = try_import_preset(text)
    assert not result.ok
    assert isinstance(result.error, error)


def test_try_import_returns_typed_result(autoeq_text):
    ok = try_import_preset(autoeq_text, "HD600.txt")
    assert ok.ok and ok.error is None
    assert ok.message == 'Successfully imported preset "HD600"'

    failed = try_import_preset("nothing", "x.txt")
    assert not failed.ok
    assert failed.preset is None
    assert isinstance(failed.error, NoFiltersFound)
    assert failed.message.startswith("Import failed: No valid filters found")


def test_minimal_documents_import():
    assert try_import_preset(json.dumps({"preamp": 0, "filters": [{"fc": 100}]})).ok
    empty = try_import_preset(json.dumps({"EQSettings": {"bands": []}}))
    assert empty.ok
    assert empty.preset.bands == ()


PRESET = Preset(name="My Preset: v1/2", preamp=-2.0, bands=(
    Band(100.0, 3.0, 0.7, FilterType.LOWSHELF),
    Band(1000.0, 0.0),
    Band(4000.0, -2.0, 2.0),
))


@pytest.mark.parametrize("format_id, filename, mime", [
    ("native", "my_preset_v1_2.json", "application/json"),
    ("autoeq", "my_preset_v1_2_autoeq.json", "application/json"),
    ("autoeq-text", "My Preset v12 ParametricEQ.txt", "text/plain"),
    ("poweramp", "my_preset_v1_2_poweramp.xml", "application/xml"),
    ("qudelix", "my_preset_v1_2_qudelix.json", "application/json"),
])
def test_export_names_and_mime(format_id, filename, mime):
    _, name, mime_type = export_preset(PRESET, format_id)
    assert (name, mime_type) == (filename, mime)
    assert EXPORT_FORMATS[format_id]["mimeType"] == mime


@pytest.mark.parametrize("format_id", ["native", "autoeq", "autoeq-text", "qudelix"])
def test_exports_import_back(format_id):
    content, filename, _ = export_preset(PRESET, format_id)
    back = import_preset_text(content, filename)
    active = [b for b in back.bands if b.gain != 0]
    assert active == [b for b in PRESET.bands if b.gain != 0]


def test_export_unknown_format():
    with pytest.raises(ValidationError):
        export_preset(PRESET, "winamp")


@pytest.mark.parametrize("name, expected", [
    ("Bass Boost!!", "bass_boost"),
    ("  __x__ ", "x"),
    ("???", "preset"),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


def test_sanitize_keep_spaces():
    assert sanitize_filename_keep_spaces('HD  600 <"v2">') == "HD 600 v2"
    assert sanitize_filename_keep_spaces("///") == "preset"
