import json

import pytest

from peq_presets.__main__ import build_parser, main


@pytest.fixture
def autoeq_file(tmp_path, autoeq_text):
    path = tmp_path / "HD600 ParametricEQ.txt"
    path.write_text(autoeq_text)
    return path


@pytest.mark.parametrize("content, expected", [
    (None, "autoeq-text"),
    ('{"name": "n", "bands": [{"frequency": 100, "gain": 1}]}', "native"),
    ('{"eq": {"bands": []}}', "qudelix"),
    ('{"EQSettings": {"bands": []}}', "poweramp"),
])
def test_detect(tmp_path, autoeq_file, capsys, content, expected):
    path = autoeq_file
    if content is not None:
        path = tmp_path / "preset.json"
        path.write_text(content)
    assert main(["detect", str(path)]) == 0
    assert capsys.readouterr().out.strip() == expected


def test_convert_to_stdout(autoeq_file, capsys):
    assert main(["convert", str(autoeq_file), "--to", "autoeq"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["name"] == "HD600"
    assert data["preamp"] == -3.0
    assert len(data["filters"]) == 2


def test_convert_into_directory(tmp_path, autoeq_file):
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    assert main(["convert", str(autoeq_file), "--to", "poweramp", "-o", str(out_dir)]) == 0
    assert (out_dir / "hd600_poweramp.xml").read_text().startswith("<?xml")


def test_plot_save(tmp_path, autoeq_file):
    png = tmp_path / "curve.png"
    assert main(["plot", str(autoeq_file), "--save", str(png)]) == 0
    assert png.exists()


def test_errors_exit_nonzero(tmp_path, capsys):
    path = tmp_path / "junk.txt"
    path.write_text("just words\n")
    assert main(["convert", str(path)]) == 1
    assert capsys.readouterr().err.startswith("error: No valid filters found")


def test_library_commands(tmp_path, autoeq_file, capsys):
    store = str(tmp_path / "lib")
    assert main(["library", "--store", store, "add", str(autoeq_file)]) == 0
    entry_id = capsys.readouterr().out.split()[-1]
    assert entry_id.startswith("hd600-")

    assert main(["library", "--store", store, "favorite", entry_id]) == 0
    assert capsys.readouterr().out.strip() == f"{entry_id}: favorite"

    assert main(["library", "--store", store, "search", "hd6"]) == 0
    listed = capsys.readouterr().out
    assert listed.startswith("*") and "HD600" in listed

    assert main(["library", "--store", store, "remove", entry_id]) == 0
    capsys.readouterr()
    assert main(["library", "--store", store, "list"]) == 0
    assert capsys.readouterr().out == ""
    assert main(["library", "--store", store, "remove", entry_id]) == 1


def test_store_defaults_to_env(tmp_path, monkeypatch, autoeq_file):
    monkeypatch.setenv("PEQ_PRESETS_HOME", str(tmp_path / "home"))
    assert main(["library", "add", str(autoeq_file)]) == 0
    assert (tmp_path / "home" / "peq-presets-preset-library.json").exists()


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
