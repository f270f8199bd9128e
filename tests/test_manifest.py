import json

from helpers import ScriptedOperator, make_tileset
from slice_tileset import (
    TileDictionary,
    decode_pixel_data,
    encode_pixel_data,
    load_manifest,
    slice_tileset,
    write_manifest,
)


def test_pixel_data_uses_buffer_shape():
    assert encode_pixel_data(b"\x00\x7f\xff") == {"type": "Buffer", "data": [0, 127, 255]}
    assert decode_pixel_data({"type": "Buffer", "data": [1, 2]}) == b"\x01\x02"


def test_manifest_round_trip(tmp_path):
    img = make_tileset([[(10, 200, 30), (250, 250, 250)], [(10, 200, 30), (0, 0, 255)]])
    dictionary = TileDictionary(tmp_path / "d.json")
    operator = ScriptedOperator(["grass", "no", "no",
                                 "snow", "yes", "no",
                                 "water", "no", "yes"])
    result = slice_tileset(img, dictionary, reference_dir=tmp_path, ask=operator)
    path = tmp_path / "tileset.json"

    assert write_manifest(result.tiles, path) is True
    loaded = load_manifest(path)

    assert loaded == result.tiles
    assert [list(t) for t in json.loads(path.read_text(encoding="utf-8"))] == [
        ["name", "pixel_data", "coordinates", "is_wall", "is_transition"]
    ] * 4


def test_manifest_write_failure_is_reported(tmp_path, capsys):
    target = tmp_path / "out"
    target.mkdir()

    assert write_manifest([], target) is False
    assert "ERROR: Could not write" in capsys.readouterr().err
