from hipsmapper.properties import (
    HipsProperties,
    parse_properties,
    read_properties,
    write_properties,
)


def test_to_dict_skips_unset_fields():
    properties = HipsProperties(obs_title="Sol 1463", hips_frame="horizontalLocal", extra={"hips_order": "3"})
    assert properties.to_dict() == {
        "obs_title": "Sol 1463",
        "hips_frame": "horizontalLocal",
        "hips_order": "3",
    }


def test_from_dict_splits_unknown_keys():
    properties = HipsProperties.from_dict({"creator_did": "ivo://test", "hips_tile_width": "512"})
    assert properties.creator_did == "ivo://test"
    assert properties.extra == {"hips_tile_width": "512"}


def test_parse_properties():
    text = "#HiPS properties file\n\ncreator_did   = ivo://x/y\nobs_title = A = B\nbroken line\n"
    assert parse_properties(text) == {"creator_did": "ivo://x/y", "obs_title": "A = B"}


def test_write_and_read(tmp_path):
    path = tmp_path / "hips" / "properties"
    values = {"hips_order": "3", "hips_tile_format": "png", "obs_title": "Mars"}
    write_properties(path, values)
    assert read_properties(path) == values
    assert path.read_text().splitlines()[0].startswith("hips_order       = 3")
