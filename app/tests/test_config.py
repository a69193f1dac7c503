from chip8vm import SpriteRowMode
from chip8vm.util.config import (
    DEFAULT_CONFIG,
    debug_from_config,
    keymap_from_config,
    load_config,
    quirks_from_config,
)


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "config.toml")
    assert cfg == DEFAULT_CONFIG
    assert cfg is not DEFAULT_CONFIG


def test_overrides_are_merged(tmp_path):
    file = tmp_path / "config.toml"
    file.write_text(
        '[general]\nscale = 8\n\n[quirks]\nsprite_rows = "wrap"\nraw_shift_flag = true\n\n[keyboard]\n"A" = "z"\n',
        encoding="utf-8",
    )
    cfg = load_config(file)
    assert cfg["general"]["scale"] == 8
    assert cfg["general"]["steps_per_second"] == 60
    assert cfg["keyboard"]["A"] == "z"
    assert cfg["keyboard"]["0"] == "0"

    quirks = quirks_from_config(cfg)
    assert quirks.sprite_rows is SpriteRowMode.Wrap
    assert quirks.raw_shift_flag
    assert not quirks.shift_uses_vy


def test_invalid_values_fall_back_to_defaults(tmp_path, caplog):
    file = tmp_path / "config.toml"
    file.write_text("[general]\nscale = -1\n", encoding="utf-8")
    cfg = load_config(file)
    assert cfg == DEFAULT_CONFIG
    assert "general.scale" in caplog.text


def test_broken_toml_falls_back_to_defaults(tmp_path):
    file = tmp_path / "config.toml"
    file.write_text("[general\n", encoding="utf-8")
    assert load_config(file) == DEFAULT_CONFIG


def test_debug_and_keymap():
    debug = debug_from_config(DEFAULT_CONFIG)
    assert not debug.Logging
    assert not debug.HaltOn.UnimplementedOpcode

    keymap = keymap_from_config(DEFAULT_CONFIG)
    assert keymap["a"] == 0xA
    assert keymap["0"] == 0x0
    assert len(keymap) == 16
