from __future__ import annotations

import tomllib
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Final, Mapping, MutableMapping, Optional, TypedDict, Union

from chip8vm.display import parse_color
from chip8vm.emulator import Debug, HaltOn, Quirks, SpriteRowMode
from chip8vm.logger import log as _log

config_file: Final[Path] = Path("config.toml")

# virtual key ("0".."F") -> host key name
KeyboardConfig = TypedDict(
    "KeyboardConfig",
    {
        "0": str, "1": str, "2": str, "3": str,
        "4": str, "5": str, "6": str, "7": str,
        "8": str, "9": str, "A": str, "B": str,
        "C": str, "D": str, "E": str, "F": str,
    },
)


class GeneralConfig(TypedDict):
    steps_per_second: int
    scale: int
    pixel_on: str
    pixel_off: str


class QuirksConfig(TypedDict):
    shift_uses_vy: bool
    raw_shift_flag: bool
    sprite_rows: str


class DebugConfig(TypedDict):
    trace: bool
    halt_on_unimplemented: bool
    halt_on_infinite_loop: bool


class Config(TypedDict):
    general: GeneralConfig
    quirks: QuirksConfig
    debug: DebugConfig
    keyboard: KeyboardConfig


DEFAULT_CONFIG: Config = {
    "general": {"steps_per_second": 60, "scale": 16, "pixel_on": "#2051A9", "pixel_off": "#6495ED"},
    "quirks": {"shift_uses_vy": False, "raw_shift_flag": False, "sprite_rows": "clip"},
    "debug": {"trace": False, "halt_on_unimplemented": False, "halt_on_infinite_loop": False},
    # the original keyboard layout: digit and letter keys type their own value
    "keyboard": {
        "0": "0", "1": "1", "2": "2", "3": "3",
        "4": "4", "5": "5", "6": "6", "7": "7",
        "8": "8", "9": "9", "A": "a", "B": "b",
        "C": "c", "D": "d", "E": "e", "F": "f",
    },
}


def _deep_merge(
    target: MutableMapping[str, Any],
    overrides: Mapping[str, Any],
) -> MutableMapping[str, Any]:
    for key, value in overrides.items():
        if isinstance(target.get(key), dict) and isinstance(value, dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value
    return target


def _validate_config(cfg: Config) -> None:
    general = cfg["general"]
    for name in ("steps_per_second", "scale"):
        if not isinstance(general[name], int) or isinstance(general[name], bool) or general[name] <= 0:
            raise ValueError(f"general.{name} must be a positive integer")

    for name in ("pixel_on", "pixel_off"):
        if not isinstance(general[name], str):
            raise ValueError(f"general.{name} must be a #RRGGBB string")
        parse_color(general[name])

    for name in ("shift_uses_vy", "raw_shift_flag"):
        if not isinstance(cfg["quirks"][name], bool):
            raise ValueError(f"quirks.{name} must be a boolean")

    modes = {mode.value for mode in SpriteRowMode}
    if cfg["quirks"]["sprite_rows"] not in modes:
        raise ValueError(f"quirks.sprite_rows must be one of {sorted(modes)}")

    for name, value in cfg["debug"].items():
        if not isinstance(value, bool):
            raise ValueError(f"debug.{name} must be a boolean")

    keyboard = cfg["keyboard"]
    expected = set(DEFAULT_CONFIG["keyboard"])
    if set(keyboard) != expected:
        raise ValueError(f"keyboard must map exactly the keys {sorted(expected)}")
    if not all(isinstance(v, str) and v for v in keyboard.values()):
        raise ValueError("keyboard values must be non-empty key names")


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """
    Read the TOML config and merge it over DEFAULT_CONFIG.

    A missing file gives the defaults. A broken file is logged and the
    defaults are returned.
    """
    file = Path(path) if path is not None else config_file
    if not file.exists():
        return deepcopy(DEFAULT_CONFIG)

    config = deepcopy(DEFAULT_CONFIG)

    try:
        with open(file, "rb") as f:
            data = tomllib.load(f)

        _deep_merge(config, data)
        _validate_config(config)

    except (OSError, tomllib.TOMLDecodeError, ValueError, TypeError, KeyError) as e:
        _log.error(f"Failed to load config {file}: {e}", exc_info=(type(e), e, e.__traceback__))
        return deepcopy(DEFAULT_CONFIG)

    return config


def quirks_from_config(cfg: Config) -> Quirks:
    quirks = cfg["quirks"]
    return Quirks(
        shift_uses_vy=quirks["shift_uses_vy"],
        raw_shift_flag=quirks["raw_shift_flag"],
        sprite_rows=SpriteRowMode(quirks["sprite_rows"]),
    )


def debug_from_config(cfg: Config) -> Debug:
    debug = cfg["debug"]
    return Debug(
        Logging=debug["trace"],
        HaltOn=HaltOn(
            UnimplementedOpcode=debug["halt_on_unimplemented"],
            InfiniteLoop=debug["halt_on_infinite_loop"],
        ),
    )


def keymap_from_config(cfg: Config) -> Dict[str, int]:
    """Host key name -> virtual key index."""
    return {name.lower(): int(key, 16) for key, name in cfg["keyboard"].items()}
