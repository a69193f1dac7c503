import sys
from pathlib import Path
from typing import Callable, Iterable, Union

import pytest

# packages live under app/, same as the app scripts
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chip8vm import Emulator  # noqa: E402


def words_to_bytes(words: Iterable[int]) -> bytes:
    return b"".join(w.to_bytes(2, "big") for w in words)


@pytest.fixture
def machine() -> Callable[..., Emulator]:
    """Emulator with the given instruction words (or raw bytes) loaded at $200."""

    def factory(program: Union[bytes, Iterable[int]], **kwargs) -> Emulator:
        emu = Emulator(**kwargs)
        data = program if isinstance(program, (bytes, bytearray)) else words_to_bytes(program)
        emu.Load(data)
        return emu

    return factory
