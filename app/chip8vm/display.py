from typing import Final, Tuple, Union

import numpy as np
from numpy.typing import NDArray

WIDTH: Final[int] = 64
HEIGHT: Final[int] = 32
ROW_BYTES: Final[int] = WIDTH // 8
BUFFER_SIZE: Final[int] = ROW_BYTES * HEIGHT

Buffer = Union[bytes, bytearray, NDArray[np.uint8]]
Color = Tuple[int, int, int]


def _as_array(buffer: Buffer) -> NDArray[np.uint8]:
    arr = np.frombuffer(bytes(buffer), dtype=np.uint8) if not isinstance(buffer, np.ndarray) else buffer
    if arr.size != BUFFER_SIZE:
        raise ValueError(f"Display buffer must be {BUFFER_SIZE} bytes, got {arr.size}")
    return arr.astype(np.uint8, copy=False)


def unpack(buffer: Buffer) -> NDArray[np.bool_]:
    """
    Expand the bit-packed buffer to a (32, 64) boolean array.

    Rows are stored row-major, most significant bit = leftmost pixel.
    """
    return np.unpackbits(_as_array(buffer)).reshape(HEIGHT, WIDTH).astype(bool)


def pixel(buffer: Buffer, x: int, y: int) -> bool:
    if not (0 <= x < WIDTH and 0 <= y < HEIGHT):
        raise ValueError(f"Pixel ({x}, {y}) is outside the {WIDTH}x{HEIGHT} display")
    byte = int(_as_array(buffer)[y * ROW_BYTES + x // 8])
    return bool(byte & (0x80 >> (x % 8)))


def to_rgb(buffer: Buffer, on: Color, off: Color) -> NDArray[np.uint8]:
    """(64, 32, 3) colour array, x-major as pygame.surfarray expects."""
    pixels = unpack(buffer).T
    frame = np.empty((WIDTH, HEIGHT, 3), dtype=np.uint8)
    frame[pixels] = on
    frame[~pixels] = off
    return frame


def parse_color(value: str) -> Color:
    """'#RRGGBB' -> (r, g, b)"""
    text = value.lstrip("#")
    if len(text) != 6:
        raise ValueError(f"Invalid colour {value!r}, expected #RRGGBB")
    return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
