from pathlib import Path
from typing import Final, Union

import numpy as np
from numpy.typing import NDArray
from returns.result import Failure, Result, Success

from chip8vm.logger import log
from chip8vm.machine import MEMORY_CAPACITY, PROGRAM_START, STACK_LIMIT


class Program:
    """
    A raw program image.

    Images carry no header or metadata. They are copied verbatim to $200;
    the only check is that the image fits in the address space.
    """

    MAX_SIZE: Final[int] = MEMORY_CAPACITY - PROGRAM_START  # 3584 bytes

    def __init__(self) -> None:
        self.file: str = ""
        self.ROM: NDArray[np.uint8] = np.zeros(0, dtype=np.uint8)

    def __repr__(self) -> str:
        return f"<Program file={self.file!r} size={len(self.ROM)} bytes>"

    def __len__(self) -> int:
        return len(self.ROM)

    def to_bytes(self) -> bytes:
        return self.ROM.tobytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> Result["Program", str]:
        """
        Load a program image from bytes.

        Args:
            data: Raw bytes of the program

        Returns:
            Result containing either a Program instance or an error string.
        """
        if not isinstance(data, (bytes, bytearray)):
            return Failure(f"Expected bytes or bytearray, got {type(data).__name__}")

        if len(data) == 0:
            return Failure("Program is empty")

        if len(data) > cls.MAX_SIZE:
            return Failure(f"Program too large: {len(data)} bytes, maximum {cls.MAX_SIZE}")

        if PROGRAM_START + len(data) > STACK_LIMIT:
            log.warning(
                f"Program ends at ${PROGRAM_START + len(data) - 1:03X} and overlaps the stack/display region"
            )

        obj = cls()
        obj.ROM = np.frombuffer(bytes(data), dtype=np.uint8).copy()
        return Success(obj)

    @classmethod
    def from_file(cls, file: Union[str, Path]) -> Result["Program", str]:
        path = Path(file)
        try:
            data = path.read_bytes()
        except OSError as e:
            return Failure(f"Cannot read {path}: {e}")

        result = cls.from_bytes(data)
        if isinstance(result, Success):
            result.unwrap().file = str(path)
            log.debug(f"Loaded {path.name}: {len(data)} bytes")
        return result
