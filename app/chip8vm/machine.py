from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Iterable, Mapping, Optional, Union

import numpy as np
from bitarray import bitarray  # type: ignore
from numpy.typing import NDArray

from chip8vm.exception import MemoryBoundsError

# Memory map
MEMORY_CAPACITY: Final[int] = 0x1000
FONT_ADDRESS: Final[int] = 0x000
GLYPH_SIZE: Final[int] = 5
PROGRAM_START: Final[int] = 0x200
STACK_BUFFER: Final[int] = 0xEA0  # empty stack pointer, stack grows down
STACK_DEPTH: Final[int] = 16
STACK_LIMIT: Final[int] = STACK_BUFFER - STACK_DEPTH * 2
DISPLAY_BUFFER: Final[int] = 0xF00
DISPLAY_SIZE: Final[int] = 0x100  # (64 / 8) * 32

REGISTER_COUNT: Final[int] = 0x10
KEY_COUNT: Final[int] = 0x10

# 4x5 glyphs for the hexadecimal digits 0-F
FONT: Final[bytes] = bytes(
    [
        0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
        0x20, 0x60, 0x20, 0x20, 0x70,  # 1
        0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
        0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
        0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
        0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
        0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
        0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
        0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
        0xF0, 0x90, 0xF0, 0x10, 0x10,  # 9
        0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
        0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
        0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
        0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
        0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
        0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
    ]
)


class RunState(Enum):
    """
    Run State

    AwaitingKey is entered by FX0A and left once a key is observed.
    """

    Running = 0
    AwaitingKey = 1


class Keypad:
    """The 16 virtual key flags (0-F), set by the host before each step."""

    def __init__(self) -> None:
        self._bits = bitarray(KEY_COUNT)
        self._bits.setall(0)

    @staticmethod
    def _check(key: int) -> int:
        if not isinstance(key, int) or not 0 <= key < KEY_COUNT:
            raise ValueError(f"Invalid key {key!r}, must be 0x0-0xF")
        return key

    def set(self, key: int, pressed: bool) -> None:
        self._bits[self._check(key)] = bool(pressed)

    def update(self, keys: Union[Mapping[int, bool], Iterable[bool]]) -> None:
        """Update from a {key: pressed} mapping or a sequence of 16 flags."""
        if isinstance(keys, Mapping):
            for key, pressed in keys.items():
                self.set(key, pressed)
            return

        states = [bool(k) for k in keys]
        if len(states) != KEY_COUNT:
            raise ValueError(f"Expected {KEY_COUNT} key states, got {len(states)}")
        self._bits = bitarray(states)

    def clear(self) -> None:
        self._bits.setall(0)

    def is_pressed(self, key: int) -> bool:
        return bool(self._bits[self._check(key)])

    def first_pressed(self) -> Optional[int]:
        """Lowest pressed key index, or None."""
        index = self._bits.find(1)
        return None if index < 0 else index

    def __iter__(self):
        return (bool(b) for b in self._bits)

    def __repr__(self) -> str:
        return f"Keypad({self._bits.to01()})"


@dataclass
class EmulatorMemory:
    """
    The 4 KB address space.

    The display buffer and the call stack are ranges of this same array, so
    generic writes into 0xEA0-0xFFF are visible to the stack and the screen.
    """

    RAM: NDArray[np.uint8] = field(default_factory=lambda: np.zeros(MEMORY_CAPACITY, dtype=np.uint8))

    @staticmethod
    def _check(address: int, length: int = 1) -> None:
        if address < 0 or length < 0 or address + length > MEMORY_CAPACITY:
            last = address + max(length, 1) - 1
            raise MemoryBoundsError(
                IndexError(f"Access ${address:04X}-${last:04X} is outside the address space ($000-$FFF)")
            )

    def read(self, address: int) -> int:
        self._check(address)
        return int(self.RAM[address])

    def write(self, address: int, value: int) -> None:
        self._check(address)
        self.RAM[address] = value & 0xFF

    def read_block(self, address: int, length: int) -> NDArray[np.uint8]:
        self._check(address, length)
        return self.RAM[address : address + length].copy()

    def write_block(self, address: int, data: Union[bytes, bytearray, Iterable[int]]) -> None:
        block = np.frombuffer(bytes(data), dtype=np.uint8)
        self._check(address, len(block))
        self.RAM[address : address + len(block)] = block

    @property
    def display(self) -> NDArray[np.uint8]:
        """View (not a copy) of the 256-byte display region."""
        return self.RAM[DISPLAY_BUFFER : DISPLAY_BUFFER + DISPLAY_SIZE]

    def copy(self) -> "EmulatorMemory":
        return EmulatorMemory(self.RAM.copy())


@dataclass
class Architecture:
    V: NDArray[np.uint8] = field(default_factory=lambda: np.zeros(REGISTER_COUNT, dtype=np.uint8))
    I: int = 0
    ProgramCounter: int = PROGRAM_START
    StackPointer: int = STACK_BUFFER
    DelayTimer: int = 0
    SoundTimer: int = 0
    State: RunState = RunState.Running
    Halted: bool = False

    @property
    def awaiting_key(self) -> bool:
        return self.State is RunState.AwaitingKey


@dataclass
class MachineState:
    """All mutable architectural state of one machine."""

    Architecture: Architecture = field(default_factory=Architecture)
    Memory: EmulatorMemory = field(default_factory=EmulatorMemory)
    Keys: Keypad = field(default_factory=Keypad)

    @classmethod
    def create(cls) -> "MachineState":
        """Zeroed machine with the glyph table installed."""
        state = cls()
        state.Memory.write_block(FONT_ADDRESS, FONT)
        return state

    def load(self, image: Union[bytes, bytearray]) -> None:
        """Copy a program image verbatim to the program region."""
        self.Memory.write_block(PROGRAM_START, image)

    @property
    def V(self) -> NDArray[np.uint8]:
        return self.Architecture.V

    @property
    def display(self) -> NDArray[np.uint8]:
        return self.Memory.display

    def copy(self) -> "MachineState":
        return deepcopy(self)
