from chip8vm.decode import Instruction, decode
from chip8vm.disassembler import Disassembler
from chip8vm.emulator import Debug, Emulator, HaltOn, Quirks, SpriteRowMode
from chip8vm.exception import (
    EmulatorError,
    FatalError,
    MemoryBoundsError,
    StackOverflowError,
    StackUnderflowError,
    UnimplementedOpcodeError,
)
from chip8vm.machine import Keypad, MachineState, RunState
from chip8vm.program import Program

__all__ = [
    "Debug",
    "Disassembler",
    "Emulator",
    "EmulatorError",
    "FatalError",
    "HaltOn",
    "Instruction",
    "Keypad",
    "MachineState",
    "MemoryBoundsError",
    "Program",
    "Quirks",
    "RunState",
    "SpriteRowMode",
    "StackOverflowError",
    "StackUnderflowError",
    "UnimplementedOpcodeError",
    "decode",
]
