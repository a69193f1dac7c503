from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from string import Template
from typing import Any, Callable, Dict, Final, Iterable, Mapping, Optional, Set, Union

import numpy as np
from returns.result import Failure

from chip8vm.decode import Instruction, decode_bytes
from chip8vm.disassembler import Disassembler
from chip8vm.display import HEIGHT, ROW_BYTES, WIDTH
from chip8vm.exception import (
    EmulatorError,
    MemoryBoundsError,
    StackOverflowError,
    StackUnderflowError,
    UnimplementedOpcodeError,
)
from chip8vm.logger import log as _logger
from chip8vm.machine import (
    FONT_ADDRESS,
    GLYPH_SIZE,
    STACK_BUFFER,
    STACK_LIMIT,
    Architecture,
    EmulatorMemory,
    Keypad,
    MachineState,
    RunState,
)
from chip8vm.program import Program

# Template
TEMPLATE: Final[Template] = Template(
    "${PC}: ${OP} ${ASM} | V: ${V} | I: ${I} | SP: ${SP} | DT: ${DT} | ST: ${ST}"
)


class SpriteRowMode(Enum):
    """What DXYN does with sprite rows below the 32-row display."""

    Clip = "clip"
    Wrap = "wrap"
    Error = "error"


@dataclass
class Quirks:
    # 8XY6/8XYE shift VY into VX instead of shifting VX in place
    shift_uses_vy: bool = False
    # 8XYE stores the raw high bit (0x80) in VF instead of 1
    raw_shift_flag: bool = False
    sprite_rows: SpriteRowMode = SpriteRowMode.Clip


@dataclass
class HaltOn:
    UnimplementedOpcode: bool = False
    InfiniteLoop: bool = False


@dataclass
class Debug:
    Logging: bool = False
    HaltOn: HaltOn = field(default_factory=HaltOn)


class Emulator:
    """
    Fetch-decode-execute engine for the 35-opcode, 16-register machine.

    Every instance owns its own MachineState, so any number of machines can
    run side by side. The engine never loops on its own: the caller drives it
    with one Step() per emulated cycle, and the delay/sound timers tick once
    per Step(), so authentic timing means calling Step() about 60 times a second.
    """

    def __init__(
        self,
        machine: Optional[MachineState] = None,
        quirks: Optional[Quirks] = None,
        debug: Optional[Debug] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.machine: MachineState = machine if machine is not None else MachineState.create()
        self.program: Optional[Program] = None
        self.quirks: Quirks = quirks if quirks is not None else Quirks()
        self.debug: Debug = debug if debug is not None else Debug()
        self.tracelog: deque[str] = deque(maxlen=2024)
        self.StepCount: int = 0
        self._events: Dict[str, deque[Callable[..., Any]]] = {}
        self._seed: Optional[int] = seed
        self._rng: np.random.Generator = np.random.default_rng(seed)
        self._reported: Set[int] = set()

    @property
    def Architecture(self) -> Architecture:
        return self.machine.Architecture

    @property
    def Memory(self) -> EmulatorMemory:
        return self.machine.Memory

    @property
    def Keys(self) -> Keypad:
        return self.machine.Keys

    @property
    def display(self) -> bytes:
        """Copy of the 256-byte bit-packed display buffer."""
        return self.Memory.display.tobytes()

    @property
    def sound_timer(self) -> int:
        return self.Architecture.SoundTimer

    @property
    def sound_active(self) -> bool:
        return self.Architecture.SoundTimer > 0

    def on(self, event_name: str):
        def decorator(func: Callable):
            self._events.setdefault(event_name, deque()).append(func)
            return func

        return decorator

    def _emit(self, event_name: str, *args: Any, **kwargs: Any) -> None:
        """Emit an event to all registered callbacks."""
        callbacks = self._events.get(event_name)
        if not callbacks:
            return

        for callback in callbacks:
            if not callable(callback):
                raise EmulatorError(ValueError(f"Callback {callback} is not Callable"))
            callback(*args, **kwargs)

    def _tracelogger(self, instr: Instruction) -> None:
        line = TEMPLATE.substitute(
            PC=f"{self.Architecture.ProgramCounter:03X}",
            OP=f"{instr.word:04X}",
            ASM=f"{Disassembler.Disassemble(instr.word):<20}",
            V=" ".join(f"{int(v):02X}" for v in self.Architecture.V),
            I=f"{self.Architecture.I:03X}",
            SP=f"{self.Architecture.StackPointer:03X}",
            DT=f"{self.Architecture.DelayTimer:02X}",
            ST=f"{self.Architecture.SoundTimer:02X}",
        )

        self.tracelog.append(line)

    def Load(self, program: Union[Program, bytes, bytearray]) -> None:
        if self.program is not None:
            raise EmulatorError(
                ValueError("Cannot load a program while another program is loaded, use Reset() to restart it")
            )

        if isinstance(program, (bytes, bytearray)):
            result = Program.from_bytes(program)
            if isinstance(result, Failure):
                raise EmulatorError(ValueError(result.failure()))
            program = result.unwrap()

        self.program = program
        self.machine.load(program.to_bytes())
        _logger.info(f"Loaded program {program.file or '<bytes>'} ({len(program)} bytes)")

    def Reset(self) -> None:
        """Fresh machine state; the loaded program (if any) is copied in again."""
        _logger.info("Resetting machine...")
        self.machine = MachineState.create()
        if self.program is not None:
            self.machine.load(self.program.to_bytes())
        self._rng = np.random.default_rng(self._seed)
        self._reported.clear()
        self.tracelog.clear()
        self.StepCount = 0
        self._emit("clear_screen")

    def Input(self, keys: Union[Mapping[int, bool], Iterable[bool]]) -> None:
        """Update virtual key states, either {key: pressed} or 16 flags."""
        try:
            self.Keys.update(keys)
        except ValueError as e:
            raise EmulatorError(e) from e

    def Step(self) -> None:
        """Run exactly one fetch-decode-execute cycle."""
        if self.Architecture.Halted:
            return  # it is not possible to step when halted

        try:
            self._emit("before_step", self.Architecture.ProgramCounter)
            self._tick_timers()
            self._emulate_CPU()
            self._emit("after_step", self.Architecture.ProgramCounter)

        except MemoryError as e:
            raise EmulatorError(MemoryError(e)) from e
        except Exception as e:
            raise EmulatorError(e) from e

    def Run(self, steps: int) -> int:
        """Step up to ``steps`` times, stopping early when halted. Returns steps run."""
        done = 0
        for _ in range(steps):
            if self.Architecture.Halted:
                break
            self.Step()
            done += 1
        return done

    def _tick_timers(self) -> None:
        if self.Architecture.DelayTimer:
            self.Architecture.DelayTimer -= 1
        if self.Architecture.SoundTimer:
            self.Architecture.SoundTimer -= 1

    def _fetch(self) -> Instruction:
        pc = self.Architecture.ProgramCounter
        if not 0 <= pc < 0xFFF:
            raise MemoryBoundsError(IndexError(f"Instruction fetch at ${pc:04X} is outside the address space"))
        return decode_bytes(self.Memory.read(pc), self.Memory.read(pc + 1))

    def _emulate_CPU(self) -> None:
        instr = self._fetch()

        if self.debug.Logging:
            self._tracelogger(instr)
            self._emit("tracelogger", self.tracelog[-1])

        self._do_execute_opcode(instr)
        self.StepCount += 1

    def _do_execute_opcode(self, instr: Instruction) -> None:
        """
        Execute one decoded instruction.

        Each opcode group owns its PC update: most add 2, skips add 4 when the
        condition holds, jumps/calls/returns set PC, and groups 0, E and F
        decide internally.
        """
        arch = self.Architecture
        V = arch.V
        X, Y = instr.X, instr.Y

        match instr.group:
            case 0x0:
                self._do_op_0(instr)

            case 0x1:  # JMP $NNN
                if arch.ProgramCounter == instr.NNN:
                    self._do_report_infinite_loop()
                arch.ProgramCounter = instr.NNN

            case 0x2:  # CALL $NNN
                self._do_call(instr.NNN)

            case 0x3:  # SKIP.EQ VX,#$NN
                self._do_skip(int(V[X]) == instr.NN)

            case 0x4:  # SKIP.NE VX,#$NN
                self._do_skip(int(V[X]) != instr.NN)

            case 0x5:  # SKIP.EQ VX,VY
                self._do_skip(int(V[X]) == int(V[Y]))

            case 0x6:  # MOV VX,#$NN
                V[X] = instr.NN
                arch.ProgramCounter += 2

            case 0x7:  # ADD VX,#$NN (VF untouched)
                V[X] = (int(V[X]) + instr.NN) & 0xFF
                arch.ProgramCounter += 2

            case 0x8:
                self._do_op_8(instr)
                arch.ProgramCounter += 2

            case 0x9:  # SKIP.NE VX,VY
                self._do_skip(int(V[X]) != int(V[Y]))

            case 0xA:  # MVI I,$NNN
                arch.I = instr.NNN
                arch.ProgramCounter += 2

            case 0xB:  # JUMP V0+$NNN
                arch.ProgramCounter = instr.NNN + int(V[0])

            case 0xC:  # RANDMASK VX,#$NN
                V[X] = int(self._rng.integers(0, 0x100)) & instr.NN
                arch.ProgramCounter += 2

            case 0xD:  # DRAW VX,VY,#$N
                self._do_op_draw(int(V[X]), int(V[Y]), instr.N)
                arch.ProgramCounter += 2

            case 0xE:
                self._do_op_E(instr)

            case 0xF:
                self._do_op_F(instr)

    def _do_skip(self, condition: bool) -> None:
        if condition:
            self.Architecture.ProgramCounter += 2
        self.Architecture.ProgramCounter += 2

    def _do_call(self, target: int) -> None:
        arch = self.Architecture
        sp = arch.StackPointer - 2
        if sp < STACK_LIMIT:
            raise StackOverflowError(
                OverflowError(f"CALL ${target:03X} at ${arch.ProgramCounter:03X} exceeds the stack depth")
            )

        return_address = arch.ProgramCounter + 2
        self.Memory.write(sp, (return_address & 0xFF00) >> 8)
        self.Memory.write(sp + 1, return_address & 0xFF)
        arch.StackPointer = sp
        arch.ProgramCounter = target

    def _do_return(self) -> None:
        arch = self.Architecture
        sp = arch.StackPointer
        if sp + 2 > STACK_BUFFER:
            raise StackUnderflowError(IndexError(f"RTN at ${arch.ProgramCounter:03X} with an empty stack"))

        target = (self.Memory.read(sp) << 8) | self.Memory.read(sp + 1)
        arch.StackPointer = sp + 2
        arch.ProgramCounter = target

    def _do_op_0(self, instr: Instruction) -> None:
        match instr.word:
            case 0x00E0:  # CLS
                self.Memory.display[:] = 0
                self.Architecture.ProgramCounter += 2
                self._emit("clear_screen")
            case 0x00EE:  # RTN
                self._do_return()
            case _:  # CMC $NNN, machine code routines are not supported
                self._do_unimplemented(instr)

    def _do_op_8(self, instr: Instruction) -> None:
        """Register-register group. VF is always written after VX."""
        V = self.Architecture.V
        X = instr.X
        vx, vy = int(V[X]), int(V[instr.Y])

        match instr.N:
            case 0x0:  # MOV VX,VY
                V[X] = vy
            case 0x1:  # OR VX,VY
                V[X] = vx | vy
            case 0x2:  # AND VX,VY
                V[X] = vx & vy
            case 0x3:  # XOR VX,VY
                V[X] = vx ^ vy
            case 0x4:  # ADD VX,VY
                result = vx + vy
                V[X] = result & 0xFF
                V[0xF] = int(result > 0xFF)
            case 0x5:  # SUB VX,VY
                no_borrow = int(vx >= vy)
                V[X] = (vx - vy) & 0xFF
                V[0xF] = no_borrow
            case 0x6:  # RSHFT VX,1
                source = vy if self.quirks.shift_uses_vy else vx
                V[X] = source >> 1
                V[0xF] = source & 0x01
            case 0x7:  # BSUB VX,VY
                no_borrow = int(vy >= vx)
                V[X] = (vy - vx) & 0xFF
                V[0xF] = no_borrow
            case 0xE:  # LSHFT VX,1
                source = vy if self.quirks.shift_uses_vy else vx
                high_bit = source & 0x80
                V[X] = (source << 1) & 0xFF
                V[0xF] = high_bit if self.quirks.raw_shift_flag else high_bit >> 7
            case _:
                self._do_unimplemented(instr)

    def _do_op_draw(self, origin_x: int, origin_y: int, height: int) -> None:
        """
        XOR an 8-pixel wide, ``height`` row sprite from memory[I] onto the display.

        Columns past 64 are clipped. Rows past 32 follow ``quirks.sprite_rows``.
        VF is cleared first and set when a lit pixel is switched off.
        """
        arch = self.Architecture
        V = arch.V
        sprite = self.Memory.read_block(arch.I, height)
        screen = self.Memory.display
        row_mode = self.quirks.sprite_rows

        if row_mode is SpriteRowMode.Error and origin_y + height > HEIGHT:
            raise MemoryBoundsError(
                IndexError(f"Sprite rows {origin_y}-{origin_y + height - 1} run past the {HEIGHT}-row display")
            )

        V[0xF] = 0
        for row in range(height):
            y = origin_y + row
            if y >= HEIGHT:
                if row_mode is SpriteRowMode.Clip:
                    break
                y %= HEIGHT

            line = int(sprite[row])
            for column in range(8):
                x = origin_x + column
                if x >= WIDTH:
                    break
                if not (line >> (7 - column)) & 0x1:
                    continue

                index = y * ROW_BYTES + x // 8
                mask = 0x80 >> (x % 8)
                dest = int(screen[index])
                if dest & mask:
                    V[0xF] = 1
                screen[index] = dest ^ mask

        self._emit("draw", bool(V[0xF]))

    def _do_op_E(self, instr: Instruction) -> None:
        # key index is the low nibble of VX
        key = int(self.Architecture.V[instr.X]) & 0x0F

        match instr.NN:
            case 0x9E:  # SKIP.KEY VX
                if self.Keys.is_pressed(key):
                    self.Architecture.ProgramCounter += 2
            case 0xA1:  # SKIP.NKEY VX
                if not self.Keys.is_pressed(key):
                    self.Architecture.ProgramCounter += 2
            case _:
                self._do_unimplemented(instr)

        self.Architecture.ProgramCounter += 2

    def _do_op_F(self, instr: Instruction) -> None:
        arch = self.Architecture
        V = arch.V
        X = instr.X
        vx = int(V[X])

        match instr.NN:
            case 0x07:  # DELAY.GET VX
                V[X] = arch.DelayTimer
            case 0x0A:  # KEY.GET VX
                self._do_key_wait(X)
                return  # PC handled by the key wait
            case 0x15:  # DELAY.SET VX
                arch.DelayTimer = vx
            case 0x18:  # SOUND.SET VX
                arch.SoundTimer = vx
            case 0x1E:  # I.ADD VX
                arch.I = (arch.I + vx) & 0xFFFF
            case 0x29:  # SPRITE.GET VX
                arch.I = FONT_ADDRESS + vx * GLYPH_SIZE
            case 0x33:  # BCD VX
                self.Memory.write_block(arch.I, (vx // 100, (vx // 10) % 10, vx % 10))
            case 0x55:  # REG.DUMP VX
                self.Memory.write_block(arch.I, V[: X + 1].tobytes())
                arch.I += X + 1
            case 0x65:  # REG.LOAD VX
                V[: X + 1] = self.Memory.read_block(arch.I, X + 1)
                arch.I += X + 1
            case _:
                self._do_unimplemented(instr)
                return

        arch.ProgramCounter += 2

    def _do_key_wait(self, X: int) -> None:
        """
        FX0A as a two-phase state machine across Step() calls.

        The first call only enters AwaitingKey. Later calls re-execute the same
        instruction until a key is down, then store it, return to Running and
        advance PC.
        """
        arch = self.Architecture
        if arch.State is RunState.Running:
            arch.State = RunState.AwaitingKey
            _logger.debug(f"Awaiting key for V{X:X} at ${arch.ProgramCounter:03X}")
            return

        key = self.Keys.first_pressed()
        if key is None:
            return

        arch.V[X] = key
        arch.State = RunState.Running
        arch.ProgramCounter += 2

    def _do_report_infinite_loop(self) -> None:
        pc = self.Architecture.ProgramCounter
        self._emit("infinite_loop", pc)
        if pc not in self._reported:
            self._reported.add(pc)
            _logger.warning(f"Infinite loop detected at ${pc:03X}")

        if self.debug.HaltOn.InfiniteLoop:
            self.Architecture.Halted = True
            _logger.info(f"Halted on infinite loop at ${pc:03X} after {self.StepCount} steps")

    def _do_unimplemented(self, instr: Instruction) -> None:
        pc = self.Architecture.ProgramCounter
        self._emit("unimplemented_opcode", instr.word, pc)
        if pc not in self._reported:
            self._reported.add(pc)
            _logger.warning(
                f"Unimplemented opcode ${instr.word:04X} ({Disassembler.GetName(instr.word)}) at PC=${pc:03X}"
            )

        if self.debug.HaltOn.UnimplementedOpcode:
            self.Architecture.Halted = True
            raise UnimplementedOpcodeError(
                ValueError(f"Unimplemented opcode ${instr.word:04X} at ${pc:03X}")
            )
