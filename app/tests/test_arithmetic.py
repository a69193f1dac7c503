import itertools

import pytest

from chip8vm import Quirks

SAMPLES = list(range(0, 256, 15)) + [1, 127, 128, 254, 255]


def _alu(machine, n, a, b, **kwargs):
    """Run 8 0 1 n with V0=a, V1=b."""
    emu = machine([0x8010 | n], **kwargs)
    emu.Architecture.V[0] = a
    emu.Architecture.V[1] = b
    emu.Step()
    return emu


@pytest.mark.parametrize("a,b", list(itertools.product(SAMPLES, repeat=2)))
def test_add_with_carry(machine, a, b):
    emu = _alu(machine, 0x4, a, b)
    assert emu.Architecture.V[0] == (a + b) % 256
    assert emu.Architecture.V[0xF] == int(a + b > 255)


@pytest.mark.parametrize("a,b", list(itertools.product(SAMPLES, repeat=2)))
def test_subtract_with_borrow(machine, a, b):
    emu = _alu(machine, 0x5, a, b)
    assert emu.Architecture.V[0] == (a - b) % 256
    assert emu.Architecture.V[0xF] == int(a >= b)


@pytest.mark.parametrize("a,b", [(5, 10), (10, 5), (7, 7), (0, 255)])
def test_reverse_subtract(machine, a, b):
    emu = _alu(machine, 0x7, a, b)
    assert emu.Architecture.V[0] == (b - a) % 256
    assert emu.Architecture.V[0xF] == int(b >= a)


@pytest.mark.parametrize(
    "n,expected",
    [(0x0, 0x0F), (0x1, 0xFF), (0x2, 0x00), (0x3, 0xFF)],
)
def test_logic(machine, n, expected):
    emu = _alu(machine, n, 0xF0, 0x0F)
    assert emu.Architecture.V[0] == expected
    assert emu.Architecture.V[1] == 0x0F
    assert emu.Architecture.ProgramCounter == 0x202


def test_right_shift_shifts_vx_in_place(machine):
    emu = _alu(machine, 0x6, 0b1000_0011, 0x40)
    assert emu.Architecture.V[0] == 0b0100_0001
    assert emu.Architecture.V[0xF] == 1
    assert emu.Architecture.V[1] == 0x40


def test_left_shift_flag_is_normalised(machine):
    emu = _alu(machine, 0xE, 0b1100_0001, 0x00)
    assert emu.Architecture.V[0] == 0b1000_0010
    assert emu.Architecture.V[0xF] == 1


def test_left_shift_raw_flag_quirk(machine):
    emu = _alu(machine, 0xE, 0b1100_0001, 0x00, quirks=Quirks(raw_shift_flag=True))
    assert emu.Architecture.V[0xF] == 0x80

    emu = _alu(machine, 0xE, 0b0100_0001, 0x00, quirks=Quirks(raw_shift_flag=True))
    assert emu.Architecture.V[0xF] == 0


def test_shift_uses_vy_quirk(machine):
    quirks = Quirks(shift_uses_vy=True)
    emu = _alu(machine, 0x6, 0xFF, 0x04, quirks=quirks)
    assert emu.Architecture.V[0] == 0x02
    assert emu.Architecture.V[0xF] == 0

    emu = _alu(machine, 0xE, 0x00, 0x81, quirks=quirks)
    assert emu.Architecture.V[0] == 0x02
    assert emu.Architecture.V[0xF] == 1


def test_flag_is_written_last(machine):
    # 8F14: VF = VF + V1, the carry overwrites the sum
    emu = machine([0x8F14])
    emu.Architecture.V[0xF] = 0xFF
    emu.Architecture.V[1] = 0x02
    emu.Step()
    assert emu.Architecture.V[0xF] == 1

    # 8F15: VF = VF - V1 without borrow
    emu = machine([0x8F15])
    emu.Architecture.V[0xF] = 0x10
    emu.Architecture.V[1] = 0x01
    emu.Step()
    assert emu.Architecture.V[0xF] == 1


def test_add_immediate_wraps_without_flag(machine):
    emu = machine([0x60FF, 0x7002])
    emu.Run(2)
    assert emu.Architecture.V[0] == 0x01
    assert emu.Architecture.V[0xF] == 0


def test_undefined_alu_op_is_a_no_op(machine):
    emu = _alu(machine, 0x8, 0x12, 0x34)
    assert emu.Architecture.V[0] == 0x12
    assert emu.Architecture.V[0xF] == 0
    assert emu.Architecture.ProgramCounter == 0x202
