import pytest

from chip8vm import EmulatorError, RunState


def test_delay_timer_set_get_and_countdown(machine):
    # V0 = 5, DELAY = V0, loop
    emu = machine([0x6005, 0xF015, 0x1204])
    emu.Run(2)
    assert emu.Architecture.DelayTimer == 5
    emu.Run(3)
    assert emu.Architecture.DelayTimer == 2
    emu.Run(10)
    assert emu.Architecture.DelayTimer == 0


def test_delay_get(machine):
    emu = machine([0xF307])
    emu.Architecture.DelayTimer = 9
    emu.Step()  # ticks to 8 before the read
    assert emu.Architecture.V[3] == 8


def test_sound_timer(machine):
    emu = machine([0x6002, 0xF018, 0x1204])
    emu.Run(2)
    assert emu.sound_active
    assert emu.sound_timer == 2
    emu.Run(2)
    assert emu.sound_timer == 0
    assert not emu.sound_active


def test_add_to_index(machine):
    emu = machine([0xA2F0, 0x6020, 0xF01E])
    emu.Run(3)
    assert emu.Architecture.I == 0x310
    assert emu.Architecture.V[0xF] == 0


def test_glyph_address(machine):
    emu = machine([0x600B, 0xF029])
    emu.Run(2)
    assert emu.Architecture.I == 0xB * 5
    assert list(emu.Memory.read_block(emu.Architecture.I, 5)) == [0xE0, 0x90, 0xE0, 0x90, 0xE0]


@pytest.mark.parametrize("value,digits", [(254, [2, 5, 4]), (7, [0, 0, 7]), (100, [1, 0, 0])])
def test_bcd(machine, value, digits):
    emu = machine([0xA300, 0x6000 | value, 0xF033])
    emu.Run(3)
    assert list(emu.Memory.read_block(0x300, 3)) == digits
    assert emu.Architecture.I == 0x300


def test_register_dump_and_load(machine):
    emu = machine([0xA300, 0xF355, 0xA300, 0xF365])
    for i in range(16):
        emu.Architecture.V[i] = i + 1
    emu.Run(2)
    assert list(emu.Memory.read_block(0x300, 5)) == [1, 2, 3, 4, 0]
    assert emu.Architecture.I == 0x304

    emu.Architecture.V[:4] = 0
    emu.Run(2)
    assert list(emu.Architecture.V[:5]) == [1, 2, 3, 4, 5]
    assert emu.Architecture.I == 0x304


def test_register_dump_past_memory_is_fatal(machine):
    emu = machine([0xAFFE, 0xF255])
    emu.Step()
    with pytest.raises(EmulatorError):
        emu.Step()


def test_key_wait_two_phase(machine):
    emu = machine([0xF50A, 0x1202])

    emu.Step()
    assert emu.Architecture.ProgramCounter == 0x200
    assert emu.Architecture.awaiting_key

    emu.Step()
    assert emu.Architecture.ProgramCounter == 0x200
    assert emu.Architecture.State is RunState.AwaitingKey

    emu.Input({0x7: True})
    emu.Step()
    assert emu.Architecture.V[5] == 0x7
    assert emu.Architecture.ProgramCounter == 0x202
    assert emu.Architecture.State is RunState.Running


def test_key_wait_ignores_key_on_first_entry(machine):
    emu = machine([0xF00A])
    emu.Input({0x2: True})
    emu.Step()
    assert emu.Architecture.ProgramCounter == 0x200
    emu.Step()
    assert emu.Architecture.V[0] == 0x2
    assert emu.Architecture.ProgramCounter == 0x202


def test_key_wait_picks_lowest_key(machine):
    emu = machine([0xF00A])
    emu.Step()
    emu.Input([i in (0xC, 0x4) for i in range(16)])
    emu.Step()
    assert emu.Architecture.V[0] == 0x4


def test_timers_tick_while_waiting(machine):
    emu = machine([0xF00A])
    emu.Architecture.DelayTimer = 3
    emu.Run(3)
    assert emu.Architecture.DelayTimer == 0
    assert emu.Architecture.awaiting_key


@pytest.mark.parametrize("word,pressed,skipped", [(0xE09E, True, True), (0xE09E, False, False), (0xE0A1, True, False), (0xE0A1, False, True)])
def test_key_skips(machine, word, pressed, skipped):
    emu = machine([0x600A, word])
    emu.Input({0xA: pressed})
    emu.Run(2)
    assert emu.Architecture.ProgramCounter == (0x206 if skipped else 0x204)


def test_key_skip_uses_low_nibble(machine):
    emu = machine([0x601A, 0xE09E])
    emu.Input({0xA: True})
    emu.Run(2)
    assert emu.Architecture.ProgramCounter == 0x206


def test_undefined_key_op_still_advances(machine):
    emu = machine([0xE000])
    emu.Step()
    assert emu.Architecture.ProgramCounter == 0x202


def test_undefined_misc_op_does_not_advance(machine):
    emu = machine([0xF0FF])
    emu.Step()
    assert emu.Architecture.ProgramCounter == 0x200


def test_invalid_key_input(machine):
    emu = machine([0x1200])
    with pytest.raises(EmulatorError):
        emu.Input({16: True})
