from chip8vm import decode
from chip8vm.decode import decode_bytes


def test_fields():
    instr = decode(0xD12A)
    assert instr.group == 0xD
    assert instr.X == 0x1
    assert instr.Y == 0x2
    assert instr.N == 0xA
    assert instr.NN == 0x2A
    assert instr.NNN == 0x12A


def test_decode_bytes_is_big_endian():
    assert decode_bytes(0x80, 0x14) == decode(0x8014)
    assert decode_bytes(0x80, 0x14).N == 0x4


def test_str():
    assert str(decode(0x00E0)) == "00E0"
