import pytest

from chip8vm import Disassembler


@pytest.mark.parametrize(
    "word,text",
    [
        (0x00E0, "CLS"),
        (0x00EE, "RTN"),
        (0x0123, "CMC       $123"),
        (0x1ABC, "JMP       $abc"),
        (0x2ABC, "CALL      $abc"),
        (0x3A12, "SKIP.EQ   Va,#$12"),
        (0x5AB0, "SKIP.EQ   Va,Vb"),
        (0x600A, "MOV       V0,#$0a"),
        (0x8014, "ADD       V0,V1"),
        (0x801E, "LSHFT     V0,V1"),
        (0x8019, "UNKNOWN 8 V0,V1"),
        (0xA123, "MVI       I,$123"),
        (0xB300, "JUMP      V0+$300"),
        (0xC1FF, "RANDMASK  V1,#$ff"),
        (0xD015, "DRAW      V0,V1,#$5"),
        (0xE29E, "SKIP.KEY  V2"),
        (0xE2A1, "SKIP.NKEY V2"),
        (0xE200, "UNKNOWN E V2"),
        (0xF50A, "KEY.GET   V5"),
        (0xF533, "BCD       V5"),
        (0xF5FF, "UNKNOWN F V5"),
    ],
)
def test_disassemble(word, text):
    assert Disassembler.Disassemble(word) == text


def test_get_name():
    assert Disassembler.GetName(0x8015) == "SUB"
    assert Disassembler.GetName(0xF065) == "REG.LOAD"


def test_program_listing():
    lines = Disassembler.DisassembleProgram(bytes([0x60, 0x0A, 0x00, 0xE0, 0x12]))
    assert lines == [
        "0200 60 0a MOV       V0,#$0a",
        "0202 00 e0 CLS",
        "0204 12    DB        #$12",
    ]
