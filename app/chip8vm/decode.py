from typing import NamedTuple


class Instruction(NamedTuple):
    """Fields of one big-endian 16-bit instruction word."""

    word: int
    group: int  # high nibble, opcode group selector
    X: int  # second nibble, register index
    Y: int  # third nibble, register index
    N: int  # fourth nibble, 4-bit immediate
    NN: int  # low byte, 8-bit immediate
    NNN: int  # low 12 bits, address

    def __str__(self) -> str:
        return f"{self.word:04X}"


def decode(word: int) -> Instruction:
    """Split an instruction word into its fields. Pure, never touches PC."""
    word &= 0xFFFF
    return Instruction(
        word=word,
        group=(word & 0xF000) >> 12,
        X=(word & 0x0F00) >> 8,
        Y=(word & 0x00F0) >> 4,
        N=word & 0x000F,
        NN=word & 0x00FF,
        NNN=word & 0x0FFF,
    )


def decode_bytes(high: int, low: int) -> Instruction:
    return decode(((high & 0xFF) << 8) | (low & 0xFF))
