from typing import Dict, Final, List, Tuple, Union

from chip8vm.decode import Instruction, decode, decode_bytes
from chip8vm.machine import PROGRAM_START

# 8XY_ sub-opcodes
ALU_MNEMONICS: Final[Dict[int, str]] = {
    0x0: "MOV",
    0x1: "OR",
    0x2: "AND",
    0x3: "XOR",
    0x4: "ADD",
    0x5: "SUB",
    0x6: "RSHFT",
    0x7: "BSUB",
    0xE: "LSHFT",
}

# EX__ and FX__ sub-opcodes
KEY_MNEMONICS: Final[Dict[int, str]] = {
    0x9E: "SKIP.KEY",
    0xA1: "SKIP.NKEY",
}

MISC_MNEMONICS: Final[Dict[int, str]] = {
    0x07: "DELAY.GET",
    0x0A: "KEY.GET",
    0x15: "DELAY.SET",
    0x18: "SOUND.SET",
    0x1E: "I.ADD",
    0x29: "SPRITE.GET",
    0x33: "BCD",
    0x55: "REG.DUMP",
    0x65: "REG.LOAD",
}


class Disassembler:
    """Renders instruction words as human-readable mnemonics. Never executes anything."""

    @staticmethod
    def _split(instr: Instruction) -> Tuple[str, str]:
        X, Y, N, NN, NNN = instr.X, instr.Y, instr.N, instr.NN, instr.NNN

        match instr.group:
            case 0x0:
                if instr.word == 0x00E0:
                    return "CLS", ""
                if instr.word == 0x00EE:
                    return "RTN", ""
                return "CMC", f"${NNN:03x}"
            case 0x1:
                return "JMP", f"${NNN:03x}"
            case 0x2:
                return "CALL", f"${NNN:03x}"
            case 0x3:
                return "SKIP.EQ", f"V{X:x},#${NN:02x}"
            case 0x4:
                return "SKIP.NE", f"V{X:x},#${NN:02x}"
            case 0x5:
                return "SKIP.EQ", f"V{X:x},V{Y:x}"
            case 0x6:
                return "MOV", f"V{X:x},#${NN:02x}"
            case 0x7:
                return "ADD", f"V{X:x},#${NN:02x}"
            case 0x8:
                return ALU_MNEMONICS.get(N, "UNKNOWN 8"), f"V{X:x},V{Y:x}"
            case 0x9:
                return "SKIP.NE", f"V{X:x},V{Y:x}"
            case 0xA:
                return "MVI", f"I,${NNN:03x}"
            case 0xB:
                return "JUMP", f"V0+${NNN:03x}"
            case 0xC:
                return "RANDMASK", f"V{X:x},#${NN:02x}"
            case 0xD:
                return "DRAW", f"V{X:x},V{Y:x},#${N:01x}"
            case 0xE:
                return KEY_MNEMONICS.get(NN, "UNKNOWN E"), f"V{X:x}"
            case _:
                return MISC_MNEMONICS.get(NN, "UNKNOWN F"), f"V{X:x}"

    @staticmethod
    def GetName(word: int) -> str:
        """Mnemonic only, e.g. ``GetName(0x8014) == 'ADD'``."""
        return Disassembler._split(decode(word))[0]

    @staticmethod
    def Disassemble(word: int) -> str:
        """
        Disassemble one instruction word.

        Examples:
            >>> Disassembler.Disassemble(0x600A)
            'MOV       V0,#$0a'
            >>> Disassembler.Disassemble(0x00E0)
            'CLS'
        """
        mnemonic, operands = Disassembler._split(decode(word))
        if not operands:
            return mnemonic
        return f"{mnemonic:<10}{operands}"

    @staticmethod
    def DisassembleProgram(data: Union[bytes, bytearray], origin: int = PROGRAM_START) -> List[str]:
        """
        One listing line per 2-byte word: address, raw bytes, instruction.

        A trailing odd byte is listed as ``DB``.
        """
        lines: List[str] = []
        for offset in range(0, len(data) - 1, 2):
            high, low = data[offset], data[offset + 1]
            instr = decode_bytes(high, low)
            lines.append(f"{origin + offset:04x} {high:02x} {low:02x} {Disassembler.Disassemble(instr.word)}")

        if len(data) % 2:
            last = len(data) - 1
            lines.append(f"{origin + last:04x} {data[last]:02x}    {'DB':<10}#${data[last]:02x}")
        return lines
