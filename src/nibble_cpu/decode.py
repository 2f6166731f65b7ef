"""Instruction fetch and decode for NIBBLE-CPU.

Every instruction is a 16-bit word stored big-endian (high byte at the
lower address). The word is split into four nibbles, most significant
first:

    15      12 11       8 7        4 3        0
    +---------+----------+----------+----------+
    |operation|    x     |    y     |    z     |
    +---------+----------+----------+----------+

x/y/z name registers, an immediate (y) or, for JUMP and CALL, the three
nibbles of a 12-bit address. decode() turns the word into an Instruction
whose opcode is one case of the closed Opcode enumeration, so dispatch
never has to re-inspect the raw fields.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from .state import WORD_MASK


class Opcode(Enum):
    """Decoded instruction kinds."""
    HALT = "OP_HALT"
    NOP = "OP_NOP"
    ADD_REG = "OP_ADD_REG"
    ADD_IMM = "OP_ADD_IMM"
    OR_REG = "OP_OR_REG"
    OR_IMM = "OP_OR_IMM"
    AND_REG = "OP_AND_REG"
    AND_IMM = "OP_AND_IMM"
    MOV_REG = "OP_MOV_REG"
    MOV_IMM = "OP_MOV_IMM"
    JUMP = "OP_JUMP"
    CALL = "OP_CALL"
    RET = "OP_RET"
    UNIMPLEMENTED = "OP_UNIMPLEMENTED"


# Operation nibble -> opcode, for operations 1-11
OPERATIONS = {
    0x1: Opcode.ADD_REG,
    0x2: Opcode.ADD_IMM,
    0x3: Opcode.OR_REG,
    0x4: Opcode.OR_IMM,
    0x5: Opcode.AND_REG,
    0x6: Opcode.AND_IMM,
    0x7: Opcode.MOV_REG,
    0x8: Opcode.MOV_IMM,
    0x9: Opcode.JUMP,
    0xA: Opcode.CALL,
    0xB: Opcode.RET,
}

HALT_WORD = 0x0000
NOP_WORD = 0x0111


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction word.

    Attributes:
        word: Raw 16-bit instruction word
        opcode: Decoded instruction kind
        operation: Bits 15-12
        x: Bits 11-8
        y: Bits 7-4 (second register or immediate)
        z: Bits 3-0 (destination register)
    """
    word: int
    opcode: Opcode
    operation: int
    x: int
    y: int
    z: int

    @property
    def address(self) -> int:
        """12-bit jump/call target formed from x, y and z."""
        return (self.x << 8) | (self.y << 4) | self.z

    @property
    def key(self) -> str:
        return self.opcode.value

    def __str__(self) -> str:
        return f"{self.word:04X} {self.opcode.name}"


def fetch_word(memory: bytearray, pc: int) -> int:
    """Read the big-endian word at pc and pc+1."""
    return (memory[pc] << 8) | memory[pc + 1]


def decode(word: int) -> Instruction:
    """Split a 16-bit word into its fields and classify it.

    Operation 0 is only meaningful as HALT (0x0000) or NOP (0x0111);
    any other operation-0 word, like operations 12-15, decodes as
    UNIMPLEMENTED.
    """
    word &= WORD_MASK
    operation = (word >> 12) & 0xF
    x = (word >> 8) & 0xF
    y = (word >> 4) & 0xF
    z = word & 0xF

    if word == HALT_WORD:
        opcode = Opcode.HALT
    elif word == NOP_WORD:
        opcode = Opcode.NOP
    else:
        opcode = OPERATIONS.get(operation, Opcode.UNIMPLEMENTED)

    return Instruction(word=word, opcode=opcode, operation=operation, x=x, y=y, z=z)


def encode(operation: int, x: int = 0, y: int = 0, z: int = 0) -> int:
    """Pack four nibbles into an instruction word.

    Raises:
        ValueError: If any field does not fit in 4 bits
    """
    for name, value in (("operation", operation), ("x", x), ("y", y), ("z", z)):
        if not 0 <= value <= 0xF:
            raise ValueError(f"Field {name}={value!r} does not fit in 4 bits")
    return (operation << 12) | (x << 8) | (y << 4) | z


def encode_address(operation: int, address: int) -> int:
    """Pack an operation with a 12-bit address (JUMP, CALL)."""
    if not 0 <= address <= 0xFFF:
        raise ValueError(f"Address 0x{address:X} does not fit in 12 bits")
    return encode(operation, (address >> 8) & 0xF, (address >> 4) & 0xF, address & 0xF)


def words_to_bytes(words: Iterable[int]) -> bytes:
    """Lay out instruction words big-endian, high byte first."""
    out: List[int] = []
    for word in words:
        if not 0 <= word <= WORD_MASK:
            raise ValueError(f"Word 0x{word:X} does not fit in 16 bits")
        out.append((word >> 8) & 0xFF)
        out.append(word & 0xFF)
    return bytes(out)
