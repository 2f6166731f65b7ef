"""Example programs for NIBBLE-CPU.

Each program is a set of word segments (address -> instruction words)
plus initial register values. They are placed with plain memory pokes,
the only way programs reach the machine.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .machine import Machine


@dataclass
class ExampleProgram:
    """A canned program and the register values it should leave behind.

    Attributes:
        name: Short identifier
        description: One-line summary
        segments: Mapping of start address to instruction words
        registers: Initial register values by index
        expected: Expected final register values by index
    """
    name: str
    description: str
    segments: Dict[int, List[int]]
    registers: Dict[int, int] = field(default_factory=dict)
    expected: Dict[int, int] = field(default_factory=dict)

    def load_into(self, machine: Machine) -> None:
        for index, value in self.registers.items():
            machine.write_register(index, value)
        for address, words in self.segments.items():
            machine.load_words(words, address)


EXAMPLE_PROGRAMS: Dict[str, ExampleProgram] = {
    "add": ExampleProgram(
        name="add",
        description="R2 = R0 + R1 (3 + 4)",
        segments={0x000: [0x1012, 0x0000]},
        registers={0: 3, 1: 4},
        expected={2: 7},
    ),
    "mask": ExampleProgram(
        name="mask",
        description="R2 = R0 & 0xF",
        segments={0x000: [0x60F2, 0x0000]},
        registers={0: 0b1010},
        expected={2: 0b1010},
    ),
    "wrap": ExampleProgram(
        name="wrap",
        description="R1 = 250 + 15 + 15 wraps to 24",
        segments={0x000: [0x20F1, 0x21F1, 0x0000]},
        registers={0: 250},
        expected={1: 24},
    ),
    "jump": ExampleProgram(
        name="jump",
        description="Jump over a poisoned word to 0x026",
        segments={
            0x000: [0x9026, 0x8F90],
            0x026: [0x8150, 0x0000],
        },
        expected={1: 5, 15: 0},
    ),
    "call": ExampleProgram(
        name="call",
        description="Call a subroutine at 0x100 that adds R0 and R1",
        segments={
            0x000: [0x0111, 0xA100, 0x0000],
            0x100: [0x1012, 0xB000],
        },
        registers={0: 3, 1: 4},
        expected={2: 7},
    ),
    "nested": ExampleProgram(
        name="nested",
        description="Two-level call chain: R3 = (R0 | R1) + 1",
        segments={
            0x000: [0xA040, 0x2213, 0x0000],
            0x040: [0x3012, 0xA080, 0xB000],
            0x080: [0x7D2D, 0xB000],
        },
        registers={0: 0b0100, 1: 0b0001},
        expected={2: 0b0101, 3: 0b0110, 13: 0b0101},
    ),
}
