"""NIBBLE-CPU: a minimal 16-bit-instruction virtual CPU.

The machine has 16 8-bit registers, 4 KiB of byte-addressable memory
shared by code and data, and a 16-deep call stack. Every instruction is
one big-endian 16-bit word split into four nibbles:

    operation | x | y | z

Architecture:
    MEMORY -> FETCH -> DECODE -> OPCODE -> REGISTRY -> EXECUTE -> STATE

Modules:
    state: MachineState dataclass and architecture constants
    errors: Machine fault exceptions
    decode: Word fetch, nibble decode and the Opcode enumeration
    registry: Frozen opcode -> handler table
    machine: Main Machine orchestrator
    programs: Example programs
"""

__version__ = "0.1.0"
__author__ = "NIBBLE-CPU Project"

from .state import MachineState
from .errors import (
    MachineError, OutOfRange, StackOverflow, StackUnderflow, CycleLimitExceeded,
)
from .decode import Instruction, Opcode
from .registry import InstructionRegistry
from .machine import Machine, ExecutionTraceEntry

__all__ = [
    "MachineState",
    "MachineError", "OutOfRange", "StackOverflow", "StackUnderflow", "CycleLimitExceeded",
    "Instruction", "Opcode",
    "InstructionRegistry",
    "Machine", "ExecutionTraceEntry",
]
