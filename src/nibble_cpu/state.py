"""MachineState: mutable state container for NIBBLE-CPU.

State Components:
    - Registers: 16 general-purpose 8-bit unsigned cells (index 0-15)
    - Memory: 4 KiB byte-addressable buffer shared by code and data
    - PC: Program counter (byte address of the next instruction word)
    - Stack: 16 return-address slots plus a stack pointer
    - Halted: Execution termination flag
    - Cycle count: Total executed cycles

The state is owned by a single Machine and mutated in place every cycle.
snapshot() produces detached copies for the execution trace.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .errors import OutOfRange, StackOverflow, StackUnderflow


REGISTER_COUNT = 16
MEMORY_SIZE = 0x1000
STACK_DEPTH = 16

# Every instruction is one big-endian 16-bit word
INSTRUCTION_SIZE = 2

# A fetch at PC_LIMIT would read past the end of memory
PC_LIMIT = MEMORY_SIZE - 1

BYTE_MASK = 0xFF
WORD_MASK = 0xFFFF


@dataclass
class MachineState:
    """Complete machine state.

    Attributes:
        registers: 16 register values, each 0-255
        memory: 4096-byte memory buffer
        pc: Program counter
        stack: Fixed-size list of return addresses
        stack_pointer: Number of active stack entries (0-16)
        halted: Whether the machine has executed HALT
        cycle_count: Number of execution cycles completed
    """
    registers: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))
    pc: int = 0
    stack: List[int] = field(default_factory=lambda: [0] * STACK_DEPTH)
    stack_pointer: int = 0
    halted: bool = False
    cycle_count: int = 0

    def snapshot(self) -> dict:
        """Create a detached snapshot of the current state for tracing.

        Memory is left out: instructions never write to it, so it is the
        same before and after every cycle.
        """
        return {
            "registers": list(self.registers),
            "pc": self.pc,
            "stack": list(self.stack[:self.stack_pointer]),
            "stack_pointer": self.stack_pointer,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Register file, memory and stack have their architectural sizes
            - Every register holds an 8-bit value
            - PC is inside memory, or just past its end
            - Stack pointer and stack entries are in range

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.registers) != REGISTER_COUNT:
            return False
        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= BYTE_MASK:
                return False

        if len(self.memory) != MEMORY_SIZE:
            return False

        # PC may sit one past the end after running off the top of memory
        if not 0 <= self.pc <= MEMORY_SIZE:
            return False

        if len(self.stack) != STACK_DEPTH:
            return False
        if not 0 <= self.stack_pointer <= STACK_DEPTH:
            return False
        for addr in self.stack[:self.stack_pointer]:
            if not 0 <= addr <= WORD_MASK:
                return False

        if self.cycle_count < 0:
            return False

        return True

    # =========================================================================
    # Registers
    # =========================================================================

    def get_register(self, index: int) -> int:
        """Get value of a register.

        Raises:
            OutOfRange: If index is not 0-15
        """
        _check_index(index, REGISTER_COUNT, "register")
        return self.registers[index]

    def set_register(self, index: int, value: int) -> None:
        """Store an 8-bit value into a register.

        Raises:
            OutOfRange: If index is not 0-15
            ValueError: If value does not fit in 8 bits
        """
        _check_index(index, REGISTER_COUNT, "register")
        _check_byte(value)
        self.registers[index] = value

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed R0-R15."""
        return {f"R{i}": value for i, value in enumerate(self.registers)}

    # =========================================================================
    # Memory
    # =========================================================================

    def read_memory(self, address: int) -> int:
        _check_index(address, MEMORY_SIZE, "memory address")
        return self.memory[address]

    def write_memory(self, address: int, value: int) -> None:
        """Poke one byte into memory.

        Raises:
            OutOfRange: If address is outside memory
            ValueError: If value does not fit in 8 bits
        """
        _check_index(address, MEMORY_SIZE, "memory address")
        _check_byte(value)
        self.memory[address] = value

    def load_bytes(self, data: Iterable[int], address: int = 0) -> int:
        """Poke a run of bytes starting at address.

        Returns:
            Address one past the last byte written

        Raises:
            OutOfRange: If the bytes do not fit in memory
        """
        data = bytes(data)
        _check_index(address, MEMORY_SIZE, "memory address")
        end = address + len(data)
        if end > MEMORY_SIZE:
            raise OutOfRange(
                f"{len(data)} bytes at 0x{address:03X} overrun memory end 0x{MEMORY_SIZE:03X}"
            )
        self.memory[address:end] = data
        return end

    # =========================================================================
    # Call stack
    # =========================================================================

    def push_return(self, address: int) -> None:
        """Push a return address onto the call stack.

        Raises:
            StackOverflow: If all STACK_DEPTH slots are in use
        """
        if self.stack_pointer >= STACK_DEPTH:
            raise StackOverflow(
                f"Call stack overflow at PC=0x{self.pc:03X} (depth {STACK_DEPTH})"
            )
        self.stack[self.stack_pointer] = address & WORD_MASK
        self.stack_pointer += 1

    def pop_return(self) -> int:
        """Pop the most recent return address.

        Raises:
            StackUnderflow: If the call stack is empty
        """
        if self.stack_pointer == 0:
            raise StackUnderflow(f"Call stack underflow at PC=0x{self.pc:03X}")
        self.stack_pointer -= 1
        return self.stack[self.stack_pointer]

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"R{i}={v}" for i, v in enumerate(self.registers) if v)
        return (
            f"[Cycle {self.cycle_count}] PC=0x{self.pc:03X} SP={self.stack_pointer} "
            f"{regs} {'HALTED' if self.halted else ''}"
        ).rstrip()


def _check_index(index: int, size: int, what: str) -> None:
    if not isinstance(index, int) or not 0 <= index < size:
        raise OutOfRange(f"Invalid {what}: {index!r} (expected 0-{size - 1})")


def _check_byte(value: int) -> None:
    if not isinstance(value, int) or not 0 <= value <= BYTE_MASK:
        raise ValueError(f"Value {value!r} does not fit in 8 bits")


def create_initial_state() -> MachineState:
    """Create a zeroed machine state: PC 0, empty stack, not halted."""
    return MachineState(
        registers=[0] * REGISTER_COUNT,
        memory=bytearray(MEMORY_SIZE),
        pc=0,
        stack=[0] * STACK_DEPTH,
        stack_pointer=0,
        halted=False,
        cycle_count=0
    )
