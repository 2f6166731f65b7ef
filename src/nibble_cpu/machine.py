"""Machine: fetch-decode-execute orchestrator for NIBBLE-CPU.

Pipeline, once per cycle:
    MEMORY -> FETCH -> DECODE -> OPCODE -> REGISTRY -> EXECUTE -> STATE
              [PC]   [nibbles] [enum]    [frozen]    [in place]

A host builds a Machine, pokes registers and memory, calls run(), and
reads registers back. run() stops on HALT (word 0x0000) or when PC
reaches the top of memory.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .decode import Instruction, Opcode, decode, fetch_word, words_to_bytes
from .errors import CycleLimitExceeded, MachineError
from .registry import InstructionRegistry, get_registry
from .state import PC_LIMIT, MachineState, create_initial_state


logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        pc: Address the instruction was fetched from
        instruction: Decoded instruction
        pre_state: State snapshot before execution
        post_state: State snapshot after execution
        note: Diagnostic message (e.g. unimplemented opcode)
    """
    cycle: int
    pc: int
    instruction: Instruction
    pre_state: dict
    post_state: dict
    note: Optional[str] = None

    @property
    def key(self) -> str:
        return self.instruction.key


class Machine:
    """Virtual CPU with 16 8-bit registers, 4 KiB memory and a 16-deep call stack.

    Attributes:
        registry: InstructionRegistry with the opcode handlers
        state: Current machine state
        trace: Execution trace entries (only filled when record_trace is set)
        max_cycles: Optional step limit; None runs until HALT or end of memory
        record_trace: Whether step() records ExecutionTraceEntry objects
    """

    DEFAULT_MAX_CYCLES: Optional[int] = None

    def __init__(
        self,
        max_cycles: Optional[int] = DEFAULT_MAX_CYCLES,
        record_trace: bool = False
    ):
        self.registry: InstructionRegistry = get_registry()
        self.state: MachineState = create_initial_state()
        self.trace: List[ExecutionTraceEntry] = []
        self.max_cycles = max_cycles
        self.record_trace = record_trace

    def reset(self) -> None:
        """Return to the zeroed power-on state and clear the trace."""
        self.state = create_initial_state()
        self.trace = []

    # =========================================================================
    # Host pokes
    # =========================================================================

    def write_register(self, index: int, value: int) -> None:
        self.state.set_register(index, value)

    def write_memory(self, address: int, value: int) -> None:
        self.state.write_memory(address, value)

    def load_bytes(self, data: Iterable[int], address: int = 0) -> int:
        """Poke raw bytes into memory starting at address.

        Returns:
            Address one past the last byte written
        """
        return self.state.load_bytes(data, address)

    def load_words(self, words: Iterable[int], address: int = 0) -> int:
        """Poke 16-bit instruction words big-endian starting at address.

        Returns:
            Address one past the last byte written
        """
        return self.state.load_bytes(words_to_bytes(words), address)

    # =========================================================================
    # Execution
    # =========================================================================

    def is_running(self) -> bool:
        """True while neither HALT nor the top of memory has been reached."""
        return not self.state.halted and self.state.pc < PC_LIMIT

    def step(self) -> Instruction:
        """Execute a single instruction cycle: FETCH -> DECODE -> EXECUTE.

        Returns:
            The decoded instruction that was executed

        Raises:
            RuntimeError: If the machine is halted or PC is past the last word
            StackOverflow, StackUnderflow: From CALL / RET
        """
        state = self.state
        if state.halted:
            raise RuntimeError("Machine is halted")
        if state.pc >= PC_LIMIT:
            raise RuntimeError(f"PC=0x{state.pc:03X} is past the last instruction word")

        pc = state.pc
        instruction = decode(fetch_word(state.memory, pc))
        pre_state = state.snapshot() if self.record_trace else {}

        logger.debug("PC=0x%03X %s", pc, instruction)

        try:
            self.registry.execute(state, instruction)
        except MachineError as e:
            logger.error("Fault at PC=0x%03X (%s): %s", pc, instruction, e)
            raise

        if self.record_trace:
            note = None
            if instruction.opcode is Opcode.UNIMPLEMENTED:
                note = f"Not implemented: operation {instruction.operation}"
            self.trace.append(ExecutionTraceEntry(
                cycle=state.cycle_count - 1,
                pc=pc,
                instruction=instruction,
                pre_state=pre_state,
                post_state=state.snapshot(),
                note=note
            ))

        return instruction

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Run until HALT or until PC reaches the top of memory.

        Args:
            max_cycles: Override the instance step limit for this call

        Returns:
            Execution trace (empty unless record_trace is set)

        Raises:
            CycleLimitExceeded: If a step limit is set and reached first
            StackOverflow, StackUnderflow: From CALL / RET
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles

        while self.is_running():
            if limit is not None and self.state.cycle_count >= limit:
                raise CycleLimitExceeded(f"Max cycles ({limit}) exceeded")
            self.step()

        if self.state.halted:
            logger.debug("Halted at PC=0x%03X after %d cycles",
                         self.state.pc, self.state.cycle_count)
        else:
            logger.debug("Ran off the end of memory at PC=0x%03X", self.state.pc)

        return self.trace

    # =========================================================================
    # Inspection
    # =========================================================================

    def read_register(self, index: int) -> int:
        """Get the value of register index (0-15).

        Raises:
            OutOfRange: If index is not 0-15
        """
        return self.state.get_register(index)

    def read_memory(self, address: int) -> int:
        return self.state.read_memory(address)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    @property
    def pc(self) -> int:
        return self.state.pc

    @property
    def stack_pointer(self) -> int:
        return self.state.stack_pointer

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state.halted

    def get_trace(self) -> List[ExecutionTraceEntry]:
        return self.trace

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("NIBBLE-CPU EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.note else entry.note
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  PC: 0x{entry.pc:03X}  Word: 0x{entry.instruction.word:04X}")
            print(f"  Decoded Key: {entry.key}")

            pre_regs = entry.pre_state.get("registers", [])
            post_regs = entry.post_state.get("registers", [])
            changes = [
                f"R{i}: {before} → {after}"
                for i, (before, after) in enumerate(zip(pre_regs, post_regs))
                if before != after
            ]
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            if entry.pre_state.get("stack") != entry.post_state.get("stack"):
                print(f"  Stack: {entry.pre_state['stack']} → {entry.post_state['stack']}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        summary = self.get_summary()
        print(f"  Registers: {summary['registers']}")
        print(f"  PC: 0x{summary['pc']:03X}")
        print(f"  Stack depth: {summary['stack_pointer']}")
        print(f"  Cycles: {summary['cycles']}")
        print(f"  Halted: {summary['halted']}")

    def get_summary(self) -> Dict:
        """Get execution statistics and final state."""
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "pc": self.pc,
            "stack_pointer": self.stack_pointer,
            "trace_length": len(self.trace),
            "notes": [e.note for e in self.trace if e.note],
        }
