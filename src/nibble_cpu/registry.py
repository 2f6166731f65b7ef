"""InstructionRegistry: handlers for every NIBBLE-CPU opcode.

Each decoded Opcode maps to exactly one handler. A handler mutates the
machine state and returns either None (fall through: PC advances by one
instruction) or a new PC (redirect: used as-is, no advance).

Opcodes:
    OP_HALT: Stop execution
    OP_NOP: No operation
    OP_ADD_REG / OP_ADD_IMM: 8-bit wrapping addition
    OP_OR_REG / OP_OR_IMM: Bitwise OR
    OP_AND_REG / OP_AND_IMM: Bitwise AND
    OP_MOV_REG / OP_MOV_IMM: Register load
    OP_JUMP: Unconditional jump to a 12-bit address
    OP_CALL: Push the PC of the CALL, jump to a 12-bit address
    OP_RET: Pop and resume after the matching CALL
    OP_UNIMPLEMENTED: Logged, otherwise a no-op

The registry is frozen once built; the instruction set is closed.
"""

import logging
from typing import Callable, Dict, Optional

from .decode import Instruction, Opcode
from .state import BYTE_MASK, INSTRUCTION_SIZE, MachineState


logger = logging.getLogger(__name__)

Handler = Callable[[MachineState, Instruction], Optional[int]]


class InstructionRegistry:
    """Frozen table of instruction handlers.

    Attributes:
        _handlers: Dictionary mapping opcodes to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        self._handlers: Dict[Opcode, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        # Special
        self.register(Opcode.HALT, self._op_halt)
        self.register(Opcode.NOP, self._op_nop)
        self.register(Opcode.UNIMPLEMENTED, self._op_unimplemented)

        # Arithmetic and logic
        self.register(Opcode.ADD_REG, self._op_add_reg)
        self.register(Opcode.ADD_IMM, self._op_add_imm)
        self.register(Opcode.OR_REG, self._op_or_reg)
        self.register(Opcode.OR_IMM, self._op_or_imm)
        self.register(Opcode.AND_REG, self._op_and_reg)
        self.register(Opcode.AND_IMM, self._op_and_imm)

        # Data movement
        self.register(Opcode.MOV_REG, self._op_mov_reg)
        self.register(Opcode.MOV_IMM, self._op_mov_imm)

        # Control flow
        self.register(Opcode.JUMP, self._op_jump)
        self.register(Opcode.CALL, self._op_call)
        self.register(Opcode.RET, self._op_ret)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register a handler for an opcode.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if opcode in self._handlers:
            raise ValueError(f"Handler already registered: {opcode.value}")
        self._handlers[opcode] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all registered operation keys (e.g. "OP_ADD_REG")."""
        return {opcode.value for opcode in self._handlers}

    def execute(self, state: MachineState, instruction: Instruction) -> None:
        """Execute one decoded instruction against state, in place.

        Runs the handler, then moves PC: a redirect replaces PC, otherwise
        PC advances by one instruction. A halted machine keeps its PC on
        the HALT word.

        Raises:
            KeyError: If the opcode has no handler
            StackOverflow, StackUnderflow: From CALL / RET
        """
        if instruction.opcode not in self._handlers:
            raise KeyError(f"Unknown operation key: {instruction.key}")

        handler = self._handlers[instruction.opcode]
        redirect = handler(state, instruction)

        if not state.halted:
            if redirect is None:
                state.pc += INSTRUCTION_SIZE
            else:
                state.pc = redirect

        state.cycle_count += 1

    # =========================================================================
    # Arithmetic and Logic
    # =========================================================================

    def _op_add_reg(self, state: MachineState, instr: Instruction) -> None:
        """ADD Rz = Rx + Ry, wrapping modulo 256."""
        regs = state.registers
        regs[instr.z] = _wrap(regs[instr.x] + regs[instr.y])

    def _op_add_imm(self, state: MachineState, instr: Instruction) -> None:
        """ADD Rz = Rx + imm, wrapping modulo 256."""
        regs = state.registers
        regs[instr.z] = _wrap(regs[instr.x] + instr.y)

    def _op_or_reg(self, state: MachineState, instr: Instruction) -> None:
        regs = state.registers
        regs[instr.z] = regs[instr.x] | regs[instr.y]

    def _op_or_imm(self, state: MachineState, instr: Instruction) -> None:
        regs = state.registers
        regs[instr.z] = regs[instr.x] | instr.y

    def _op_and_reg(self, state: MachineState, instr: Instruction) -> None:
        regs = state.registers
        regs[instr.z] = regs[instr.x] & regs[instr.y]

    def _op_and_imm(self, state: MachineState, instr: Instruction) -> None:
        regs = state.registers
        regs[instr.z] = regs[instr.x] & instr.y

    # =========================================================================
    # Data Movement
    # =========================================================================

    def _op_mov_reg(self, state: MachineState, instr: Instruction) -> None:
        """MOV Rx = Ry. The z nibble is ignored."""
        state.registers[instr.x] = state.registers[instr.y]

    def _op_mov_imm(self, state: MachineState, instr: Instruction) -> None:
        """MOV Rx = imm. The z nibble is ignored."""
        state.registers[instr.x] = instr.y

    # =========================================================================
    # Control Flow
    # =========================================================================

    def _op_jump(self, state: MachineState, instr: Instruction) -> int:
        return instr.address

    def _op_call(self, state: MachineState, instr: Instruction) -> int:
        """CALL addr - save the PC of this CALL, then jump.

        Raises:
            StackOverflow: If the call stack is full
        """
        state.push_return(state.pc)
        return instr.address

    def _op_ret(self, state: MachineState, instr: Instruction) -> int:
        """RET - resume at the instruction after the matching CALL.

        The stack holds the CALL's own address, so the return target is
        one instruction past it.

        Raises:
            StackUnderflow: If the call stack is empty
        """
        return state.pop_return() + INSTRUCTION_SIZE

    # =========================================================================
    # Special
    # =========================================================================

    def _op_halt(self, state: MachineState, instr: Instruction) -> None:
        state.halted = True

    def _op_nop(self, state: MachineState, instr: Instruction) -> None:
        pass

    def _op_unimplemented(self, state: MachineState, instr: Instruction) -> None:
        logger.warning(
            "Not implemented: word 0x%04X (operation %d) at PC=0x%03X",
            instr.word, instr.operation, state.pc
        )


def _wrap(value: int) -> int:
    """Truncate to 8 bits (two's-complement wraparound)."""
    return value & BYTE_MASK


# Singleton registry instance
_registry: Optional[InstructionRegistry] = None


def get_registry() -> InstructionRegistry:
    """Get the shared, frozen InstructionRegistry."""
    global _registry
    if _registry is None:
        _registry = InstructionRegistry()
    return _registry
