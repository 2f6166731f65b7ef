"""Tests for MachineState dataclass."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from nibble_cpu.errors import MachineError, OutOfRange, StackOverflow, StackUnderflow
from nibble_cpu.state import (
    MachineState, create_initial_state,
    MEMORY_SIZE, REGISTER_COUNT, STACK_DEPTH,
)


class TestMachineStateCreation:
    """Test MachineState initialization and defaults."""

    def test_default_state(self):
        """Default state has zeroed registers, memory and stack."""
        state = MachineState()
        assert state.pc == 0
        assert state.cycle_count == 0
        assert state.halted is False
        assert state.stack_pointer == 0
        assert state.registers == [0] * REGISTER_COUNT
        assert len(state.memory) == MEMORY_SIZE
        assert not any(state.memory)
        assert state.stack == [0] * STACK_DEPTH

    def test_create_initial_state(self):
        """create_initial_state matches the architectural sizes."""
        state = create_initial_state()
        assert len(state.registers) == 16
        assert len(state.memory) == 0x1000
        assert len(state.stack) == 16
        assert state.validate() is True

    def test_states_do_not_share_buffers(self):
        """Each state owns its own registers and memory."""
        a = create_initial_state()
        b = create_initial_state()
        a.set_register(0, 1)
        a.write_memory(0, 0xAB)
        assert b.registers[0] == 0
        assert b.memory[0] == 0


class TestMachineStateValidation:
    """Test state validation."""

    def test_valid_state(self):
        assert MachineState().validate() is True

    def test_register_value_too_large(self):
        """Register value outside 8 bits fails validation."""
        state = MachineState()
        state.registers[0] = 256
        assert state.validate() is False

    def test_negative_pc(self):
        state = MachineState(pc=-1)
        assert state.validate() is False

    def test_pc_past_memory(self):
        state = MachineState(pc=MEMORY_SIZE + 1)
        assert state.validate() is False

    def test_stack_pointer_out_of_range(self):
        state = MachineState(stack_pointer=STACK_DEPTH + 1)
        assert state.validate() is False

    def test_wrong_register_count(self):
        state = MachineState(registers=[0] * 8)
        assert state.validate() is False


class TestMachineStateRegisters:
    """Test register accessors."""

    def test_set_and_get_register(self):
        state = MachineState()
        state.set_register(15, 200)
        assert state.get_register(15) == 200

    @pytest.mark.parametrize("index", [-1, 16, 255])
    def test_get_register_out_of_range(self, index):
        """Out-of-range index raises OutOfRange."""
        state = MachineState()
        with pytest.raises(OutOfRange):
            state.get_register(index)

    def test_out_of_range_is_index_error(self):
        """OutOfRange is catchable as IndexError and MachineError."""
        state = MachineState()
        with pytest.raises(IndexError):
            state.get_register(16)
        with pytest.raises(MachineError):
            state.set_register(16, 0)

    @pytest.mark.parametrize("value", [-1, 256])
    def test_set_register_rejects_non_byte(self, value):
        state = MachineState()
        with pytest.raises(ValueError):
            state.set_register(0, value)

    def test_dump_registers(self):
        """dump_registers returns a detached R0-R15 mapping."""
        state = MachineState()
        state.set_register(0, 1)
        state.set_register(15, 2)

        regs = state.dump_registers()
        assert list(regs) == [f"R{i}" for i in range(16)]
        assert regs["R0"] == 1
        assert regs["R15"] == 2

        regs["R0"] = 99
        assert state.registers[0] == 1


class TestMachineStateMemory:
    """Test memory pokes."""

    def test_write_and_read_memory(self):
        state = MachineState()
        state.write_memory(0xFFF, 0x7F)
        assert state.read_memory(0xFFF) == 0x7F

    def test_write_memory_out_of_range(self):
        state = MachineState()
        with pytest.raises(OutOfRange):
            state.write_memory(MEMORY_SIZE, 0)

    def test_write_memory_rejects_non_byte(self):
        state = MachineState()
        with pytest.raises(ValueError):
            state.write_memory(0, 0x100)

    def test_load_bytes(self):
        """load_bytes places bytes in order and returns the end address."""
        state = MachineState()
        end = state.load_bytes([0x10, 0x12, 0x00, 0x00], 0x20)
        assert end == 0x24
        assert bytes(state.memory[0x20:0x24]) == b"\x10\x12\x00\x00"

    def test_load_bytes_to_last_cell(self):
        state = MachineState()
        assert state.load_bytes(b"\xAA\xBB", MEMORY_SIZE - 2) == MEMORY_SIZE

    def test_load_bytes_overrun(self):
        """Bytes that would run past the end of memory are rejected."""
        state = MachineState()
        with pytest.raises(OutOfRange):
            state.load_bytes(b"\x00\x00\x00", MEMORY_SIZE - 2)
        assert not any(state.memory)


class TestMachineStateStack:
    """Test call stack push/pop guards."""

    def test_push_pop_lifo(self):
        state = MachineState()
        state.push_return(0x010)
        state.push_return(0x020)
        assert state.stack_pointer == 2
        assert state.pop_return() == 0x020
        assert state.pop_return() == 0x010
        assert state.stack_pointer == 0

    def test_fill_stack_to_capacity(self):
        """Exactly STACK_DEPTH pushes succeed."""
        state = MachineState()
        for i in range(STACK_DEPTH):
            state.push_return(i * 2)
        assert state.stack_pointer == STACK_DEPTH
        assert state.validate() is True

    def test_overflow(self):
        """Push past capacity raises and leaves the stack intact."""
        state = MachineState()
        for i in range(STACK_DEPTH):
            state.push_return(i * 2)
        with pytest.raises(StackOverflow):
            state.push_return(0x100)
        assert state.stack_pointer == STACK_DEPTH
        assert state.stack[-1] == (STACK_DEPTH - 1) * 2

    def test_underflow(self):
        state = MachineState()
        with pytest.raises(StackUnderflow):
            state.pop_return()
        assert state.stack_pointer == 0


class TestMachineStateSnapshot:
    """Test state snapshot for tracing."""

    def test_snapshot_is_detached(self):
        """Modifying a snapshot doesn't affect state."""
        state = MachineState()
        state.set_register(0, 42)
        state.push_return(0x002)
        snapshot = state.snapshot()

        assert snapshot["registers"][0] == 42
        assert snapshot["pc"] == 0
        assert snapshot["stack"] == [0x002]
        assert snapshot["stack_pointer"] == 1
        assert snapshot["halted"] is False

        snapshot["registers"][0] = 99
        snapshot["stack"].append(7)
        assert state.registers[0] == 42
        assert state.stack_pointer == 1

    def test_str(self):
        state = MachineState()
        state.set_register(3, 9)
        text = str(state)
        assert "PC=0x000" in text
        assert "R3=9" in text
