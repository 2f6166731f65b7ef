"""Tests for instruction fetch and decode."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from nibble_cpu.decode import (
    Instruction, Opcode, decode, encode, encode_address, fetch_word, words_to_bytes,
)


class TestFetch:
    """Test big-endian word fetch."""

    def test_high_byte_first(self):
        memory = bytearray(16)
        memory[4] = 0x12
        memory[5] = 0x34
        assert fetch_word(memory, 4) == 0x1234

    def test_odd_address(self):
        memory = bytearray(b"\x00\xAB\xCD\x00")
        assert fetch_word(memory, 1) == 0xABCD


class TestDecodeFields:
    """Test nibble extraction."""

    def test_fields(self):
        instr = decode(0x1A2B)
        assert instr.operation == 0x1
        assert instr.x == 0xA
        assert instr.y == 0x2
        assert instr.z == 0xB
        assert instr.word == 0x1A2B

    def test_address(self):
        """x, y, z concatenate into a 12-bit address."""
        assert decode(0x9026).address == 0x026
        assert decode(0xAFFF).address == 0xFFF
        assert decode(0xA100).address == 0x100

    def test_decode_is_pure(self):
        """Decoding the same word twice yields equal instructions."""
        assert decode(0x3012) == decode(0x3012)

    def test_instruction_is_frozen(self):
        instr = decode(0x1012)
        with pytest.raises(AttributeError):
            instr.x = 3


class TestDecodeOpcodes:
    """Test classification into Opcode cases."""

    @pytest.mark.parametrize("word,opcode", [
        (0x0000, Opcode.HALT),
        (0x0111, Opcode.NOP),
        (0x1012, Opcode.ADD_REG),
        (0x20F0, Opcode.ADD_IMM),
        (0x3012, Opcode.OR_REG),
        (0x40F2, Opcode.OR_IMM),
        (0x5012, Opcode.AND_REG),
        (0x60F2, Opcode.AND_IMM),
        (0x701F, Opcode.MOV_REG),
        (0x80F2, Opcode.MOV_IMM),
        (0x9026, Opcode.JUMP),
        (0xA100, Opcode.CALL),
        (0xB000, Opcode.RET),
    ])
    def test_defined_opcodes(self, word, opcode):
        assert decode(word).opcode is opcode

    @pytest.mark.parametrize("word", [0xC000, 0xD123, 0xE000, 0xFFFF])
    def test_high_operations_unimplemented(self, word):
        assert decode(word).opcode is Opcode.UNIMPLEMENTED

    @pytest.mark.parametrize("word", [0x0001, 0x0110, 0x0112, 0x0FFF, 0x0100])
    def test_other_operation_zero_words_unimplemented(self, word):
        """Only 0x0000 and 0x0111 have meaning under operation 0."""
        assert decode(word).opcode is Opcode.UNIMPLEMENTED

    def test_nonzero_fields_with_operation_one(self):
        """Operation 1 with x=y=z=0 is an ADD, not a HALT."""
        assert decode(0x1000).opcode is Opcode.ADD_REG

    def test_key(self):
        assert decode(0x1012).key == "OP_ADD_REG"
        assert decode(0x0000).key == "OP_HALT"


class TestEncode:
    """Test word construction helpers."""

    def test_encode(self):
        assert encode(0x1, 0x0, 0x1, 0x2) == 0x1012
        assert encode(0xB) == 0xB000

    def test_encode_rejects_wide_field(self):
        with pytest.raises(ValueError, match="x=16"):
            encode(1, 16, 0, 0)

    def test_encode_address(self):
        assert encode_address(0x9, 0x026) == 0x9026
        assert encode_address(0xA, 0xFFF) == 0xAFFF

    def test_encode_address_rejects_wide_address(self):
        with pytest.raises(ValueError):
            encode_address(0x9, 0x1000)

    def test_encode_then_decode_fields(self):
        instr = decode(encode(0x6, 0x3, 0xF, 0x2))
        assert (instr.operation, instr.x, instr.y, instr.z) == (0x6, 0x3, 0xF, 0x2)

    def test_words_to_bytes(self):
        assert words_to_bytes([0xA100, 0x0000]) == b"\xA1\x00\x00\x00"

    def test_words_to_bytes_rejects_wide_word(self):
        with pytest.raises(ValueError):
            words_to_bytes([0x10000])


class TestInstructionStr:

    def test_str(self):
        assert str(decode(0x1012)) == "1012 ADD_REG"
        assert isinstance(decode(0x1012), Instruction)
