"""ISA: opcodes, parameter modes, instruction variants and the decoder."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, fields
from enum import IntEnum
from typing import TYPE_CHECKING, ClassVar, Union

if TYPE_CHECKING:
    from processor import Memory


class IntcodeError(Exception):
    """Base class for every failure of the machine."""


class DecodeError(IntcodeError):
    """Raised when the word at the instruction pointer can't be decoded."""


class AddressingError(DecodeError):
    """Raised when a destination operand is not an address."""


class BoundsError(IntcodeError):
    """Raised on an access outside of memory."""


class OpCode(IntEnum):
    """Keeps opcodes from all operations."""

    ADD = 1  # dst = a + b
    MULTIPLY = 2  # dst = a * b
    INPUT = 3  # dst = read
    OUTPUT = 4  # write src
    JUMP_IF_TRUE = 5
    JUMP_IF_FALSE = 6
    LESS_THAN = 7  # dst = a < b
    EQUALS = 8  # dst = a == b
    HALT = 99


class ParameterMode(IntEnum):
    POSITION = 0
    IMMEDIATE = 1


MODE_SLOTS = 3

# signed 32-bit word range
WORD_MIN = -(2**31)
WORD_MAX = 2**31 - 1

_WORD_RE = re.compile(r"[-+]?[0-9]+")


def parse_word(token: str) -> int:
    """Parse a decimal token into a 32-bit word.

    Only ASCII digits with an optional sign are accepted; surrounding
    whitespace is not. Raises ValueError for anything else, including
    values outside [WORD_MIN, WORD_MAX].
    """
    if not _WORD_RE.fullmatch(token):
        err = f"not a decimal integer: {token!r}"
        raise ValueError(err)
    value = int(token)
    if not WORD_MIN <= value <= WORD_MAX:
        err = f"{token} is out of the 32-bit word range"
        raise ValueError(err)
    return value


@dataclass(frozen=True)
class Address:
    """Operand that names a memory cell."""

    index: int

    def load(self, memory: Memory) -> int:
        return memory.read_word(self.index)

    def store(self, memory: Memory, value: int) -> None:
        memory.write_word(self.index, value)


@dataclass(frozen=True)
class Value:
    """Immediate operand. Has no store: it can't be a destination."""

    value: int

    def load(self, memory: Memory) -> int:
        return self.value


Parameter = Union[Address, Value]


@dataclass(frozen=True)
class Add:
    OPCODE: ClassVar[OpCode] = OpCode.ADD
    LENGTH: ClassVar[int] = 4

    addend_1: Parameter
    addend_2: Parameter
    destination: Address


@dataclass(frozen=True)
class Multiply:
    OPCODE: ClassVar[OpCode] = OpCode.MULTIPLY
    LENGTH: ClassVar[int] = 4

    factor_1: Parameter
    factor_2: Parameter
    destination: Address


@dataclass(frozen=True)
class Input:
    OPCODE: ClassVar[OpCode] = OpCode.INPUT
    LENGTH: ClassVar[int] = 2

    destination: Address


@dataclass(frozen=True)
class Output:
    OPCODE: ClassVar[OpCode] = OpCode.OUTPUT
    LENGTH: ClassVar[int] = 2

    source: Parameter


@dataclass(frozen=True)
class JumpIfTrue:
    OPCODE: ClassVar[OpCode] = OpCode.JUMP_IF_TRUE
    LENGTH: ClassVar[int] = 3

    condition: Parameter
    target: Parameter


@dataclass(frozen=True)
class JumpIfFalse:
    OPCODE: ClassVar[OpCode] = OpCode.JUMP_IF_FALSE
    LENGTH: ClassVar[int] = 3

    condition: Parameter
    target: Parameter


@dataclass(frozen=True)
class LessThan:
    OPCODE: ClassVar[OpCode] = OpCode.LESS_THAN
    LENGTH: ClassVar[int] = 4

    value_1: Parameter
    value_2: Parameter
    destination: Address


@dataclass(frozen=True)
class Equals:
    OPCODE: ClassVar[OpCode] = OpCode.EQUALS
    LENGTH: ClassVar[int] = 4

    value_1: Parameter
    value_2: Parameter
    destination: Address


@dataclass(frozen=True)
class Halt:
    OPCODE: ClassVar[OpCode] = OpCode.HALT
    LENGTH: ClassVar[int] = 1


Instruction = Union[Add, Multiply, Input, Output, JumpIfTrue, JumpIfFalse, LessThan, Equals, Halt]

# Instruction length in cells (opcode cell included)
INSTR_LEN: dict[OpCode, int] = {
    OpCode.ADD: Add.LENGTH,
    OpCode.MULTIPLY: Multiply.LENGTH,
    OpCode.INPUT: Input.LENGTH,
    OpCode.OUTPUT: Output.LENGTH,
    OpCode.JUMP_IF_TRUE: JumpIfTrue.LENGTH,
    OpCode.JUMP_IF_FALSE: JumpIfFalse.LENGTH,
    OpCode.LESS_THAN: LessThan.LENGTH,
    OpCode.EQUALS: Equals.LENGTH,
    OpCode.HALT: Halt.LENGTH,
}


def decode_mode(raw: int, slot: int) -> ParameterMode:
    """Return the addressing mode of operand `slot` (0-based) of `raw`.

    Slot 0 is the hundreds digit, slot 1 the thousands digit and so on.
    """
    digit = (raw // (100 * 10**slot)) % 10
    try:
        return ParameterMode(digit)
    except ValueError:
        err = f"unsupported parameter mode: {digit}"
        raise DecodeError(err) from None


def decode_opcode(raw: int) -> tuple[OpCode, tuple[ParameterMode, ...]]:
    """Split a raw instruction word into (OpCode, modes).

    Modes are checked before the operation, so `299` fails on its mode digit.
    """
    if raw < 0:
        err = f"unsupported operation: {raw}"
        raise DecodeError(err)
    modes = tuple(decode_mode(raw, slot) for slot in range(MODE_SLOTS))
    try:
        opcode = OpCode(raw % 100)
    except ValueError:
        err = f"unsupported operation: {raw % 100}"
        raise DecodeError(err) from None
    return opcode, modes


def _operand(raw: int, mode: ParameterMode) -> Parameter:
    if mode == ParameterMode.POSITION:
        return Address(raw)
    return Value(raw)


def _destination(raw: int, mode: ParameterMode) -> Address:
    if mode != ParameterMode.POSITION:
        err = "immediate mode is invalid for a destination"
        raise AddressingError(err)
    return Address(raw)


def decode_instr(cells: Sequence[int], offset: int = 0) -> Instruction:
    """Decode the instruction starting at `cells[offset]`.

    Raises BoundsError if offset is outside `cells`, DecodeError on a bad
    opcode/mode or a truncated instruction and AddressingError when a
    destination operand is in immediate mode.
    """
    if offset < 0 or offset >= len(cells):
        err = f"instruction pointer {offset} outside of program (0..{len(cells) - 1})"
        raise BoundsError(err)

    opcode, modes = decode_opcode(cells[offset])
    length = INSTR_LEN[opcode]
    if offset + length > len(cells):
        err = f"instruction truncated: {opcode.name} at {offset} needs {length} cells, {len(cells) - offset} left"
        raise DecodeError(err)
    args = cells[offset + 1 : offset + length]

    if opcode == OpCode.HALT:
        return Halt()
    if opcode == OpCode.INPUT:
        return Input(_destination(args[0], modes[0]))
    if opcode == OpCode.OUTPUT:
        return Output(_operand(args[0], modes[0]))
    if opcode in (OpCode.JUMP_IF_TRUE, OpCode.JUMP_IF_FALSE):
        cls = JumpIfTrue if opcode == OpCode.JUMP_IF_TRUE else JumpIfFalse
        return cls(_operand(args[0], modes[0]), _operand(args[1], modes[1]))

    # three-operand forms: two sources + destination
    binary = {
        OpCode.ADD: Add,
        OpCode.MULTIPLY: Multiply,
        OpCode.LESS_THAN: LessThan,
        OpCode.EQUALS: Equals,
    }[opcode]
    return binary(
        _operand(args[0], modes[0]),
        _operand(args[1], modes[1]),
        _destination(args[2], modes[2]),
    )


def _param_str(param: Parameter) -> str:
    if isinstance(param, Address):
        return f"[{param.index}]"
    return f"#{param.value}"


def mnemonic(instr: Instruction) -> str:
    """Get instruction mnemonic for trace logs."""
    operands = [getattr(instr, f.name) for f in fields(instr)]
    if not operands:
        return instr.OPCODE.name
    return f"{instr.OPCODE.name} " + ", ".join(_param_str(p) for p in operands)
