"""I/O channels: the integer read/write capability handed to a Datapath.

Three implementations are provided:
- StdioChannel: interactive, one decimal integer per text line;
- FixtureChannel: fixed input plus the output it is expected to produce;
- QueueChannel: in-memory values, used to chain machines together.
"""

from __future__ import annotations

import logging
import sys
from collections import deque
from collections.abc import Iterable
from typing import Protocol, TextIO

from isa import IntcodeError, parse_word


class ChannelError(IntcodeError):
    """Raised when a channel can't deliver or accept a value."""


class IOExhaustedError(ChannelError):
    """Raised when input is requested and none remains."""


class FixtureError(ChannelError):
    """Raised when a fixture sees output it didn't expect, or isn't drained."""


class Channel(Protocol):
    """Capability consumed by the machine for INPUT and OUTPUT."""

    def read_line(self) -> int: ...

    def write_line(self, value: int) -> None: ...


class StdioChannel:
    """Line based terminal I/O: one signed decimal integer per line."""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None, prompt: str = "") -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.prompt = prompt

    def read_line(self) -> int:
        if self.prompt:
            self.stdout.write(self.prompt)
            self.stdout.flush()
        line = self.stdin.readline()
        if line == "":
            err = "input exhausted: end of stream"
            raise IOExhaustedError(err)
        text = line.strip()
        try:
            value = parse_word(text)
        except ValueError as e:
            err = f"bad input line (expected a 32-bit integer): {e}"
            raise ChannelError(err) from e
        logging.debug("[STDIO IN] %d", value)
        return value

    def write_line(self, value: int) -> None:
        logging.debug("[STDIO OUT] %d", value)
        self.stdout.write(f"{value}\n")
        self.stdout.flush()


class FixtureChannel:
    """Pre-loaded input paired with the exact output it should produce."""

    def __init__(self, inputs: Iterable[int], expected_outputs: Iterable[int] = ()) -> None:
        self.inputs = list(inputs)
        self.expected_outputs = list(expected_outputs)
        self.read_count = 0
        self.write_count = 0

    def read_line(self) -> int:
        if self.read_count >= len(self.inputs):
            err = f"input exhausted: fixture holds {len(self.inputs)} value(s)"
            raise IOExhaustedError(err)
        value = self.inputs[self.read_count]
        self.read_count += 1
        return value

    def write_line(self, value: int) -> None:
        if self.write_count >= len(self.expected_outputs):
            err = f"unexpected output {value}: fixture expects {len(self.expected_outputs)} value(s)"
            raise FixtureError(err)
        expected = self.expected_outputs[self.write_count]
        if value != expected:
            err = f"invalid output #{self.write_count}: expected {expected}, got {value}"
            raise FixtureError(err)
        self.write_count += 1

    def assert_finished(self) -> None:
        """Check every input was read and every expected output produced."""
        if self.read_count != len(self.inputs):
            err = f"not all input was read: {self.read_count} of {len(self.inputs)}"
            raise FixtureError(err)
        if self.write_count != len(self.expected_outputs):
            err = f"not all output was produced: {self.write_count} of {len(self.expected_outputs)}"
            raise FixtureError(err)


class QueueChannel:
    """In-memory FIFO input and collected output, no text parsing."""

    def __init__(self, inputs: Iterable[int] = ()) -> None:
        self.pending: deque[int] = deque(inputs)
        self.outputs: list[int] = []

    def push(self, value: int) -> None:
        self.pending.append(value)

    def read_line(self) -> int:
        if not self.pending:
            err = "input exhausted: queue is empty"
            raise IOExhaustedError(err)
        return self.pending.popleft()

    def write_line(self, value: int) -> None:
        self.outputs.append(value)
