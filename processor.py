"""Processor (Datapath + ControlUnit) and CLI wrapper.

Provides the intcode machine: a fixed-size word memory, an instruction
pointer and a decode/execute loop which reads and writes integers through a
pluggable channel. Also holds logging initialization and the command line.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from enum import Enum
from typing import Any, assert_never

from channels import Channel
from isa import (
    Add,
    Address,
    AddressingError,
    BoundsError,
    Equals,
    Halt,
    Input,
    Instruction,
    IntcodeError,
    JumpIfFalse,
    JumpIfTrue,
    LessThan,
    Multiply,
    Output,
    Parameter,
    decode_instr,
    mnemonic,
)

LOGFILE = "processor.log"


def init_logging(logfile: str = LOGFILE, debug: bool = False, console: bool = False) -> None:
    """Configure root logger to write to `logfile`.

    If debug=True set DEBUG level. If console=True also echo logs to stderr.
    """
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    lvl = logging.DEBUG if debug else logging.WARNING
    root.setLevel(lvl)

    # debug mode: compact format without timestamp, stable across runs
    if debug:
        file_fmt = "%(levelname)s %(name)s:%(filename)s:%(lineno)d %(message)s"
    else:
        file_fmt = "%(asctime)s %(levelname)-5s %(message)s"

    # always create a FileHandler even when not debug to allow easier inspection if asked
    fh = logging.FileHandler(logfile, mode="w", encoding="utf-8")
    fh.setLevel(lvl)
    fh.setFormatter(logging.Formatter(file_fmt))
    root.addHandler(fh)

    if debug and console:
        # console goes to stderr so program output on stdout stays clean
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(lvl)
        ch.setFormatter(logging.Formatter("%(levelname)5s %(message)s"))
        root.addHandler(ch)


def to_s32(x: int) -> int:
    """Wrap an int into the signed 32-bit range."""
    x = int(x) & 0xFFFFFFFF
    return x if x < 0x80000000 else x - 0x100000000


class TickLimitError(IntcodeError):
    """Raised when a run executes more instructions than allowed."""


class MachineState(Enum):
    RUNNING = "running"
    HALTED = "halted"
    ERRORED = "errored"


class Memory:
    """Fixed-length word memory. Every access is bounds checked."""

    cells: list[int]

    def __init__(self, image: Iterable[int]) -> None:
        self.cells = [to_s32(v) for v in image]

    def __len__(self) -> int:
        return len(self.cells)

    def _check(self, word_addr: int) -> None:
        if word_addr < 0 or word_addr >= len(self.cells):
            err = f"address {word_addr} out of memory (0..{len(self.cells) - 1})"
            raise BoundsError(err)

    def read_word(self, word_addr: int) -> int:
        """Read a signed word. Raises BoundsError for out-of-range reads."""
        self._check(word_addr)
        return self.cells[word_addr]

    def write_word(self, word_addr: int, value: int) -> None:
        """Write a signed 32-bit word. Raises BoundsError for out-of-range writes."""
        self._check(word_addr)
        self.cells[word_addr] = to_s32(value)

    def to_list(self) -> list[int]:
        return list(self.cells)


class Datapath:
    """Datapath (memory + instruction pointer + I/O channel) for the VM."""

    memory: Memory
    channel: Channel
    IP: int
    tick: int
    tick_limit: int
    lenient_log: bool
    state: MachineState
    error: str | None

    def __init__(
        self,
        image: Iterable[int],
        channel: Channel,
        tick_limit: int = 1_000_000,
        lenient_log: bool = False,
    ) -> None:
        """Initialize Datapath state from a copy of `image`."""
        self.memory = Memory(image)
        self.channel = channel
        self.IP = 0
        self.tick = 0
        self.tick_limit = int(tick_limit)
        self.lenient_log = bool(lenient_log)
        self.state = MachineState.RUNNING
        self.error = None
        logging.debug("Datapath: %d cells loaded", len(self.memory))

    def load(self, param: Parameter) -> int:
        return param.load(self.memory)

    def store(self, dst: Address, value: int) -> None:
        """Write `value` through a destination operand.

        Only an Address can be a destination; anything else is a broken
        decoder invariant.
        """
        if not isinstance(dst, Address):
            err = f"store through non-address operand {dst!r}"
            raise AddressingError(err)
        dst.store(self.memory, value)

    def read_input(self) -> int:
        return self.channel.read_line()

    def write_output(self, value: int) -> None:
        self.channel.write_line(value)


class ControlUnit:
    """Control unit implementing the FETCH-DECODE-EXEC loop for the Datapath."""

    dp: Datapath

    def __init__(self, dp: Datapath) -> None:
        """Create a ControlUnit bound to `dp`."""
        self.dp = dp

    def _log_step(self, step: str, instr: Instruction) -> None:
        # skip verbose per-step logs in lenient mode to reduce log size
        if self.dp.lenient_log:
            return
        dp = self.dp
        logging.debug(
            "STATE: %-8s STEP: %-10s TICK: %6d IP: %5d\tINSTR: %s",
            dp.state.value,
            step,
            dp.tick,
            dp.IP,
            mnemonic(instr),
        )

    def _fail(self, e: IntcodeError) -> None:
        dp = self.dp
        dp.state = MachineState.ERRORED
        dp.error = str(e)
        logging.debug("[tick %d] IP %d: %s -> ERRORED", dp.tick, dp.IP, e)

    def step(self) -> MachineState:
        """Execute a single instruction and return the resulting state.

        A machine that already halted or errored is left untouched.
        """
        dp = self.dp
        if dp.state != MachineState.RUNNING:
            return dp.state
        try:
            if dp.tick >= dp.tick_limit:
                err = f"tick limit {dp.tick_limit} exceeded at IP {dp.IP}"
                raise TickLimitError(err)
            instr = decode_instr(dp.memory.cells, dp.IP)
            self._log_step("DECODE", instr)
            self.exec(instr)
        except IntcodeError as e:
            self._fail(e)
            raise
        dp.tick += 1
        return dp.state

    def run(self) -> MachineState:
        """Execute the datapath until halt. Errors propagate to the caller."""
        while self.step() == MachineState.RUNNING:
            pass
        logging.debug("run finished: state=%s ticks=%d", self.dp.state.value, self.dp.tick)
        return self.dp.state

    def exec(self, instr: Instruction) -> None:
        """Execute a decoded instruction and move the instruction pointer."""
        dp = self.dp
        next_ip = dp.IP + instr.LENGTH

        match instr:
            case Add(a, b, dst):
                dp.store(dst, dp.load(a) + dp.load(b))
            case Multiply(a, b, dst):
                dp.store(dst, dp.load(a) * dp.load(b))
            case Input(dst):
                dp.store(dst, dp.read_input())
            case Output(src):
                dp.write_output(dp.load(src))
            case JumpIfTrue(cond, target):
                if dp.load(cond) != 0:
                    next_ip = dp.load(target)
            case JumpIfFalse(cond, target):
                if dp.load(cond) == 0:
                    next_ip = dp.load(target)
            case LessThan(a, b, dst):
                dp.store(dst, 1 if dp.load(a) < dp.load(b) else 0)
            case Equals(a, b, dst):
                dp.store(dst, 1 if dp.load(a) == dp.load(b) else 0)
            case Halt():
                dp.state = MachineState.HALTED
                logging.debug("HALT encountered")
                return
            case _:
                assert_never(instr)

        dp.IP = next_ip


def run_image(image: Iterable[int], channel: Channel, config: dict[str, Any] | None = None) -> tuple[list[int], int]:
    """Run a copy of `image` to completion; return (final memory, ticks)."""
    cfg = config or {}
    dp = Datapath(
        list(image),
        channel,
        tick_limit=cfg.get("tick_limit", 1_000_000),
        lenient_log=cfg.get("lenient_log", False),
    )
    ControlUnit(dp).run()
    return dp.memory.to_list(), dp.tick


def main(argv: list[str] | None = None) -> int:
    """Command line entry point. Returns the process exit status."""
    import argparse

    from amplifier import find_max_signal
    from channels import StdioChannel
    from config import ConfigError, load_config
    from image import ImageError, load_image

    ap = argparse.ArgumentParser(
        description="Intcode VM runner. Runs the program interactively (one integer per line on "
        "stdin/stdout) or searches amplifier phase settings with --amplify."
    )
    ap.add_argument("program", nargs="?", default=None, help="program image (defaults to config program_path).")
    ap.add_argument("--config", help="path to yaml config", default=None)
    ap.add_argument("--amplify", action="store_true", help="search phase permutations for the max signal.")
    ap.add_argument("--phases", default=None, help="comma separated phase settings for --amplify.")

    help_debug = "enable debug logging to logfile (detailed per-step state)."
    help_logfile = "path to processor log"
    help_console = "also echo logs to stderr (only when --debug)"
    ap.add_argument("--debug", action="store_true", help=help_debug)
    ap.add_argument("--logfile", default=LOGFILE, help=help_logfile)
    ap.add_argument("--console", action="store_true", help=help_console)
    args = ap.parse_args(argv)

    init_logging(logfile=args.logfile, debug=args.debug, console=args.console)

    overrides: dict[str, Any] = {}
    if args.phases is not None:
        overrides["phase_settings"] = args.phases
    try:
        cfg = load_config(args.config)
        if overrides:
            cfg = load_config({**cfg, **overrides})
    except ConfigError as e:
        print("Bad config:", e, file=sys.stderr)
        return 2

    program_path = args.program or cfg["program_path"]
    try:
        image = load_image(program_path)
    except ImageError as e:
        print("Bad program:", e, file=sys.stderr)
        return 2

    try:
        if args.amplify:
            signal, phases = find_max_signal(image, cfg["phase_settings"], tick_limit=cfg["tick_limit"])
            sys.stdout.write(f"max signal: {signal} phases: {','.join(str(p) for p in phases)}\n")
        else:
            _, ticks = run_image(image, StdioChannel(), cfg)
            logging.debug("CLI: program halted after %d ticks", ticks)
    except IntcodeError as e:
        logging.error("Machine error: %s", e)
        print("Machine error:", e, file=sys.stderr)
        return 1
    return 0


# ---------- CLI ----------
if __name__ == "__main__":
    sys.exit(main())
