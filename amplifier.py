"""Amplifier chain: several machines in series, each output feeding the next.

Every stage runs a fresh copy of the same program image with the input
[phase_setting, previous_output]; the first stage receives 0 as previous
output. Stages run strictly one after another.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Sequence

from channels import QueueChannel
from isa import IntcodeError
from processor import ControlUnit, Datapath


class AmplifierError(IntcodeError):
    """Raised when the chain itself is misconfigured."""


class StageError(AmplifierError):
    """Raised when an amplifier stage halts without producing output."""

    def __init__(self, stage: int, phase: int) -> None:
        super().__init__(f"stage {stage} (phase {phase}) did not return any output")
        self.stage = stage
        self.phase = phase


class AmplifierChain:
    """Sequential (no feedback) chain of machines sharing one read-only image."""

    program: tuple[int, ...]
    tick_limit: int

    def __init__(self, program: Iterable[int], tick_limit: int = 1_000_000) -> None:
        self.program = tuple(program)
        self.tick_limit = tick_limit

    def run_stage(self, stage: int, phase: int, signal: int) -> int:
        """Run one amplifier and return the first value it wrote."""
        channel = QueueChannel([phase, signal])
        dp = Datapath(self.program, channel, tick_limit=self.tick_limit, lenient_log=True)
        ControlUnit(dp).run()
        if not channel.outputs:
            raise StageError(stage, phase)
        logging.debug(
            "amplifier stage %d: phase=%d in=%d out=%d ticks=%d",
            stage,
            phase,
            signal,
            channel.outputs[0],
            dp.tick,
        )
        return channel.outputs[0]

    def run(self, phase_settings: Sequence[int]) -> int:
        """Feed the signal through one stage per phase setting; return the last output.

        Phase settings are expected to be distinct; that is up to the caller.
        """
        if len(phase_settings) < 2:
            err = f"there should be at least 2 phase settings, got {len(phase_settings)}"
            raise AmplifierError(err)
        signal = 0
        for stage, phase in enumerate(phase_settings):
            signal = self.run_stage(stage, phase, signal)
        return signal


def find_max_signal(
    program: Iterable[int],
    phases: Iterable[int] = range(5),
    tick_limit: int = 1_000_000,
) -> tuple[int, tuple[int, ...]]:
    """Try every ordering of `phases` and return (max signal, phase order)."""
    chain = AmplifierChain(program, tick_limit=tick_limit)
    pool = list(phases)
    if len(pool) < 2:
        err = f"there should be at least 2 phase settings, got {len(pool)}"
        raise AmplifierError(err)
    # first maximum wins on ties
    best = max(
        ((chain.run(order), order) for order in itertools.permutations(pool)),
        key=lambda result: result[0],
    )
    logging.debug("find_max_signal: best %d with phases %s", best[0], best[1])
    return best
