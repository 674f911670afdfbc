"""Golden-test runner for the intcode machine and the amplifier chain.

Each YAML record holds a program image plus one of:
- `input` (optional) -> run on a single machine and compare output/memory;
- `phases` -> run an amplifier chain with those phase settings;
- `search` -> search every permutation of those phase settings.
`expect.error` names the error class the run must fail with.
"""

from __future__ import annotations

import re
from typing import Any

import amplifier
import channels
import isa
import processor
import pytest
from amplifier import AmplifierChain, find_max_signal
from channels import FixtureChannel, QueueChannel
from config import load_config
from processor import ControlUnit, Datapath, MachineState

ERROR_MODULES = (isa, channels, processor, amplifier)


def _error_class(name: str) -> type[Exception]:
    for module in ERROR_MODULES:
        cls = getattr(module, name, None)
        if isinstance(cls, type) and issubclass(cls, Exception):
            return cls
    msg = f"unknown error class in golden record: {name}"
    raise AssertionError(msg)


def _message(expect: dict[str, Any]) -> str | None:
    msg = expect.get("message")
    return re.escape(msg) if msg else None


def _run_machine(golden: dict[str, Any], cfg: dict[str, Any]) -> tuple[Datapath, Any]:
    expect = golden.get("expect") or {}
    inputs = golden.get("input") or []
    if "output" in expect:
        channel: Any = FixtureChannel(inputs, expect["output"])
    else:
        channel = QueueChannel(inputs)
    dp = Datapath(golden["program"], channel, tick_limit=cfg["tick_limit"], lenient_log=cfg["lenient_log"])
    return dp, channel


@pytest.mark.golden_test("golden/*.yaml")
def test_golden_record(golden: dict[str, Any]) -> None:
    """Run one golden record and compare with its expectations."""
    assert "__yaml_load_error__" not in golden, golden.get("__yaml_load_error__")
    assert "program" in golden, f"{golden['__name__']}: no program"

    cfg = load_config(golden.get("config") or {})
    expect = golden.get("expect") or {}
    program = list(golden["program"])

    if "phases" in golden or "search" in golden:
        if "error" in expect:
            with pytest.raises(_error_class(expect["error"]), match=_message(expect)):
                AmplifierChain(program, tick_limit=cfg["tick_limit"]).run(golden["phases"])
            return
        if "search" in golden:
            signal, phases = find_max_signal(program, golden["search"], tick_limit=cfg["tick_limit"])
            if "phases" in expect:
                assert list(phases) == expect["phases"]
        else:
            signal = AmplifierChain(program, tick_limit=cfg["tick_limit"]).run(golden["phases"])
        assert signal == expect["signal"]
        return

    dp, channel = _run_machine(golden, cfg)
    cu = ControlUnit(dp)

    if "error" in expect:
        with pytest.raises(_error_class(expect["error"]), match=_message(expect)):
            cu.run()
        assert dp.state == MachineState.ERRORED
        assert dp.error
    else:
        assert cu.run() == MachineState.HALTED
        if isinstance(channel, FixtureChannel):
            channel.assert_finished()

    if "state" in expect:
        assert dp.state.value == expect["state"]
    if "memory" in expect:
        assert dp.memory.to_list() == expect["memory"], "memory mismatch"
    if "ticks" in expect:
        assert dp.tick == expect["ticks"], f"ticks mismatch: got {dp.tick} expected {expect['ticks']}"
