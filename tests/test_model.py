#!/usr/bin/env python3
"""
FeCap Hysteresis Model
======================
Tests for the direction tracker, the Newton solver and the device model.

Run with: pytest tests/test_model.py -v
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
from dataclasses import replace

import pytest
import numpy as np
import pandas as pd


@pytest.fixture
def params():
    from fecap import get_hzo_parameters
    return get_hzo_parameters()


@pytest.fixture
def capacitor(params):
    from fecap import FerroelectricCapacitor, RecordingSink
    cap = FerroelectricCapacitor(params, sink=RecordingSink())
    cap.initialize()
    return cap


def apply_all(cap, voltages):
    return [cap.apply_voltage(float(v)) for v in voltages]


class TestInitialization:
    """Tests for the saturation search and start-up state."""

    def test_saturation_bounds(self, capacitor, params):
        from fecap import Direction
        asc = capacitor.stacks.ascending.base
        desc = capacitor.stacks.descending.base

        assert asc.voltage < -params.coercive_voltage
        assert desc.voltage > params.coercive_voltage
        assert asc.polarization == -params.saturation_polarization
        assert desc.polarization == params.saturation_polarization
        assert capacitor.direction == Direction.RISING
        assert capacitor.previous_voltage == 0.0

    def test_bounds_found_by_doubling(self, capacitor):
        from fecap.tracker import INITIAL_SEARCH_VOLTAGE
        ratio = -capacitor.stacks.ascending.base.voltage / INITIAL_SEARCH_VOLTAGE
        assert np.log2(ratio) == pytest.approx(round(np.log2(ratio)))

    def test_initial_scaling_is_major_loop(self, capacitor):
        scaling, fault = capacitor.current_scaling()
        assert fault is None
        assert scaling.slope == pytest.approx(1.0)
        assert scaling.intercept == pytest.approx(0.0, abs=1e-15)

    def test_initialization_event(self, capacitor):
        from fecap.diagnostics import INITIALIZATION
        events = capacitor.sink.of_kind(INITIALIZATION)
        assert len(events) == 1
        assert events[0].data["capacity"] == 1000

    def test_unreachable_saturation_reports_fault(self):
        from fecap import FerroelectricCapacitor, ModelParameters, RecordingSink
        from fecap.diagnostics import ARITHMETIC_FAULT
        sink = RecordingSink()
        cap = FerroelectricCapacitor(ModelParameters(slope_factor=0.0), sink=sink)
        cap.initialize()

        assert len(sink.of_kind(ARITHMETIC_FAULT)) == 2
        assert np.isfinite(cap.stacks.ascending.base.voltage)

    def test_lazy_initialization(self, params):
        from fecap import FerroelectricCapacitor, NullSink
        cap = FerroelectricCapacitor(params, sink=NullSink())
        assert not cap.initialized

        result = cap.evaluate(0.0)
        assert cap.initialized
        assert result.ok

    def test_reset_restores_start_state(self, capacitor):
        apply_all(capacitor, [1.0, 0.5, 0.8])
        capacitor.reset()

        assert capacitor.stacks.ascending.depth == 1
        assert capacitor.stacks.descending.depth == 1
        assert capacitor.previous_voltage == 0.0
        assert capacitor.solver.damping.draws == 0


class TestDirectionTracker:
    """Tests for the direction state machine."""

    def test_continue_on_same_branch(self, capacitor):
        from fecap import Direction, Transition
        result = capacitor.apply_voltage(1.0)

        assert result.transition == Transition.CONTINUE
        assert result.direction == Direction.RISING
        assert capacitor.previous_voltage == 1.0

    def test_change_within_tolerance_is_ignored(self, capacitor, params):
        from fecap import Transition
        capacitor.apply_voltage(1.0)
        result = capacitor.apply_voltage(1.0 + params.voltage_tolerance / 2)

        assert result.transition == Transition.NONE
        assert capacitor.previous_voltage == 1.0

    def test_reversal_pushes_previous_point(self, capacitor):
        from fecap import Direction, Transition
        capacitor.apply_voltage(1.0)
        P_at_turn = capacitor.apply_voltage(1.0).polarization

        result = capacitor.apply_voltage(0.5)

        assert result.transition == Transition.PUSH_DESCENDING
        assert capacitor.direction == Direction.FALLING
        top = capacitor.stacks.descending.top
        assert top.voltage == 1.0
        assert top.polarization == pytest.approx(P_at_turn)

    def test_reversal_from_falling_pushes_ascending(self, capacitor):
        from fecap import Direction, Transition
        apply_all(capacitor, [1.0, 0.5])
        result = capacitor.apply_voltage(0.8)

        assert result.transition == Transition.PUSH_ASCENDING
        assert capacitor.direction == Direction.RISING
        assert capacitor.stacks.ascending.top.voltage == 0.5

    def test_passing_descending_top_pops_to_outer_loop(self, capacitor):
        from fecap import Direction, Transition
        apply_all(capacitor, [1.0, 0.5, 0.8])
        result = capacitor.apply_voltage(1.2)

        assert result.transition == Transition.POP_TO_OUTER
        assert capacitor.direction == Direction.RISING
        assert capacitor.stacks.ascending.depth == 1
        assert capacitor.stacks.descending.depth == 1

    def test_passing_ascending_top_pops_to_outer_loop(self, capacitor):
        from fecap import Direction, Transition
        apply_all(capacitor, [1.0, 0.5, 0.8, 0.6])
        assert capacitor.stacks.descending.top.voltage == 0.8

        result = capacitor.apply_voltage(0.4)

        assert result.transition == Transition.POP_TO_OUTER
        assert capacitor.direction == Direction.FALLING
        assert capacitor.stacks.descending.top.voltage == 1.0
        assert capacitor.stacks.ascending.depth == 1

    def test_passing_start_point_after_first_reversal(self, capacitor):
        from fecap import Direction, Transition
        stacks = capacitor.stacks
        transitions = []
        for V in (-1.0, 3.0, 2.0, 1.0):
            transitions.append(capacitor.apply_voltage(V).transition)
            if V == 3.0:
                assert (stacks.ascending.depth, stacks.descending.depth) == (1, 1)
                assert capacitor.direction == Direction.RISING

        assert transitions == [Transition.PUSH_DESCENDING, Transition.POP_TO_OUTER,
                               Transition.PUSH_DESCENDING, Transition.CONTINUE]
        assert capacitor.direction == Direction.FALLING
        assert stacks.descending.top.voltage == 3.0
        assert stacks.descending.depth == stacks.ascending.depth + 1

    def test_jump_past_several_turning_points(self, capacitor):
        from fecap import Direction, Transition
        apply_all(capacitor, [4.0, 1.0, 3.0, 2.0, 2.5])
        assert capacitor.stacks.ascending.depth == 3

        result = capacitor.apply_voltage(5.0)

        assert result.transition == Transition.POP_TO_OUTER
        assert result.loops_closed == 2
        assert capacitor.direction == Direction.RISING
        assert capacitor.stacks.ascending.depth == 1
        assert capacitor.stacks.descending.depth == 1

    def test_jump_reversal_keeps_depths_paired(self, capacitor):
        from fecap import Direction, Transition
        apply_all(capacitor, [4.0, 1.0, 3.0, 2.0, 2.5])

        # rising at 2.5, then straight below A(2.0) and A(1.0)
        result = capacitor.apply_voltage(0.5)

        assert result.transition == Transition.POP_TO_OUTER
        assert result.loops_closed == 2
        assert capacitor.direction == Direction.FALLING
        assert capacitor.stacks.ascending.depth == 1
        assert capacitor.stacks.descending.depth == 2
        assert capacitor.stacks.descending.top.voltage == 4.0

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_random_charge_drive_stays_inside_innermost_loop(self, params, seed):
        from fecap import FerroelectricCapacitor, NullSink, Direction
        cap = FerroelectricCapacitor(replace(params, seed=seed), sink=NullSink())
        cap.initialize()
        tol = params.voltage_tolerance
        signals = np.random.default_rng(seed).uniform(-30.0, 30.0, 150)

        for signal in signals:
            cap.evaluate(float(signal))
            asc, desc = cap.stacks.ascending, cap.stacks.descending
            assert asc.top.voltage - tol <= cap.previous_voltage <= desc.top.voltage + tol
            if cap.direction == Direction.RISING:
                assert desc.depth == asc.depth
            else:
                assert desc.depth == asc.depth + 1

    def test_congruency_restores_identical_scaling(self, capacitor):
        apply_all(capacitor, [0.5, 1.0])
        before, _ = capacitor.current_scaling()

        apply_all(capacitor, [0.5, 0.8])     # push, then reverse before exceeding it
        inner, _ = capacitor.current_scaling()
        assert inner != before

        capacitor.apply_voltage(1.2)          # pass the remembered turning point
        after, _ = capacitor.current_scaling()

        assert after == before

    def test_scaling_reproduces_stack_tops(self, capacitor):
        from fecap import nested_minor_sweep
        for V in nested_minor_sweep(5.0, (3.0, 2.0, 1.0, 0.5), 40):
            capacitor.apply_voltage(float(V))
            scaling, fault = capacitor.current_scaling()
            assert fault is None
            for top in (capacitor.stacks.ascending.top, capacitor.stacks.descending.top):
                P = capacitor.scaler.polarization(top.voltage, capacitor.direction, scaling)
                assert P == pytest.approx(top.polarization, abs=1e-12)

    def test_operating_point_inside_innermost_loop(self, capacitor, params):
        from fecap import nested_minor_sweep
        tol = params.voltage_tolerance
        for V in nested_minor_sweep(4.0, (2.5, 1.5, 0.5), 30):
            capacitor.apply_voltage(float(V))
            assert capacitor.stacks.ascending.top.voltage - tol <= capacitor.previous_voltage
            assert capacitor.previous_voltage <= capacitor.stacks.descending.top.voltage + tol

    def test_capacity_fault_drops_point(self, params):
        from fecap import (FerroelectricCapacitor, RecordingSink, CapacityFault,
                           Direction, Transition)
        from fecap.diagnostics import CAPACITY_FAULT
        sink = RecordingSink()
        cap = FerroelectricCapacitor(replace(params, stack_capacity=2), sink=sink)
        cap.initialize()
        apply_all(cap, [1.0, 0.5, 0.8])
        assert cap.stacks.descending.is_full()

        result = cap.apply_voltage(0.6)

        assert result.transition == Transition.DROPPED
        assert isinstance(result.faults[0], CapacityFault)
        assert cap.direction == Direction.RISING
        assert cap.stacks.descending.depth == 2
        assert len(sink.of_kind(CAPACITY_FAULT)) == 1

    def test_capacity_fault_strict(self, params):
        from fecap import FerroelectricCapacitor, NullSink, FaultPolicy, CapacityFaultError
        cap = FerroelectricCapacitor(replace(params, stack_capacity=2), sink=NullSink(),
                                     policy=FaultPolicy.STRICT)
        cap.initialize()
        apply_all(cap, [1.0, 0.5, 0.8])

        with pytest.raises(CapacityFaultError):
            cap.apply_voltage(0.6)

    def test_corrupt_direction_is_reset(self, capacitor):
        from fecap import Direction, Transition, StateFault
        capacitor.tracker.direction = 0
        result = capacitor.apply_voltage(1.0)

        assert result.transition == Transition.RESET
        assert isinstance(result.faults[-1], StateFault)
        assert capacitor.direction == Direction.RISING

    def test_direction_change_events_and_dumps(self, params):
        from fecap import FerroelectricCapacitor, RecordingSink
        from fecap.diagnostics import DIRECTION_CHANGE, STACK_DUMP
        sink = RecordingSink()
        cap = FerroelectricCapacitor(params, sink=sink, dump_stacks=True)
        cap.initialize()
        apply_all(cap, [1.0, 0.5, 0.8])

        changes = sink.of_kind(DIRECTION_CHANGE)
        assert [e.data["to"] for e in changes] == ["FALLING", "RISING"]
        dumps = sink.of_kind(STACK_DUMP)
        assert len(dumps) == 2
        assert len(dumps[-1].data["ascending"]) == 2


class TestChargeVoltageSolver:
    """Tests for the damped Newton-Raphson solver."""

    @pytest.fixture
    def tight(self, params):
        return replace(params, charge_error_fraction=1e-6)

    def _solver(self, params, damping=None):
        from fecap import SwitchingFunction, BranchScaler, ChargeVoltageSolver
        scaler = BranchScaler(SwitchingFunction.from_parameters(params), params.linear_capacitance)
        return ChargeVoltageSolver(params, scaler, damping), scaler

    @pytest.mark.parametrize("direction", [1, -1])
    def test_round_trip(self, tight, direction):
        from fecap import BranchScaling
        solver, scaler = self._solver(tight)
        scaling = BranchScaling(0.97, 0.004)
        for V0 in np.linspace(-4.0, 4.0, 17):
            target = float(scaler.charge(V0, direction, scaling))
            result = solver.solve(target, 0.0, direction, scaling)

            assert result.converged
            assert result.voltage == pytest.approx(V0, abs=tight.voltage_tolerance)

    def test_damping_advances_once_per_iteration(self, params):
        from fecap import NEUTRAL_SCALING, RandomDamping
        damping = RandomDamping(seed=3)
        solver, scaler = self._solver(params, damping)
        result = solver.solve(0.2, 0.0, 1, NEUTRAL_SCALING)

        assert result.converged
        assert result.iterations > 0
        assert damping.draws == result.iterations

    def test_nonzero_start_runs_at_least_one_iteration(self, params):
        from fecap import NEUTRAL_SCALING, FixedDamping
        solver, scaler = self._solver(params, FixedDamping(1))
        target = float(scaler.charge(1.0, 1, NEUTRAL_SCALING))
        result = solver.solve(target, 1.0, 1, NEUTRAL_SCALING)

        assert result.converged
        assert result.iterations == 1
        assert result.voltage == 1.0

    def test_zero_start_at_solution_accepts_immediately(self, params):
        from fecap import NEUTRAL_SCALING
        solver, scaler = self._solver(params)
        target = float(scaler.charge(0.0, 1, NEUTRAL_SCALING))
        result = solver.solve(target, 0.0, 1, NEUTRAL_SCALING)

        assert result.converged
        assert result.iterations == 0

    def test_exhausted_budget_reports_convergence_fault(self, params):
        from fecap import NEUTRAL_SCALING, ConvergenceFault
        solver, _ = self._solver(params)
        result = solver.solve(float("nan"), 0.7, 1, NEUTRAL_SCALING)

        assert not result.converged
        assert isinstance(result.fault, ConvergenceFault)
        assert result.voltage == 0.7
        assert result.iterations < params.max_iterations

    def test_random_damping_range_and_determinism(self):
        from fecap import RandomDamping
        a = RandomDamping(seed=11)
        b = RandomDamping(seed=11)
        draws = [a.next() for _ in range(500)]

        assert draws == [b.next() for _ in range(500)]
        assert min(draws) == 1
        assert max(draws) == 10

    def test_random_damping_state_round_trip(self):
        from fecap import RandomDamping
        d = RandomDamping(seed=5)
        [d.next() for _ in range(7)]
        state = d.get_state()
        expected = [d.next() for _ in range(5)]

        d.set_state(state)
        assert [d.next() for _ in range(5)] == expected
        assert d.draws == 12

    def test_fixed_damping_rejects_zero(self):
        from fecap import FixedDamping
        with pytest.raises(ValueError):
            FixedDamping(0)

    def test_convergence_rate_over_charges_and_seeds(self, params):
        from fecap import FerroelectricCapacitor, NullSink, CHARGE_SCALE
        from fecap import triangular_sweep
        q_max = 1.5 * params.saturation_polarization / CHARGE_SCALE
        signals = triangular_sweep(-q_max, q_max, 41)

        total = failed = 0
        for seed in range(8):
            cap = FerroelectricCapacitor(replace(params, seed=seed), sink=NullSink())
            cap.initialize()
            for s in signals:
                result = cap.evaluate(float(s))
                total += 1
                failed += not result.ok
        assert 1.0 - failed / total >= 0.99


class TestFerroelectricCapacitor:
    """Tests for per-call orchestration."""

    def test_evaluate_solves_target_charge(self, capacitor, params):
        from fecap import CHARGE_SCALE
        for signal in (0.0, 10.0, 24.0, 30.0, -5.0, -28.0):
            result = capacitor.evaluate(signal)
            assert result.ok
            assert result.charge == pytest.approx(CHARGE_SCALE * signal)
            Q = result.polarization + params.linear_capacitance * result.core_voltage
            assert Q == pytest.approx(result.charge, abs=params.charge_tolerance)

    def test_zero_delay_output_equals_core_voltage(self, params):
        from fecap import FerroelectricCapacitor, NullSink
        cap = FerroelectricCapacitor(replace(params, delay_coefficient=0.0), sink=NullSink())
        result = cap.evaluate(12.0, time=0.0)
        result = cap.evaluate(14.0, time=1e-6)

        assert result.voltage == result.core_voltage

    def test_relaxation_term(self, capacitor, params):
        capacitor.evaluate(10.0, time=0.0)
        result = capacitor.evaluate(12.0, time=1e-6)

        dq_dt = (0.12 - 0.10) / 1e-6
        assert result.current_density == pytest.approx(dq_dt)
        expected = result.core_voltage + params.delay_coefficient * params.thickness * dq_dt
        assert result.voltage == pytest.approx(expected)

    def test_non_monotonic_time_drops_relaxation_term(self, capacitor):
        capacitor.evaluate(10.0, time=2e-6)
        result = capacitor.evaluate(12.0, time=1e-6)

        assert result.current_density == 0.0
        assert result.voltage == result.core_voltage

    def test_convergence_fault_keeps_last_voltage(self, capacitor):
        from fecap import ConvergenceFault, Transition
        from fecap.diagnostics import CONVERGENCE_FAILURE
        good = capacitor.evaluate(20.0)
        depth = capacitor.stacks.descending.depth

        result = capacitor.evaluate(float("nan"))

        assert not result.ok
        assert isinstance(result.faults[0], ConvergenceFault)
        assert result.core_voltage == good.core_voltage
        assert result.transition == Transition.NONE
        assert capacitor.previous_voltage == good.core_voltage
        assert capacitor.stacks.descending.depth == depth
        assert len(capacitor.sink.of_kind(CONVERGENCE_FAILURE)) == 1

    def test_convergence_fault_reports_held_charge(self, capacitor):
        capacitor.evaluate(10.0, time=0.0)

        failed = capacitor.evaluate(float("nan"), time=1e-6)

        assert not failed.ok
        assert failed.charge == pytest.approx(capacitor.charge_at(failed.core_voltage))
        assert failed.current_density == 0.0

        result = capacitor.evaluate(12.0, time=2e-6)
        assert result.current_density == pytest.approx((0.12 - 0.10) / 2e-6)

    def test_convergence_fault_strict(self, params):
        from fecap import FerroelectricCapacitor, NullSink, FaultPolicy, ConvergenceFaultError
        cap = FerroelectricCapacitor(params, sink=NullSink(), policy=FaultPolicy.STRICT)
        with pytest.raises(ConvergenceFaultError):
            cap.evaluate(float("nan"))

    def test_arithmetic_fault_continues_with_neutral_scaling(self):
        from fecap import (FerroelectricCapacitor, ModelParameters, RecordingSink,
                           ArithmeticFault)
        cap = FerroelectricCapacitor(ModelParameters(saturation_polarization=0.0),
                                     sink=RecordingSink())
        result = cap.apply_voltage(1.0)

        assert isinstance(result.faults[0], ArithmeticFault)
        # purely dielectric: Q = C·V
        assert result.charge == pytest.approx(cap.params.linear_capacitance)
        assert result.polarization == 0.0

    def test_minor_loop_in_saturation_falls_back_to_neutral_scaling(self, capacitor, params):
        from fecap import ArithmeticFault, NEUTRAL_SCALING
        apply_all(capacitor, np.linspace(0.0, 18.0, 37))
        apply_all(capacitor, [17.0, 17.5, 17.2])

        scaling, fault = capacitor.current_scaling()
        assert isinstance(fault, ArithmeticFault)
        assert scaling == NEUTRAL_SCALING

        result = capacitor.evaluate(-30.0)
        assert abs(result.polarization) <= params.saturation_polarization
        assert any(isinstance(f, ArithmeticFault) for f in result.faults)

    def test_arithmetic_fault_strict(self):
        from fecap import (FerroelectricCapacitor, ModelParameters, NullSink,
                           FaultPolicy, ArithmeticFaultError)
        cap = FerroelectricCapacitor(ModelParameters(saturation_polarization=0.0),
                                     sink=NullSink(), policy=FaultPolicy.STRICT)
        with pytest.raises(ArithmeticFaultError):
            cap.apply_voltage(1.0)

    def test_instances_do_not_share_state(self, params):
        from fecap import FerroelectricCapacitor, NullSink
        a = FerroelectricCapacitor(params, sink=NullSink())
        b = FerroelectricCapacitor(params, sink=NullSink())
        a.initialize()
        b.initialize()
        apply_all(a, [2.0, 1.0, 1.5])

        assert a.stacks.descending.depth == 2
        assert b.stacks.descending.depth == 1
        assert b.previous_voltage == 0.0

    def test_same_seed_same_results(self, params):
        from fecap import FerroelectricCapacitor, NullSink, triangular_sweep
        signals = triangular_sweep(-30.0, 30.0, 25)
        runs = []
        for _ in range(2):
            cap = FerroelectricCapacitor(params, sink=NullSink())
            runs.append([cap.evaluate(float(s)).voltage for s in signals])

        assert runs[0] == runs[1]

    def test_snapshot_and_restore(self, capacitor):
        capacitor.evaluate(20.0)
        state = capacitor.snapshot()
        expected = [capacitor.evaluate(s).voltage for s in (10.0, 15.0, -5.0)]

        capacitor.restore(state)
        replayed = [capacitor.evaluate(s).voltage for s in (10.0, 15.0, -5.0)]

        assert replayed == expected

    def test_snapshot_is_independent_copy(self, capacitor):
        state = capacitor.snapshot()
        apply_all(capacitor, [2.0, 1.0])

        assert state.stacks.descending.depth == 1
        assert capacitor.stacks.descending.depth == 2

    def test_charge_at_leaves_state_untouched(self, capacitor):
        capacitor.apply_voltage(2.0)
        Q = capacitor.charge_at(1.0)

        assert capacitor.previous_voltage == 2.0
        assert capacitor.stacks.descending.depth == 1
        assert capacitor.apply_voltage(1.0).charge == pytest.approx(Q)

    def test_set_log_level(self):
        from fecap import logger, set_log_level
        set_log_level(logging.INFO)
        try:
            assert logger.isEnabledFor(logging.INFO)
        finally:
            set_log_level(logging.WARNING)
        assert not logger.isEnabledFor(logging.INFO)

    def test_enable_debug_logging(self):
        from fecap import logger, set_log_level
        from fecap.logging import enable_debug_logging
        enable_debug_logging()
        try:
            assert logger.isEnabledFor(logging.DEBUG)
            assert len(logger.handlers) == 1
            assert logger.handlers[0].level == logging.DEBUG
        finally:
            set_log_level(logging.WARNING)

    def test_logging_sink_reports_faults(self, params, caplog):
        from fecap import FerroelectricCapacitor, LoggingSink
        cap = FerroelectricCapacitor(params, sink=LoggingSink(name="c1"))
        with caplog.at_level(logging.WARNING, logger="fecap"):
            cap.evaluate(float("nan"))

        assert any("[c1]" in r.getMessage() and r.levelno == logging.WARNING
                   for r in caplog.records)


class TestEndToEnd:
    """Reference device: 20 nm, 65 MV/m, εr = 20, Ps = 0.25 C/m², delay 0.09."""

    @pytest.fixture
    def loop(self, params):
        from fecap import (FerroelectricCapacitor, NullSink, triangular_sweep,
                           precondition, run_voltage_sweep)
        cap = FerroelectricCapacitor(params, sink=NullSink())
        cap.initialize()
        precondition(cap, 5.0, 100)
        return run_voltage_sweep(cap, triangular_sweep(-5.0, 5.0, 201))

    def test_sweep_frame(self, loop):
        assert isinstance(loop, pd.DataFrame)
        for col in ("V", "Q", "P", "direction", "fault"):
            assert col in loop.columns
        assert loop["V"].iloc[0] == -5.0
        assert loop["V"].iloc[-1] == -5.0
        assert (loop["fault"] == "").all()

    def test_branches_meet_at_saturation(self, loop, params):
        Ps = params.saturation_polarization
        at_max = loop[loop["V"] == 5.0]
        at_min = loop[loop["V"] == -5.0]

        assert at_max["P"].max() > 0.99 * Ps
        assert at_min["P"].min() < -0.99 * Ps
        assert np.ptp(at_max["Q"].values) == pytest.approx(0.0, abs=1e-9)

    def test_positive_loop_area(self, loop):
        from fecap import loop_area
        assert loop_area(loop["V"].values, loop["Q"].values) > 0

    def test_loop_closes(self, loop):
        first, last = loop.iloc[0], loop.iloc[-1]
        assert last["V"] == first["V"]
        assert last["Q"] == pytest.approx(first["Q"], abs=1e-12)

    def test_rising_branch_below_falling_branch(self, loop):
        fwd = loop[loop["direction"] == "forward"].sort_values("V")
        rev = loop[loop["direction"] == "reverse"].sort_values("V")
        inner = fwd[fwd["V"].abs() < 4.0]
        Q_rev = np.interp(inner["V"].values, rev["V"].values, rev["Q"].values)

        assert len(inner) > 10
        assert np.all(inner["Q"].values < Q_rev)

    def test_loop_metrics(self, loop, params):
        from fecap import extract_loop_metrics
        metrics = extract_loop_metrics(loop)

        assert metrics.Vc_forward == pytest.approx(params.coercive_voltage, abs=0.05)
        assert metrics.Vc_reverse == pytest.approx(-params.coercive_voltage, abs=0.05)
        assert metrics.Pr_forward < 0 < metrics.Pr_reverse
        assert metrics.closure_error < 1e-9
        assert metrics.to_dict()["Memory_Window_V"] == pytest.approx(2.6, abs=0.1)

    def test_charge_driven_loop(self, params):
        from fecap import (FerroelectricCapacitor, NullSink, triangular_sweep,
                           run_charge_sweep, loop_area)
        cap = FerroelectricCapacitor(params, sink=NullSink())
        run_charge_sweep(cap, np.concatenate([np.linspace(0, 30, 60),
                                              np.linspace(30, -30, 120)]))
        df = run_charge_sweep(cap, triangular_sweep(-30.0, 30.0, 121))

        assert (df["fault"] == "").mean() >= 0.99
        assert loop_area(df["V"].values, df["Q"].values) > 0
        assert df["V"].iloc[-1] == pytest.approx(df["V"].iloc[0], abs=1e-2)
        assert df["V"].max() > params.coercive_voltage


class TestSweepsAndPostprocess:
    """Tests for sweep waveforms and loop metrics."""

    def test_triangular_sweep(self):
        from fecap import triangular_sweep
        V = triangular_sweep(-5.0, 5.0, 11)

        assert len(V) == 21
        assert V[0] == V[-1] == -5.0
        assert V.max() == 5.0
        assert np.sum(V == 5.0) == 1

    def test_generate_voltage_sweep(self):
        from fecap import generate_voltage_sweep
        V = generate_voltage_sweep(V_max=3.0, n_per_segment=50)
        assert len(V) == 300
        assert V.max() == 3.0 and V.min() == -3.0

    def test_nested_minor_sweep(self):
        from fecap import nested_minor_sweep
        V = nested_minor_sweep(5.0, (3.0, 1.0), 10)

        assert V[0] == -5.0 and V[-1] == -5.0
        turning = V[1:-1][(np.diff(V)[:-1] * np.diff(V)[1:]) < 0]
        np.testing.assert_allclose(turning, [5.0, -3.0, 1.0])

    def test_loop_area_unit_square(self):
        from fecap import loop_area
        assert loop_area([0, 1, 1, 0], [0, 0, 1, 1]) == pytest.approx(1.0)
        assert loop_area([0, 0, 1, 1], [0, 1, 1, 0]) == pytest.approx(-1.0)

    def test_coercive_voltage_interpolation(self):
        from fecap import extract_coercive_voltage
        df = pd.DataFrame({"V": [0.0, 1.0, 2.0], "P": [-1.0, -0.5, 0.5],
                           "direction": ["forward"] * 3})
        assert extract_coercive_voltage(df, "forward") == pytest.approx(1.5)

    def test_remanent_outside_range_is_nan(self):
        from fecap import extract_remanent_polarization
        df = pd.DataFrame({"V": [1.0, 2.0], "P": [0.1, 0.2], "direction": ["forward"] * 2})
        assert np.isnan(extract_remanent_polarization(df, "forward"))

    def test_convergence_summary(self):
        from fecap import convergence_summary
        df = pd.DataFrame({"fault": ["", "convergence", "", ""],
                           "iterations": [3, 999, 5, 4]})
        summary = convergence_summary(df)

        assert summary["n_failed"] == 1
        assert summary["converged_fraction"] == pytest.approx(0.75)


def _square(x):
    if x < 0:
        raise ValueError("negative")
    return {"value": x * x}


class TestParallel:
    """Tests for the study runner."""

    def test_sequential_runner_keeps_order_and_errors(self):
        from fecap.parallel import ParallelSweepRunner, ParallelConfig
        runner = ParallelSweepRunner(ParallelConfig(n_workers=1, show_progress=False))
        results = runner.run_sweep(_square, [2, -1, 3])

        assert results[0] == {"value": 4}
        assert results[1]["success"] is False
        assert results[2] == {"value": 9}

    def test_pool_timeout_marks_unfinished_tasks(self):
        import time
        from fecap.parallel import ParallelSweepRunner, ParallelConfig
        runner = ParallelSweepRunner(ParallelConfig(n_workers=2, show_progress=False,
                                                    timeout_per_task=1.5))
        start = time.time()
        results = runner.run_sweep(time.sleep, [0.0, 6.0])

        assert time.time() - start < 6.0
        assert results[1]["success"] is False
        assert "timed out" in results[1]["error"]

    def test_convergence_for_seed(self):
        from simulations.run_convergence_study import convergence_for_seed
        summary = convergence_for_seed(2, n_points=21)

        assert summary["seed"] == 2
        assert summary["converged_fraction"] >= 0.99
        assert len(summary["iterations"]) == 41


class TestDriver:
    """Tests for the study driver helpers."""

    def test_parse_args(self):
        from main import parse_args
        args = parse_args(["major", "--accurate", "--no-clean"])

        assert args.studies == ["major"]
        assert args.accurate and args.no_clean and not args.debug

    def test_parse_args_rejects_unknown_study(self):
        from main import parse_args
        with pytest.raises(SystemExit):
            parse_args(["gaa"])

    def test_remove_outputs_only_touches_matching_files(self, tmp_path):
        from main import remove_outputs
        (tmp_path / "plots").mkdir()
        (tmp_path / "data" / "raw").mkdir(parents=True)
        (tmp_path / "plots" / "major_loop.png").write_text("x")
        (tmp_path / "data" / "raw" / "major_loop.csv").write_text("x")
        (tmp_path / "data" / "raw" / "minor_loops.csv").write_text("x")

        assert remove_outputs("major_loop", root=tmp_path) == 2
        assert (tmp_path / "data" / "raw" / "minor_loops.csv").exists()


class TestVisualization:
    """Smoke tests for plotting."""

    def test_plot_qv_loop(self, tmp_path):
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        from fecap import extract_loop_metrics
        from fecap.visualization import plot_qv_loop

        V = np.concatenate([np.linspace(-2, 2, 20), np.linspace(2, -2, 20)])
        P = np.concatenate([np.tanh(np.linspace(-2, 2, 20) - 1),
                            np.tanh(np.linspace(2, -2, 20) + 1)]) * 0.25
        df = pd.DataFrame({"V": V, "Q": P, "P": P,
                           "direction": ["forward"] * 20 + ["reverse"] * 20})

        fig = plot_qv_loop(df, metrics=extract_loop_metrics(df),
                           save_path=str(tmp_path / "loop.png"))

        assert fig is not None
        assert (tmp_path / "loop.png").exists()
        plt.close(fig)

    def test_plot_iteration_histogram(self):
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        from fecap.visualization import plot_iteration_histogram

        fig = plot_iteration_histogram(pd.DataFrame({"iterations": [3, 4, 4, 7]}))
        assert fig is not None
        plt.close(fig)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
