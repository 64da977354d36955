# =============================================================================
# FILE: tests/test_orchestrator.py
"""
Model Orchestrator Tests - composition, lifecycle, solving and extraction

Reference welfare on the two-region world (national vs local bidder):
    national: all of region 0 + 1 license of A in region 1 -> 100 + 200·0.4/9.2
    local:    A:1, B:3 in region 1 (c = 8.2)                -> 600·(0.9 + 0.1·(8.2/9.2 - 0.75)/0.25)
"""
from decimal import Decimal

import pytest

from spectrum_mip.modules.bidders import LocalBidder, RegionalBidder
from spectrum_mip.modules.orchestrator import (
    ModelState,
    SpectrumMip,
    build,
    build_without_bidder,
    copy_of,
    solve,
)
from spectrum_mip.modules.solver import CbcSolver, SolveResult, SolveStatus
from spectrum_mip.modules.world import Bundle, GenericGood
from spectrum_mip.utils.config import SolverConfig
from spectrum_mip.utils.errors import (
    ConfigurationError,
    InfeasibleModelError,
    ModelStateError,
    SolutionInconsistencyError,
    SolveTimeoutError,
)
from spectrum_mip.utils.validation import AllocationValidator
from tests.conftest import region_bundle

NATIONAL_VALUE = 100 + 200 * 0.4 / 9.2
LOCAL_VALUE = 600 * (0.9 + 0.1 * (8.2 / 9.2 - 0.75) / 0.25)


class RelabelingSolver:
    """Solves with CBC, then reports `status` and optionally tampers with values"""

    def __init__(self, status, tamper=None):
        self.status = status
        self.tamper = tamper or {}
        self.calls = 0

    def solve(self, problem, time_limit=None):
        self.calls += 1
        result = CbcSolver().solve(problem, time_limit=time_limit)
        values = dict(result.values)
        for name, delta in self.tamper.items():
            values[name] = values[name] + delta
        return SolveResult(self.status, values, result.objective, result.solve_time)


class EmptyResultSolver:
    """Reports a status without any solution"""

    def __init__(self, status):
        self.status = status

    def solve(self, problem, time_limit=None):
        return SolveResult(self.status)


class TestScenarios:

    def test_single_bidder_takes_everything(self, single_region_world):
        bidder = RegionalBidder(1, single_region_world, home=0,
                                distance_discounts={0: Decimal("1.0"), 1: Decimal("0.5")}, beta={0: 1})
        mip = build([bidder])
        allocation = solve(mip)

        assert allocation.bundle_of(bidder) == Bundle({GenericGood(0, "A"): 10})
        assert float(allocation.value_of(bidder)) == pytest.approx(100.0, abs=1e-3)
        omega = mip.world_partial_mip.omega_variable(bidder, 0)
        value = mip.world_partial_mip.value_variable(bidder)
        assert mip.solution_value(value) == pytest.approx(mip.solution_value(omega), abs=1e-6)

    def test_two_local_bidders_split_regions(self, two_region_world):
        west = LocalBidder(1, two_region_world, [0], {0: 1})
        east = LocalBidder(2, two_region_world, [1], {1: 1})
        allocation = SpectrumMip([west, east]).solve()

        assert allocation.bundle_of(west) == region_bundle(two_region_world, 0)
        assert allocation.bundle_of(east) == region_bundle(two_region_world, 1)
        assert float(allocation.total_value) == pytest.approx(300.0, abs=1e-3)

    def test_zero_value_bidder_never_wins(self, two_region_world, regional_bidder):
        null_bidder = LocalBidder(9, two_region_world, regions_of_interest=[], beta={})
        allocation = SpectrumMip([regional_bidder, null_bidder]).solve()

        assert null_bidder not in allocation
        assert allocation.bundle_of(null_bidder) == Bundle.EMPTY
        assert allocation.value_of(null_bidder) == 0
        assert allocation.bundle_of(regional_bidder) == two_region_world.full_bundle()

    def test_worthless_holding_is_not_a_win(self, regional_bidder, local_bidder):
        mip = SpectrumMip([regional_bidder, local_bidder])
        world_mip = mip.world_partial_mip
        mip.add_constraint(world_mip.x_variable(local_bidder, 0, "A") == 1)
        mip.add_constraint(world_mip.x_variable(local_bidder, 1, "A") == 0)
        mip.add_constraint(world_mip.x_variable(local_bidder, 1, "B") == 0)
        allocation = mip.solve()

        assert mip.solution_value(world_mip.x_variable(local_bidder, 0, "A")) == pytest.approx(1.0)
        assert local_bidder not in allocation
        assert allocation.bundle_of(local_bidder) == Bundle.EMPTY
        assert allocation.bundle_of(regional_bidder) == Bundle({
            GenericGood(0, "A"): 1, GenericGood(0, "B"): 3, GenericGood(1, "A"): 2, GenericGood(1, "B"): 3
        })
        assert len(allocation) == 1

    def test_national_versus_local(self, two_region_world, national_bidder, local_bidder):
        allocation = SpectrumMip([national_bidder, local_bidder]).solve()

        assert allocation.bundle_of(national_bidder) == Bundle({
            GenericGood(0, "A"): 2, GenericGood(0, "B"): 3, GenericGood(1, "A"): 1
        })
        assert allocation.bundle_of(local_bidder) == Bundle({
            GenericGood(1, "A"): 1, GenericGood(1, "B"): 3
        })
        assert float(allocation.value_of(national_bidder)) == pytest.approx(NATIONAL_VALUE, abs=1e-3)
        assert float(allocation.value_of(local_bidder)) == pytest.approx(LOCAL_VALUE, abs=1e-3)
        assert allocation.meta.status == "optimal"
        assert allocation.meta.mip_objective == pytest.approx(float(allocation.total_value), abs=1e-3)

    def test_all_three_types_pass_validation(self, two_region_world, regional_bidder,
                                             national_bidder, local_bidder):
        bidders = [regional_bidder, national_bidder, local_bidder]
        allocation = SpectrumMip(bidders).solve()

        results = AllocationValidator().validate_all(allocation, two_region_world, bidders)
        assert all(result.is_valid for result in results.values())
        assert float(allocation.total_value) >= NATIONAL_VALUE + LOCAL_VALUE - 1e-3

    def test_scaled_model_gives_same_welfare(self, national_bidder, local_bidder):
        config = SolverConfig(max_mip_value=50.0, maxval_safety_gap=10.0)
        mip = SpectrumMip([national_bidder, local_bidder], config=config)
        allocation = mip.solve()

        assert mip.scaling_factor == pytest.approx(15.0)
        assert allocation.meta.scaling_factor == pytest.approx(15.0)
        assert float(allocation.total_value) == pytest.approx(NATIONAL_VALUE + LOCAL_VALUE, abs=1e-3)


class TestSolveStatusHandling:

    def test_suboptimal_accepted(self, regional_bidder):
        mip = SpectrumMip([regional_bidder], solver=RelabelingSolver(SolveStatus.SUBOPTIMAL))
        mip.set_time_limit(5)
        mip.set_accept_suboptimal(True)
        allocation = mip.solve()

        assert allocation.meta.status == "suboptimal"
        assert float(allocation.value_of(regional_bidder)) == pytest.approx(200.0, abs=1e-3)

    def test_suboptimal_rejected(self, regional_bidder):
        mip = SpectrumMip([regional_bidder], solver=RelabelingSolver(SolveStatus.SUBOPTIMAL))
        mip.set_time_limit(5)
        mip.set_accept_suboptimal(False)

        with pytest.raises(SolveTimeoutError):
            mip.solve()
        assert mip.state is ModelState.COMPOSED

    def test_time_limit_without_solution(self, regional_bidder):
        mip = SpectrumMip([regional_bidder], solver=EmptyResultSolver(SolveStatus.TIME_LIMIT))
        with pytest.raises(SolveTimeoutError):
            mip.solve()

    @pytest.mark.parametrize("status", [SolveStatus.INFEASIBLE, SolveStatus.UNBOUNDED, SolveStatus.UNDEFINED])
    def test_no_solution_is_a_defect(self, regional_bidder, status):
        mip = SpectrumMip([regional_bidder], solver=EmptyResultSolver(status))
        with pytest.raises(InfeasibleModelError):
            mip.solve()

    def test_value_mismatch_detected(self, regional_bidder):
        solver = RelabelingSolver(SolveStatus.OPTIMAL, tamper={"v_b1": 0.5})
        with pytest.raises(SolutionInconsistencyError):
            SpectrumMip([regional_bidder], solver=solver).solve()

    def test_fractional_quantity_detected(self, regional_bidder):
        solver = RelabelingSolver(SolveStatus.OPTIMAL, tamper={"x_b1_r0_k0": -0.3})
        with pytest.raises(SolutionInconsistencyError):
            SpectrumMip([regional_bidder], solver=solver).solve()

    def test_time_limit_passed_to_solver(self, regional_bidder):
        seen = {}

        class RecordingSolver(RelabelingSolver):
            def solve(self, problem, time_limit=None):
                seen['time_limit'] = time_limit
                return super().solve(problem, time_limit)

        mip = SpectrumMip([regional_bidder], solver=RecordingSolver(SolveStatus.OPTIMAL))
        mip.set_time_limit(12.5)
        mip.solve()
        assert seen['time_limit'] == 12.5

    @pytest.mark.parametrize("backend", ["highs", "cbc"])
    def test_real_time_limit_rejected(self, ring_market, backend):
        _, bidders = ring_market
        mip = SpectrumMip(bidders, config=SolverConfig(backend=backend))
        mip.set_time_limit(0.01)
        mip.set_accept_suboptimal(False)

        with pytest.raises(SolveTimeoutError):
            mip.solve()
        assert mip.state is ModelState.COMPOSED

    @pytest.mark.parametrize("backend", ["highs", "cbc"])
    def test_real_time_limit_status(self, ring_market, backend):
        _, bidders = ring_market
        mip = SpectrumMip(bidders, config=SolverConfig(backend=backend))
        result = mip.solver.solve(mip.problem, time_limit=0.01)

        assert result.status in (SolveStatus.SUBOPTIMAL, SolveStatus.TIME_LIMIT)
        assert result.status.has_solution == bool(result.values)


class TestRealisticMagnitudes:
    """Populations in the millions push values far beyond the value ceiling"""

    def test_model_is_scaled(self, market_bidders):
        mip = SpectrumMip(market_bidders)
        assert mip.scaling_factor > 200

    def test_solution_reconciles_with_true_values(self, market_world, market_bidders):
        allocation = SpectrumMip(market_bidders).solve()

        results = AllocationValidator().validate_all(allocation, market_world, market_bidders)
        assert all(result.is_valid for result in results.values())
        assert allocation.meta.status == "optimal"

    def test_welfare_beats_any_single_winner(self, market_world, market_bidders):
        allocation = SpectrumMip(market_bidders).solve()
        full = market_world.full_bundle()
        best_single = max(float(bidder.value(full)) for bidder in market_bidders)

        assert float(allocation.total_value) >= best_single * (1 - 1e-4)
        assert allocation.meta.mip_objective == pytest.approx(float(allocation.total_value), rel=1e-9)

    def test_marginal_economy(self, market_world, market_bidders):
        mip = SpectrumMip(market_bidders)
        national = market_bidders[2]
        allocation = mip.without_bidder(national).solve()

        assert national not in allocation
        results = AllocationValidator().validate_all(allocation, market_world, market_bidders)
        assert all(result.is_valid for result in results.values())


class TestLifecycle:

    def test_states(self, regional_bidder):
        mip = SpectrumMip([regional_bidder])
        assert mip.state is ModelState.COMPOSED
        mip.solve()
        assert mip.state is ModelState.EXTRACTED

    def test_solve_is_idempotent(self, regional_bidder):
        solver = RelabelingSolver(SolveStatus.OPTIMAL)
        mip = SpectrumMip([regional_bidder], solver=solver)
        first = mip.solve()
        second = mip.get_allocation()
        assert first is second
        assert solver.calls == 1

    def test_configuration_locked_after_solve(self, regional_bidder):
        mip = SpectrumMip([regional_bidder])
        mip.solve()
        with pytest.raises(ModelStateError):
            mip.set_time_limit(10)
        with pytest.raises(ModelStateError):
            mip.set_accept_suboptimal(False)
        with pytest.raises(ModelStateError):
            mip.add_constraint(mip.x_variables()[0] == 0)

    def test_solution_value_before_solve(self, regional_bidder):
        mip = SpectrumMip([regional_bidder])
        with pytest.raises(ModelStateError):
            mip.solution_value(mip.x_variables()[0])

    def test_invalid_time_limit(self, regional_bidder):
        mip = SpectrumMip([regional_bidder])
        with pytest.raises(ConfigurationError):
            mip.set_time_limit(0)
        with pytest.raises(ConfigurationError):
            mip.set_time_limit(-3)

    def test_empty_bidder_collection(self):
        with pytest.raises(ConfigurationError):
            SpectrumMip([])
        with pytest.raises(ConfigurationError):
            SpectrumMip(None)


class TestRebuilding:

    def test_copy_of_is_fresh_and_equivalent(self, national_bidder, local_bidder):
        mip = SpectrumMip([national_bidder, local_bidder])
        mip.set_time_limit(60)
        original = mip.solve()

        fresh = copy_of(mip)
        assert fresh is not mip
        assert fresh.state is ModelState.COMPOSED
        assert fresh.config.time_limit == 60
        assert fresh.solve().total_value == original.total_value

    def test_without_bidder_drops_every_variable(self, regional_bidder, national_bidder, local_bidder):
        mip = SpectrumMip([regional_bidder, national_bidder, local_bidder])
        reduced = build_without_bidder(mip, national_bidder)

        assert [b.bidder_id for b in reduced.bidders] == [1, 3]
        for variable in reduced.problem.variables():
            assert "b2" not in variable.name.split("_")
        assert mip.state is ModelState.COMPOSED

    def test_without_bidder_solves_marginal_economy(self, national_bidder, local_bidder):
        mip = SpectrumMip([national_bidder, local_bidder])
        allocation = mip.without_bidder(local_bidder).solve()
        assert float(allocation.total_value) == pytest.approx(300.0, abs=1e-3)
        assert local_bidder not in allocation

    def test_without_unknown_bidder(self, regional_bidder, two_region_world):
        stranger = LocalBidder(42, two_region_world, [0], {0: 1})
        mip = SpectrumMip([regional_bidder])
        with pytest.raises(ConfigurationError):
            mip.build_without_bidder(stranger)

    def test_without_bidder_rescales(self, national_bidder, local_bidder):
        config = SolverConfig(max_mip_value=50.0, maxval_safety_gap=10.0)
        mip = SpectrumMip([national_bidder, local_bidder], config=config)
        reduced = mip.without_bidder(local_bidder)
        assert reduced.scaling_factor == pytest.approx(7.5)


class TestAllocationView:

    def test_dataframe_and_summary(self, national_bidder, local_bidder):
        allocation = SpectrumMip([national_bidder, local_bidder]).solve()
        df = allocation.to_dataframe()

        assert set(df['bidder_id']) == {2, 3}
        assert df['quantity'].sum() == 10
        assert df.loc[df['bidder_id'] == 3, 'bidder_type'].iloc[0] == "local"
        assert "Winners: 2" in allocation.summary()

    def test_winning_bidders_sorted(self, national_bidder, local_bidder):
        allocation = SpectrumMip([local_bidder, national_bidder]).solve()
        assert [b.bidder_id for b in allocation.winning_bidders()] == [2, 3]
        assert isinstance(allocation.total_value, Decimal)
