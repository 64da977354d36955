# =============================================================================
# FILE: tests/test_payments.py
"""
Demand Query and VCG Payment Tests

Single-region world (10 licenses, population 100, default s-curve):
    value(q) = 100 · sv(q / 10); at a price of 5 per license q = 8 is best
    (value 92, price 40, utility 52)
"""
from decimal import Decimal

import pytest

from spectrum_mip.modules.bidders import LocalBidder, RegionalBidder
from spectrum_mip.modules.demand import DemandQueryResult, best_bundle, bundle_price
from spectrum_mip.modules.orchestrator import SpectrumMip
from spectrum_mip.modules.payments import marginal_economies, vcg_payments
from spectrum_mip.modules.world import Bundle, GenericGood
from spectrum_mip.utils.errors import ConfigurationError
from tests.conftest import region_bundle


@pytest.fixture
def home_bidder(single_region_world):
    return RegionalBidder(1, single_region_world, home=0, distance_discounts={0: 1}, beta={0: 1})


class TestDemandQuery:

    def test_best_bundle_at_uniform_price(self, home_bidder):
        good = GenericGood(0, "A")
        result = best_bundle(home_bidder, {good: Decimal(5)})

        assert result.bundle == Bundle({good: 8})
        assert float(result.value) == pytest.approx(92.0, abs=1e-3)
        assert result.price == Decimal(40)
        assert float(result.utility) == pytest.approx(52.0, abs=1e-3)

    def test_free_licenses(self, home_bidder):
        result = best_bundle(home_bidder, {})
        assert result.bundle == Bundle({GenericGood(0, "A"): 10})
        assert result.price == 0

    def test_prohibitive_price(self, home_bidder):
        result = best_bundle(home_bidder, {GenericGood(0, "A"): Decimal(1000)})
        assert result.bundle == Bundle.EMPTY
        assert result.utility == 0

    def test_local_bidder_demands_only_interest(self, local_bidder, two_region_world):
        result = best_bundle(local_bidder, {})
        assert result.bundle == region_bundle(two_region_world, 1)
        assert float(result.value) == pytest.approx(600.0, abs=1e-3)

    def test_unknown_good_priced(self, home_bidder):
        with pytest.raises(ConfigurationError):
            best_bundle(home_bidder, {GenericGood(3, "A"): Decimal(1)})
        with pytest.raises(ConfigurationError):
            best_bundle(home_bidder, {GenericGood(0, "Z"): Decimal(1)})

    def test_negative_price(self, home_bidder):
        with pytest.raises(ConfigurationError):
            best_bundle(home_bidder, {GenericGood(0, "A"): Decimal(-1)})

    def test_bundle_price(self):
        prices = {GenericGood(0, "A"): Decimal("2.5"), GenericGood(1, "B"): Decimal(4)}
        bundle = Bundle({GenericGood(0, "A"): 2, GenericGood(1, "B"): 1, GenericGood(1, "A"): 3})
        assert bundle_price(bundle, prices) == Decimal(9)

    def test_utility(self):
        result = DemandQueryResult(Bundle.EMPTY, Decimal(10), Decimal(4))
        assert result.utility == Decimal(6)


class TestVcgPayments:

    def test_no_competition_means_no_payment(self, two_region_world):
        west = LocalBidder(1, two_region_world, [0], {0: 1})
        east = LocalBidder(2, two_region_world, [1], {1: 1})
        result = vcg_payments(SpectrumMip([west, east]))

        assert float(result.welfare) == pytest.approx(300.0, abs=1e-3)
        assert float(result.payments[1]) == pytest.approx(0.0, abs=1e-3)
        assert float(result.payments[2]) == pytest.approx(0.0, abs=1e-3)

    def test_national_versus_local(self, national_bidder, local_bidder):
        result = vcg_payments(SpectrumMip([national_bidder, local_bidder]))

        assert float(result.marginal_welfare[2]) == pytest.approx(600.0, abs=1e-3)
        assert float(result.marginal_welfare[3]) == pytest.approx(300.0, abs=1e-3)
        # p_national = 600 - local value, p_local = 300 - national value
        assert float(result.payments[2]) == pytest.approx(26.086957, abs=1e-3)
        assert float(result.payments[3]) == pytest.approx(191.304348, abs=1e-3)
        assert float(result.revenue) == pytest.approx(217.391304, abs=1e-3)

    def test_payments_never_exceed_values(self, regional_bidder, national_bidder, local_bidder):
        mip = SpectrumMip([regional_bidder, national_bidder, local_bidder])
        result = vcg_payments(mip)
        allocation = mip.solve()

        for bidder in mip.bidders:
            payment = float(result.payments[bidder.bidder_id])
            assert payment >= -1e-3
            assert payment <= float(allocation.value_of(bidder)) + 1e-3

    def test_single_bidder_pays_nothing(self, home_bidder):
        result = vcg_payments(SpectrumMip([home_bidder]))
        assert result.marginal_welfare[1] == 0
        assert float(result.payments[1]) == pytest.approx(0.0, abs=1e-3)


class TestMarginalEconomies:

    def test_serial_and_parallel_agree(self, national_bidder, local_bidder):
        mip = SpectrumMip([national_bidder, local_bidder])
        serial = marginal_economies(mip, parallel_workers=1)
        parallel = marginal_economies(mip, parallel_workers=2)

        assert set(serial) == set(parallel) == {2, 3}
        for bidder_id in serial:
            assert float(parallel[bidder_id]) == pytest.approx(float(serial[bidder_id]), abs=1e-3)

    def test_original_model_untouched(self, national_bidder, local_bidder):
        mip = SpectrumMip([national_bidder, local_bidder])
        marginal_economies(mip)
        assert float(mip.solve().total_value) == pytest.approx(682.608696, abs=1e-3)
