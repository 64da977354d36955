# =============================================================================
# FILE: tests/conftest.py
"""
Shared fixtures: small worlds and bidders with hand-checked values

two_region_world
    region 0 (population 100) -- region 1 (population 200)
    band A: 2 licenses, α = 1, no synergy
    band B: 3 licenses, α = 2, synergy 1.2 from 2 licenses on
    max regional capacity = 1·2 + 2·3·1.2 = 9.2

SV curve (default s-curve): (0,0) (0.25,0.1) (0.75,0.9) (1,1)

market_world / ring_market
    populations in the millions and β around 50, so bidder values reach
    1e7 to 1e8 and every model is scaled down to the value ceiling
"""
from decimal import Decimal

import pytest

from spectrum_mip.modules.world import Band, Bundle, GenericGood, Region, RegionsMap, World
from spectrum_mip.modules.bidders import LocalBidder, NationalBidder, RegionalBidder


def region_bundle(world, region_id):
    """All licenses of one region"""
    return Bundle({
        GenericGood(region_id, band.name): band.num_licenses for band in world.bands
    })


@pytest.fixture
def single_region_world():
    """One region with 10 licenses of a single band"""
    regions_map = RegionsMap([Region(0, "home", 100)])
    return World(regions_map, (Band("A", 10, Decimal(1)),), name="single")


@pytest.fixture
def two_region_world():
    regions_map = RegionsMap(
        [Region(0, "west", 100), Region(1, "east", 200)],
        adjacency=[(0, 1)]
    )
    bands = (
        Band("A", 2, Decimal(1)),
        Band("B", 3, Decimal(2), synergies=((2, Decimal("1.2")),)),
    )
    return World(regions_map, bands, name="two-region")


@pytest.fixture
def regional_bidder(two_region_world):
    """Home 0; full bundle worth 100 + 0.5 · 200 = 200"""
    return RegionalBidder(
        1, two_region_world, home=0,
        distance_discounts={0: Decimal(1), 1: Decimal("0.5")},
        beta={0: Decimal(1), 1: Decimal(1)}
    )


@pytest.fixture
def national_bidder(two_region_world):
    """One uncovered region halves the value; full bundle worth 300"""
    return NationalBidder(
        2, two_region_world,
        uncovered_discounts={1: Decimal("0.5")},
        beta={0: Decimal(1), 1: Decimal(1)}
    )


@pytest.fixture
def local_bidder(two_region_world):
    """Only region 1 matters; full bundle worth 3 · 200 = 600"""
    return LocalBidder(
        3, two_region_world,
        regions_of_interest=[1],
        beta={1: Decimal(3)}
    )


# =============================================================================
# MARKET-SIZED FIXTURES
# =============================================================================

@pytest.fixture
def market_world():
    """Three regions in a chain with populations in the millions"""
    regions_map = RegionsMap(
        [Region(0, "north", 1_215_000), Region(1, "central", 1_498_000), Region(2, "south", 1_734_000)],
        adjacency=[(0, 1), (1, 2)]
    )
    bands = (
        Band("A", 2, Decimal(1)),
        Band("B", 3, Decimal(2), synergies=((2, Decimal("1.2")),)),
    )
    return World(regions_map, bands, name="market")


@pytest.fixture
def market_bidders(market_world):
    """One bidder of each type plus a second regional one; values up to ~2.3e8"""
    return [
        RegionalBidder(
            1, market_world, home=0,
            distance_discounts={0: Decimal(1), 1: Decimal("0.5"), 2: Decimal("0.25")},
            beta={0: Decimal("40.5"), 1: Decimal("38.25"), 2: Decimal("41.75")}
        ),
        RegionalBidder(
            2, market_world, home=1,
            distance_discounts={0: Decimal(1), 1: Decimal("0.6")},
            beta={0: Decimal("48.3"), 1: Decimal("52.7"), 2: Decimal("45.1")}
        ),
        NationalBidder(
            3, market_world,
            uncovered_discounts={1: Decimal("0.7"), 2: Decimal("0.4")},
            beta={0: Decimal("50.2"), 1: Decimal("49.9"), 2: Decimal("55.3")}
        ),
        LocalBidder(
            4, market_world,
            regions_of_interest=[2],
            beta={2: Decimal("61.7")}
        ),
    ]


@pytest.fixture
def ring_market():
    """Eight regions in a ring, three bands and seventeen bidders of all types"""
    regions = [Region(i, f"region-{i}", 1_000_000 + 125_000 * i) for i in range(8)]
    adjacency = [(i, (i + 1) % 8) for i in range(8)]
    world = World(
        RegionsMap(regions, adjacency=adjacency),
        (
            Band("A", 4, Decimal(1)),
            Band("B", 3, Decimal(2), synergies=((2, Decimal("1.2")),)),
            Band("C", 2, Decimal("1.5")),
        ),
        name="ring"
    )
    discounts = {0: Decimal(1), 1: Decimal("0.75"), 2: Decimal("0.5"), 3: Decimal("0.25"), 4: Decimal("0.1")}

    bidders = []
    for home in range(8):
        beta = {r: Decimal(40 + (3 * home + 5 * r) % 21) for r in range(8)}
        bidders.append(RegionalBidder(home + 1, world, home=home, distance_discounts=discounts, beta=beta))
    for n in range(3):
        beta = {r: Decimal(45 + (7 * n + 2 * r) % 17) for r in range(8)}
        bidders.append(NationalBidder(
            9 + n, world,
            uncovered_discounts={1: Decimal("0.8"), 2: Decimal("0.5"), 3: Decimal("0.2")},
            beta=beta
        ))
    for n in range(6):
        interest = [n, (n + 3) % 8]
        bidders.append(LocalBidder(12 + n, world, regions_of_interest=interest,
                                   beta={r: Decimal(55 + 4 * n) for r in interest}))
    return world, bidders
