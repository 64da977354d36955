# =============================================================================
# FILE: spectrum_mip/modules/world.py
"""
World Description - Regions, bands, generic goods and bundles

A world is a set of regions (a graph with precomputed shortest-path
distances) and a set of bands. Every (region, band) pair is a generic good
whose capacity is the band's number of licenses.

Worlds and bundles are immutable once constructed.
"""
# =============================================================================

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import shortest_path

logger = logging.getLogger(__name__)


# =============================================================================
# WORLD ELEMENTS
# =============================================================================

@dataclass(frozen=True)
class Region:
    """A geographic region with its population"""
    region_id: int
    name: str
    population: int

    def __post_init__(self):
        if self.population < 0:
            raise ValueError(f"Region {self.name}: population must be non-negative")


@dataclass(frozen=True)
class Band:
    """
    A frequency band, offered in every region with the same number of licenses

    Attributes:
    -----------
    name : str
        Band identifier
    num_licenses : int
        Licenses per region (capacity of each generic good of this band)
    base_capacity : Decimal
        Capacity contribution α of a single license
    synergies : Tuple[Tuple[int, Decimal], ...]
        (quantity threshold, factor) pairs; the factor of the largest
        threshold <= q applies to a regional quantity q
    """
    name: str
    num_licenses: int
    base_capacity: Decimal
    synergies: Tuple[Tuple[int, Decimal], ...] = ()

    def __post_init__(self):
        if self.num_licenses < 0:
            raise ValueError(f"Band {self.name}: num_licenses must be non-negative")
        if Decimal(self.base_capacity) < 0:
            raise ValueError(f"Band {self.name}: base_capacity must be non-negative")
        object.__setattr__(self, 'base_capacity', Decimal(self.base_capacity))
        object.__setattr__(
            self, 'synergies',
            tuple(sorted((int(q), Decimal(f)) for q, f in self.synergies))
        )

    def synergy(self, quantity: int) -> Decimal:
        """Synergy factor for holding `quantity` licenses of this band in one region"""
        factor = Decimal(1)
        if quantity <= 1:
            return factor
        for threshold, value in self.synergies:
            if threshold <= quantity:
                factor = value
            else:
                break
        return factor

    def capacity(self, quantity: int) -> Decimal:
        """Capacity of `quantity` licenses: α · q · syn(q)"""
        return self.base_capacity * quantity * self.synergy(quantity)


@dataclass(frozen=True, order=True)
class GenericGood:
    """A region x band pair; licenses of one good are interchangeable"""
    region_id: int
    band_name: str


# =============================================================================
# BUNDLES
# =============================================================================

class Bundle:
    """
    Immutable multiset of generic goods

    Zero quantities are dropped, so two bundles with the same positive
    entries are equal and hash alike.
    """

    __slots__ = ('_entries', '_hash')

    EMPTY: 'Bundle'

    def __init__(self, entries: Optional[Mapping[GenericGood, int]] = None):
        cleaned = {}
        for good, quantity in (entries or {}).items():
            quantity = int(quantity)
            if quantity < 0:
                raise ValueError(f"Negative quantity {quantity} for {good}")
            if quantity > 0:
                cleaned[good] = quantity
        self._entries: Dict[GenericGood, int] = cleaned
        self._hash = hash(frozenset(cleaned.items()))

    def quantity(self, good: GenericGood) -> int:
        return self._entries.get(good, 0)

    def regional_quantity(self, region_id: int) -> int:
        """Total number of licenses held in one region, across all bands"""
        return sum(q for good, q in self._entries.items() if good.region_id == region_id)

    def goods(self) -> List[GenericGood]:
        return sorted(self._entries)

    def items(self) -> Iterator[Tuple[GenericGood, int]]:
        return iter(sorted(self._entries.items()))

    def total_quantity(self) -> int:
        return sum(self._entries.values())

    def is_empty(self) -> bool:
        return not self._entries

    def to_dict(self) -> Dict[GenericGood, int]:
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Bundle):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return self._hash

    def __reduce__(self):
        # String hashes differ between processes; rehash on unpickling
        return (Bundle, (self._entries,))

    def __repr__(self) -> str:
        if not self._entries:
            return "Bundle(EMPTY)"
        body = ", ".join(f"{g.region_id}/{g.band_name}:{q}" for g, q in self.items())
        return f"Bundle({body})"


Bundle.EMPTY = Bundle()


# =============================================================================
# REGIONS MAP
# =============================================================================

class RegionsMap:
    """
    Region graph with all-pairs shortest-path distances

    Distances are hop counts computed once at construction. A pair of
    regions without a connecting path is reported as disconnected (None).
    """

    def __init__(self, regions: Sequence[Region], adjacency: Iterable[Tuple[int, int]] = ()):
        if len(regions) == 0:
            raise ValueError("A regions map needs at least one region")

        self._regions: Dict[int, Region] = {}
        for region in regions:
            if region.region_id in self._regions:
                raise ValueError(f"Duplicate region id {region.region_id}")
            self._regions[region.region_id] = region

        self._index = {rid: idx for idx, rid in enumerate(sorted(self._regions))}
        n = len(self._index)

        rows, cols = [], []
        for a, b in adjacency:
            if a not in self._index or b not in self._index:
                raise ValueError(f"Adjacency ({a}, {b}) references an unknown region")
            if a == b:
                continue
            rows.extend([self._index[a], self._index[b]])
            cols.extend([self._index[b], self._index[a]])

        graph = csr_matrix((np.ones(len(rows)), (rows, cols)), shape=(n, n))
        self._distances = shortest_path(graph, directed=False, unweighted=True)

        logger.debug(f"RegionsMap built: {n} regions, {len(rows) // 2} edges")

    @property
    def regions(self) -> List[Region]:
        return [self._regions[rid] for rid in sorted(self._regions)]

    def region(self, region_id: int) -> Region:
        try:
            return self._regions[region_id]
        except KeyError:
            raise KeyError(f"Unknown region id {region_id}") from None

    def has_region(self, region_id: int) -> bool:
        return region_id in self._regions

    def distance(self, a: int, b: int) -> Optional[int]:
        """Hop distance between two regions, None if disconnected"""
        d = self._distances[self._index[a], self._index[b]]
        if np.isinf(d):
            return None
        return int(d)

    def is_connected(self, a: int, b: int) -> bool:
        return self.distance(a, b) is not None

    def longest_shortest_path(self, region_id: int) -> int:
        """Largest finite distance from `region_id` to any other region"""
        row = self._distances[self._index[region_id]]
        return int(np.max(row[np.isfinite(row)]))

    def __len__(self) -> int:
        return len(self._regions)


# =============================================================================
# WORLD
# =============================================================================

@dataclass(frozen=True, eq=False)
class World:
    """Regions, bands and the generic goods they span"""
    regions_map: RegionsMap
    bands: Tuple[Band, ...]
    name: str = "world"
    _bands_by_name: Dict[str, Band] = field(init=False, repr=False)

    def __post_init__(self):
        bands = tuple(self.bands)
        if len(bands) == 0:
            raise ValueError("A world needs at least one band")
        by_name = {}
        for band in bands:
            if band.name in by_name:
                raise ValueError(f"Duplicate band name {band.name}")
            by_name[band.name] = band
        object.__setattr__(self, 'bands', bands)
        object.__setattr__(self, '_bands_by_name', by_name)

    @property
    def regions(self) -> List[Region]:
        return self.regions_map.regions

    def band(self, name: str) -> Band:
        try:
            return self._bands_by_name[name]
        except KeyError:
            raise KeyError(f"Unknown band {name}") from None

    def has_band(self, name: str) -> bool:
        return name in self._bands_by_name

    def generic_goods(self) -> List[GenericGood]:
        return [
            GenericGood(region.region_id, band.name)
            for region in self.regions
            for band in self.bands
        ]

    def capacity(self, good: GenericGood) -> int:
        if not self.regions_map.has_region(good.region_id):
            raise KeyError(f"Unknown region id {good.region_id}")
        return self.band(good.band_name).num_licenses

    def full_bundle(self) -> Bundle:
        """Bundle containing every license of the world"""
        return Bundle({good: self.capacity(good) for good in self.generic_goods()})

    def validate_bundle(self, bundle: Bundle) -> None:
        """Raise ValueError if the bundle names unknown goods or exceeds capacity"""
        for good, quantity in bundle.items():
            if not self.regions_map.has_region(good.region_id) or not self.has_band(good.band_name):
                raise ValueError(f"Bundle references unknown good {good}")
            if quantity > self.capacity(good):
                raise ValueError(
                    f"Bundle holds {quantity} licenses of {good}, capacity is {self.capacity(good)}"
                )

    def regional_capacity(self, region_id: int, bundle: Bundle) -> Decimal:
        """c_r(X) = Σ_b α_b · q_b · syn_b(q_b) for the licenses of `bundle` in one region"""
        total = Decimal(0)
        for band in self.bands:
            quantity = bundle.quantity(GenericGood(region_id, band.name))
            total += band.capacity(quantity)
        return total

    def max_regional_capacity(self, region_id: int) -> Decimal:
        """Capacity of holding every license of one region"""
        self.regions_map.region(region_id)
        return sum((band.capacity(band.num_licenses) for band in self.bands), Decimal(0))
