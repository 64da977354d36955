# =============================================================================
# FILE: spectrum_mip/modules/payments.py
"""
Marginal Economies & VCG Payments

A marginal economy is the efficient allocation without one bidder. Each is
built from scratch and owns its own problem, so they can be solved in
separate processes.

VCG payment of bidder i:  p_i = W(N \\ {i}) - (W(N) - v_i)
"""
# =============================================================================

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List
import logging

from tqdm import tqdm

from .bidders import Bidder
from .orchestrator import SpectrumMip
from ..utils.config import SolverConfig
from ..utils.logging_utils import RunLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    """
    VCG outcome

    Attributes:
        payments: bidder id -> payment
        welfare: W(N), value of the efficient allocation
        marginal_welfare: bidder id -> W(N without that bidder)
    """
    payments: Dict[int, Decimal]
    welfare: Decimal
    marginal_welfare: Dict[int, Decimal]

    @property
    def revenue(self) -> Decimal:
        return sum(self.payments.values(), Decimal(0))


def _solve_marginal_economy(
    bidders: List[Bidder],
    excluded: Bidder,
    config: SolverConfig,
    solver
) -> Decimal:
    """Welfare without `excluded`; runs inside worker processes"""
    remaining = [b for b in bidders if b != excluded]
    if not remaining:
        return Decimal(0)
    return SpectrumMip(remaining, config=config, solver=solver).solve().total_value


def marginal_economies(
    mip: SpectrumMip,
    parallel_workers: int = 1,
    show_progress: bool = False
) -> Dict[int, Decimal]:
    """
    Welfare of every marginal economy of `mip`

    Parameters:
    -----------
    mip : SpectrumMip
        Model over the full bidder set (it is not solved here)
    parallel_workers : int
        Number of worker processes (1 = serial, in this process)
    show_progress : bool
        Display a tqdm progress bar
    """
    bidders = mip.bidders
    run_logger = RunLogger(__name__)
    run_logger.log_run_start(
        "marginal economies",
        {'n_bidders': len(bidders), 'parallel_workers': parallel_workers}
    )

    welfare: Dict[int, Decimal] = {}
    if parallel_workers > 1:
        with ProcessPoolExecutor(max_workers=parallel_workers) as executor:
            futures = {
                executor.submit(_solve_marginal_economy, bidders, bidder, mip.config, mip.solver):
                    bidder.bidder_id
                for bidder in bidders
            }
            with tqdm(total=len(futures), desc="Marginal economies", disable=not show_progress) as pbar:
                for future in as_completed(futures):
                    bidder_id = futures[future]
                    welfare[bidder_id] = future.result()
                    run_logger.log_milestone(f"without bidder {bidder_id}: {welfare[bidder_id]:.4f}")
                    pbar.update(1)
    else:
        for bidder in tqdm(bidders, desc="Marginal economies", disable=not show_progress):
            if len(bidders) == 1:
                welfare[bidder.bidder_id] = Decimal(0)
            else:
                welfare[bidder.bidder_id] = mip.without_bidder(bidder).solve().total_value
            run_logger.log_milestone(f"without bidder {bidder.bidder_id}: {welfare[bidder.bidder_id]:.4f}")

    run_logger.log_run_end({'solved': len(welfare)})
    return welfare


def vcg_payments(
    mip: SpectrumMip,
    parallel_workers: int = 1,
    show_progress: bool = False
) -> PaymentResult:
    """VCG payments for all bidders of `mip`; solves `mip` if not solved yet"""
    allocation = mip.solve()
    welfare = allocation.total_value
    marginal = marginal_economies(mip, parallel_workers, show_progress)

    payments = {}
    for bidder in mip.bidders:
        others_welfare = welfare - allocation.value_of(bidder)
        payments[bidder.bidder_id] = marginal[bidder.bidder_id] - others_welfare

    logger.info(f"VCG: welfare={welfare:.4f}, revenue={sum(payments.values(), Decimal(0)):.4f}")
    return PaymentResult(payments=payments, welfare=welfare, marginal_welfare=marginal)
