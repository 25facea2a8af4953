"""
Utility functions for RICE+AIR Carbon Tax Optimization.

This module provides post-optimization analysis shared by experiments,
including global CO2 mitigation relative to a no-policy baseline and result
tables / summaries of an optimal policy.
"""

from typing import Any, Optional

import numpy as np
import pandas as pd

from config import DISPLAY_WIDTH, REGIONS, START_YEAR, TIMESTEP_YEARS
from logger import get_logger
from model_runner import ModelRunner
from optimize_rice_air import OptimizationResult
from optimizer_utils import backstop_ceiling

# Module logger
logger = get_logger(__name__)


def global_mitigation(opt_model: ModelRunner) -> np.ndarray:
    """
    Calculate global CO2 mitigation levels relative to a no-policy baseline.

    The baseline is a deep-copied snapshot of the optimized model rerun with
    zero abatement, so the optimized instance is left untouched.

    Args:
        opt_model: Runner whose model was last run with the optimized policy

    Returns:
        1-D array of per-period fractional reductions in global industrial CO2
        emissions. Periods with zero baseline emissions have a rate of 0.

    Raises:
        EvaluationError: If either run returns non-finite emissions
    """
    global_emissions_opt = opt_model.industrial_emissions().sum(axis=1)

    # Get baseline version of RICE+AIR without a CO2 mitigation policy.
    base_model = opt_model.snapshot()
    base_model.set_abatement(np.zeros(base_model.shape))
    base_model.run()
    global_emissions_base = base_model.industrial_emissions().sum(axis=1)

    zero_base = global_emissions_base == 0
    with np.errstate(divide="ignore", invalid="ignore"):
        rates = (global_emissions_base - global_emissions_opt) / global_emissions_base
    rates[zero_base] = 0.0

    if zero_base.any():
        logger.debug(
            f"Zero baseline emissions in {int(zero_base.sum())} periods; mitigation set to 0"
        )

    return rates


def period_years(n_periods: int) -> list[int]:
    """Get the first model year of each ten-year period."""
    return [START_YEAR + TIMESTEP_YEARS * t for t in range(n_periods)]


def policy_frame(
    result: OptimizationResult,
    backstop_price: Any,
    mitigation_rates: Optional[np.ndarray] = None
) -> pd.DataFrame:
    """
    Build a per-period table of the optimal policy.

    Args:
        result: Output of optimize_rice_air()
        backstop_price: [period, region] RICE2010 backstop prices
        mitigation_rates: Optional output of global_mitigation()

    Returns:
        DataFrame indexed by model year with the carbon tax, backstop ceiling,
        whether the period was optimized, and regional abatement levels
    """
    n_periods, n_regions = result.abatement.shape
    region_names = REGIONS if n_regions == len(REGIONS) else [f"Region {r + 1}" for r in range(n_regions)]

    df = pd.DataFrame(index=pd.Index(period_years(n_periods), name="Year"))
    df["Carbon Tax"] = result.tax
    df["Backstop Ceiling"] = backstop_ceiling(backstop_price)
    optimized = np.zeros(n_periods, dtype=bool)
    optimized[1:len(result.optimal_tax) + 1] = True
    df["Optimized"] = optimized

    for r, region in enumerate(region_names):
        df[f"MIU {region}"] = result.abatement[:, r]

    if mitigation_rates is not None:
        df["Global Mitigation"] = np.asarray(mitigation_rates, dtype=float)

    return df


def display_results(
    result: OptimizationResult,
    mitigation_rates: Optional[np.ndarray] = None,
    max_rows: int = 10
) -> None:
    """
    Display optimization results in a readable format.

    Args:
        result: Output of optimize_rice_air()
        mitigation_rates: Optional output of global_mitigation()
        max_rows: Number of periods shown in the tax path
    """
    status = result.status
    logger.section("RICE+AIR OPTIMIZATION RESULTS")

    logger.value("Convergence result", f"{status.status.value} ({status.message})")
    logger.value("Optimal welfare", f"{result.welfare:,.4f}")
    logger.value("Objective evaluations", f"{status.n_evaluations:,}")
    logger.value("Failed evaluations", f"{status.n_failed_evaluations:,}")
    logger.value("Run time", f"{status.elapsed_seconds:,.1f}s")

    # First period (1-based, includes the fixed period 1) with full decarbonization
    full = np.flatnonzero(np.all(result.abatement >= 1.0, axis=1))
    years = period_years(len(result.tax))
    if len(full) > 0:
        logger.value("Full decarbonization from", f"{years[full[0]]} (period {full[0] + 1})")
    else:
        logger.value("Full decarbonization from", "not reached")

    logger.info(f"\n{'Carbon Tax Path ($/tCO2)':^{DISPLAY_WIDTH}}")
    logger.info("-" * DISPLAY_WIDTH)
    for t in range(min(max_rows, len(result.tax))):
        line = f"{years[t]}: ${result.tax[t]:>12,.2f}   mean MIU {result.abatement[t].mean():.3f}"
        if mitigation_rates is not None:
            line += f"   global mitigation {mitigation_rates[t]:>7.2%}"
        logger.info(f"  {line}")
