"""
Optimization Utility Functions for RICE+AIR Carbon Tax Optimization.

This module provides the pure functions shared by the objective function and
the optimization driver for translating carbon taxes into regional abatement.

Key functions:
- backstop_ceiling(): Highest regional backstop price per period ($/tCO2)
- tax_bounds(): Lower/upper bounds of the optimized tax vector
- mu_from_tax(): Regional CO2 mitigation levels from a global carbon tax
- normalize_tax(): Hold the tax at the backstop price once it gets there
"""

from typing import Any

import numpy as np

from config import BACKSTOP_SCALE, ROUNDING_DIGITS, THETA2
from validation import (
    as_backstop_array,
    validate_n_periods,
    validate_tax_vector,
    validate_theta2,
)


def backstop_ceiling(backstop_price: Any) -> np.ndarray:
    """
    Get the maximum backstop price across regions for each period.

    A tax equal to this value means full decarbonization in every region.

    Args:
        backstop_price: [period, region] RICE2010 backstop prices (thousand $/tCO2)

    Returns:
        1-D array of scaled backstop prices ($/tCO2), one per model period
    """
    backstop = as_backstop_array(backstop_price)
    return backstop.max(axis=1) * BACKSTOP_SCALE


def tax_bounds(backstop_price: Any, n_periods: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Get optimizer bounds for a tax vector covering periods 2..n_periods+1.

    The tax can never be asked to exceed the cost of full decarbonization.

    Args:
        backstop_price: [period, region] RICE2010 backstop prices
        n_periods: Number of periods being optimized

    Returns:
        tuple: (lower, upper) bound arrays of length n_periods
    """
    ceiling = backstop_ceiling(backstop_price)
    validate_n_periods(n_periods, total_periods=len(ceiling))
    upper = ceiling[1:n_periods + 1].copy()
    return np.zeros(n_periods), upper


def mu_from_tax(
    tax: Any,
    backstop_price: Any,
    theta2: float = THETA2
) -> tuple[np.ndarray, np.ndarray]:
    """
    Calculate regional CO2 mitigation levels as a function of a global carbon tax.

    Assumes a carbon tax of $0 in period 1. If there are fewer tax values than
    model periods, the tax is set to the backstop price (full decarbonization)
    for all later periods.

    Args:
        tax: Global carbon tax for periods 2..len(tax)+1 ($/tCO2)
        backstop_price: [period, region] RICE2010 backstop prices (thousand $/tCO2)
        theta2: Exponent on the abatement cost function

    Returns:
        tuple: (mu, full_tax)
            - mu: [period, region] abatement levels in [0, 1]
            - full_tax: Carbon tax for every model period

    Raises:
        BackstopTableError: If backstop prices are malformed or not positive
        TaxVectorError: If the tax vector does not fit the model horizon
    """
    backstop = as_backstop_array(backstop_price) * BACKSTOP_SCALE
    tax = validate_tax_vector(tax, total_periods=backstop.shape[0])
    validate_theta2(theta2)

    full_tax = backstop.max(axis=1)
    full_tax[0] = 0.0
    full_tax[1:len(tax) + 1] = tax

    # Negative taxes buy no abatement
    ratio = np.maximum(full_tax, 0.0)[:, np.newaxis] / backstop
    mu = np.clip(ratio ** (1.0 / (theta2 - 1.0)), 0.0, 1.0)

    return mu, full_tax


def normalize_tax(
    tax: Any,
    backstop_price: Any,
    digits: int = ROUNDING_DIGITS
) -> np.ndarray:
    """
    Correct optimization noise after the tax hits the backstop price.

    Once a tax value (rounded to ``digits``) equals the highest regional
    backstop price for its period, that value and every later one are set to
    the backstop price. Only the first match is used as the trigger.

    A float ndarray is corrected in place; any other sequence is copied.

    Args:
        tax: Global carbon tax for periods 2..len(tax)+1 ($/tCO2)
        backstop_price: [period, region] RICE2010 backstop prices
        digits: Decimal digits used for the equality check

    Returns:
        The corrected tax vector
    """
    ceiling = backstop_ceiling(backstop_price)
    tax = validate_tax_vector(tax, total_periods=len(ceiling))
    if not tax.flags.writeable:
        tax = tax.copy()

    period_ceiling = ceiling[1:len(tax) + 1]
    hits = np.flatnonzero(np.round(tax, digits) == np.round(period_ceiling, digits))

    if len(hits) > 0:
        first = int(hits[0])
        tax[first:] = period_ceiling[first:]

    return tax
