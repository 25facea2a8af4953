"""
Input Validation Module for RICE+AIR Carbon Tax Optimization.

This module provides validation for model settings, backstop price tables,
tax vectors and optimizer bounds so that malformed inputs are rejected before
any model run.

Key validation functions:
- as_backstop_array(): Convert and check a backstop price table
- validate_tax_vector(): Check a tax vector fits the model horizon
- validate_theta2(): Check the abatement cost exponent
- validate_n_periods(): Check the number of optimized periods
- validate_starting_point(): Check an initial guess lies inside the bounds
- validate_optimizer_settings(): Check algorithm id, stop time and tolerance
- validate_cobenefit_inputs(): Check optional co-benefit matrices
"""

from typing import Any, Mapping, Optional

import numpy as np
import pandas as pd

from config import (
    COBENEFIT_FIELDS,
    MAX_OPTIMIZED_PERIODS,
    N_STEPS,
    SSP_SCENARIOS,
    SUPPORTED_ALGORITHMS,
)


class ValidationError(Exception):
    """Configuration error with an actionable message, raised before any model run."""
    pass


class TaxVectorError(ValidationError):
    """Tax vector has the wrong shape, length or non-finite values."""
    pass


class BackstopTableError(ValidationError):
    """Backstop price table has the wrong shape or non-positive entries."""
    pass


class BoundsError(ValidationError):
    """Initial guess or decision variables fall outside the tax bounds."""
    pass


class EvaluationError(Exception):
    """A model run produced non-finite welfare or emissions."""
    pass


def as_backstop_array(
    backstop_price: Any,
    n_periods: Optional[int] = None,
    n_regions: Optional[int] = None
) -> np.ndarray:
    """
    Convert a backstop price table to a float array and validate it.

    Args:
        backstop_price: [period, region] table (ndarray, nested list or DataFrame)
        n_periods: Expected number of rows (skipped if None)
        n_regions: Expected number of columns (skipped if None)

    Returns:
        2-D float array of backstop prices (source units, not scaled)

    Raises:
        BackstopTableError: If the table is malformed or has entries <= 0
    """
    if isinstance(backstop_price, pd.DataFrame):
        backstop_price = backstop_price.to_numpy()

    try:
        table = np.asarray(backstop_price, dtype=float)
    except (TypeError, ValueError) as e:
        raise BackstopTableError(f"Backstop price table is not numeric: {e}")

    if table.ndim != 2 or table.size == 0:
        raise BackstopTableError(
            f"Backstop price table must be a non-empty [period, region] matrix, "
            f"got shape {table.shape}"
        )

    if n_periods is not None and table.shape[0] != n_periods:
        raise BackstopTableError(
            f"Backstop price table has {table.shape[0]} periods, expected {n_periods}.\n"
            f"The table must cover every model time step."
        )

    if n_regions is not None and table.shape[1] != n_regions:
        raise BackstopTableError(
            f"Backstop price table has {table.shape[1]} regions, expected {n_regions}"
        )

    if not np.all(np.isfinite(table)):
        bad = [tuple(int(i) for i in idx) for idx in np.argwhere(~np.isfinite(table))[:5]]
        raise BackstopTableError(
            f"Backstop price table contains non-finite values.\n"
            f"First few [period, region] cells: {bad}"
        )

    if np.any(table <= 0):
        bad = [tuple(int(i) for i in idx) for idx in np.argwhere(table <= 0)[:5]]
        raise BackstopTableError(
            f"Backstop prices must be strictly positive (abatement is undefined at a "
            f"zero backstop price).\n"
            f"First few [period, region] cells <= 0: {bad}"
        )

    return table


def validate_tax_vector(tax: Any, total_periods: int) -> np.ndarray:
    """
    Validate a tax vector against the model horizon.

    Args:
        tax: Carbon tax values for periods 2..len(tax)+1
        total_periods: Total number of model periods

    Returns:
        The tax vector as a 1-D float array (the same object when already one)

    Raises:
        TaxVectorError: If the vector is not 1-D, too long or non-finite
    """
    try:
        values = np.asarray(tax, dtype=float)
    except (TypeError, ValueError) as e:
        raise TaxVectorError(f"Tax vector is not numeric: {e}")

    if values.ndim != 1:
        raise TaxVectorError(f"Tax vector must be one-dimensional, got shape {values.shape}")

    if len(values) > total_periods - 1:
        raise TaxVectorError(
            f"Tax vector has {len(values)} values but only {total_periods - 1} periods "
            f"can be taxed.\n"
            f"Period 1 is fixed at a $0 tax and is not part of the tax vector."
        )

    if not np.all(np.isfinite(values)):
        raise TaxVectorError(
            f"Tax vector contains non-finite values at indices "
            f"{np.flatnonzero(~np.isfinite(values)).tolist()}"
        )

    return values


def validate_theta2(theta2: float) -> None:
    """
    Validate the abatement cost exponent.

    Raises:
        ValidationError: If theta2 is not a finite number greater than 1
    """
    if not np.isfinite(theta2) or theta2 <= 1.0:
        raise ValidationError(
            f"Abatement cost exponent theta2 must be greater than 1, got: {theta2}"
        )


def validate_n_periods(n_periods: int, total_periods: int = N_STEPS) -> None:
    """
    Validate the number of periods being optimized.

    Raises:
        ValidationError: If n_periods is outside [1, total_periods - 1]
    """
    if isinstance(n_periods, bool) or not isinstance(n_periods, (int, np.integer)):
        raise ValidationError(
            f"Number of optimized periods must be an integer, got: {type(n_periods).__name__}"
        )

    max_periods = min(total_periods - 1, MAX_OPTIMIZED_PERIODS)
    if n_periods < 1 or n_periods > max_periods:
        raise ValidationError(
            f"Number of optimized periods {n_periods} is outside valid range.\n"
            f"Valid range: 1 to {max_periods} (period 1 is fixed at a $0 tax)"
        )


def validate_starting_point(
    starting_point: Any,
    lower: np.ndarray,
    upper: np.ndarray
) -> np.ndarray:
    """
    Validate an initial guess against the tax bounds.

    Args:
        starting_point: Initial carbon tax values
        lower: Lower bound for each decision variable
        upper: Upper bound for each decision variable

    Returns:
        Initial guess as a new 1-D float array

    Raises:
        BoundsError: If the guess has the wrong length or leaves the bounds
    """
    try:
        x0 = np.array(starting_point, dtype=float)
    except (TypeError, ValueError) as e:
        raise BoundsError(f"Starting point is not numeric: {e}")

    if x0.ndim != 1 or len(x0) != len(lower):
        raise BoundsError(
            f"Starting point must have one value per optimized period.\n"
            f"Expected length {len(lower)}, got shape {x0.shape}"
        )

    if not np.all(np.isfinite(x0)):
        raise BoundsError("Starting point contains non-finite values")

    outside = np.flatnonzero((x0 < lower) | (x0 > upper))
    if len(outside) > 0:
        i = int(outside[0])
        raise BoundsError(
            f"Starting point is outside the tax bounds at indices {outside.tolist()[:5]}.\n"
            f"Index {i}: {x0[i]:.2f} not in [{lower[i]:.2f}, {upper[i]:.2f}]\n"
            f"The upper bound is the highest regional backstop price for that period."
        )

    return x0


def validate_optimizer_settings(algorithm: str, stop_time: float, tolerance: float) -> None:
    """
    Validate optimizer algorithm and stopping criteria.

    Raises:
        ValidationError: If any setting is unsupported or out of range
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValidationError(
            f"Unsupported optimization algorithm: {algorithm!r}\n"
            f"Available algorithms: {', '.join(SUPPORTED_ALGORITHMS)}"
        )

    if not np.isfinite(stop_time) or stop_time <= 0:
        raise ValidationError(f"Stop time must be a positive number of seconds, got: {stop_time}")

    if not np.isfinite(tolerance) or not 0 < tolerance < 1:
        raise ValidationError(f"Relative tolerance must be in (0, 1), got: {tolerance}")


def validate_rice_air_settings(
    nsteps: int,
    eta: float,
    ssp_scenario: str,
    hyears: float
) -> None:
    """
    Validate the RICE+AIR run settings that determine array shapes and lookups.

    Raises:
        ValidationError: If any setting is out of range
    """
    if isinstance(nsteps, bool) or not isinstance(nsteps, (int, np.integer)):
        raise ValidationError(f"nsteps must be an integer, got: {type(nsteps).__name__}")

    if nsteps < 2 or nsteps > N_STEPS:
        raise ValidationError(
            f"nsteps {nsteps} is outside valid range.\n"
            f"Valid range: 2 to {N_STEPS} ten-year periods"
        )

    if eta < 0:
        raise ValidationError(f"Elasticity of marginal utility must be non-negative, got: {eta}")

    if ssp_scenario not in SSP_SCENARIOS:
        raise ValidationError(
            f"Unknown SSP scenario: {ssp_scenario!r}\n"
            f"Available scenarios: {', '.join(SSP_SCENARIOS)}"
        )

    if hyears < 0:
        raise ValidationError(f"Hyears must be non-negative, got: {hyears}")


def validate_cobenefit_inputs(
    cobenefit_inputs: Mapping[str, Any],
    shape: tuple[int, int]
) -> dict[str, np.ndarray]:
    """
    Validate user-supplied co-benefit matrices.

    Args:
        cobenefit_inputs: Mapping of co-benefit field name to [period, region] matrix
        shape: Expected matrix shape (nsteps, regions)

    Returns:
        Dict of field name to float array

    Raises:
        ValidationError: If a field is unknown or a matrix is malformed
    """
    unknown = [name for name in cobenefit_inputs if name not in COBENEFIT_FIELDS]
    if unknown:
        raise ValidationError(
            f"Unknown co-benefit inputs: {', '.join(unknown)}\n"
            f"Expected any of: {', '.join(COBENEFIT_FIELDS)}"
        )

    matrices: dict[str, np.ndarray] = {}
    for name, value in cobenefit_inputs.items():
        matrix = np.array(value, dtype=float)
        if matrix.shape != shape:
            raise ValidationError(
                f"Co-benefit input '{name}' has shape {matrix.shape}, expected {shape}"
            )
        if not np.all(np.isfinite(matrix)):
            raise ValidationError(f"Co-benefit input '{name}' contains non-finite values")
        matrices[name] = matrix

    return matrices
