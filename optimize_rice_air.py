"""
Carbon Tax Optimization - Welfare Maximization in RICE+AIR

WHAT THIS MODULE DOES:
Finds the global carbon tax path that maximizes total economic welfare in
RICE+AIR, with or without the air-quality health co-benefits of cutting CO2.

HOW IT WORKS:
1. Build an objective function around one RICE+AIR instance (objective.py)
2. Bound every optimized period's tax between $0 and the highest regional
   backstop price (the cost of full decarbonization)
3. Let a scipy.optimize algorithm search the bounded tax space, stopping on a
   wall-clock limit, a relative change in welfare, or the algorithm's own
   convergence test
4. Hold the best tax at the backstop price once it gets there, rerun the model
   with that policy and return the regional mitigation levels

The termination reason is always logged and returned. Running out of time is
not an error: the best policy found so far is returned with a non-success
status and the caller decides whether to accept it.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import numpy as np
from scipy.optimize import differential_evolution, minimize

from config import (
    DEFAULT_MAX_ITERATIONS,
    FAILED_EVALUATION_PENALTY,
    SUPPORTED_ALGORITHMS,
    THETA2,
)
from logger import get_logger
from model_runner import ModelFactory, ModelRunner
from objective import RiceAirObjective, make_objective
from optimizer_utils import mu_from_tax, normalize_tax, tax_bounds
from rice_air_inputs import RiceAirInputs
from validation import (
    EvaluationError,
    as_backstop_array,
    validate_n_periods,
    validate_optimizer_settings,
    validate_starting_point,
)

logger = get_logger(__name__)


class Termination(Enum):
    """Reason the optimizer stopped."""
    SUCCESS = "SUCCESS"
    FTOL_REACHED = "FTOL_REACHED"
    MAXTIME_REACHED = "MAXTIME_REACHED"
    MAXITER_REACHED = "MAXITER_REACHED"
    FAILURE = "FAILURE"


# Terminations that count as convergence
CONVERGED = {Termination.SUCCESS, Termination.FTOL_REACHED}


@dataclass(frozen=True)
class OptimizationStatus:
    """Structured status of one optimization run."""

    success: bool
    status: Termination
    message: str
    n_evaluations: int
    n_failed_evaluations: int
    elapsed_seconds: float


@dataclass
class OptimizationResult:
    """
    Optimal policy and the model instance that evaluated it.

    Attributes:
        abatement: [period, region] optimal CO2 mitigation levels
        tax: Optimal carbon tax for every model period
        model: Runner whose model was last run with the optimal policy
        optimal_tax: Optimal tax vector for the optimized periods
        welfare: Total welfare of the optimal policy
        status: Termination reason and run statistics
    """

    abatement: np.ndarray
    tax: np.ndarray
    model: ModelRunner
    optimal_tax: np.ndarray
    welfare: float
    status: OptimizationStatus


class _StopOptimization(Exception):
    """Raised from inside the optimizer to end the search early."""

    def __init__(self, reason: Termination, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


class _EvaluationTracker:
    """
    Wraps the objective for a minimizer and enforces the stopping criteria.

    Keeps the best successfully evaluated tax vector, converts failed model
    runs to a penalty, and raises _StopOptimization when the time limit or
    the relative welfare tolerance is reached.
    """

    def __init__(
        self,
        objective: RiceAirObjective,
        lower: np.ndarray,
        upper: np.ndarray,
        stop_time: float,
        tolerance: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self.objective = objective
        self.lower = lower
        self.upper = upper
        self.stop_time = stop_time
        self.tolerance = tolerance
        self.clock = clock
        self.start = clock()
        self.n_evaluations = 0
        self.n_failed = 0
        self.best_tax: Optional[np.ndarray] = None
        self.best_welfare = -np.inf
        self._previous_best: Optional[float] = None

    def elapsed(self) -> float:
        return self.clock() - self.start

    def welfare_scale(self) -> float:
        """Magnitude of the best welfare so far, floored at 1."""
        if self.best_tax is None:
            return 1.0
        return max(abs(self.best_welfare), 1.0)

    def negated_welfare(self, x: Any) -> float:
        """Objective in minimization form: -welfare of the trial tax vector."""
        if self.n_evaluations > 0 and self.elapsed() >= self.stop_time:
            raise _StopOptimization(
                Termination.MAXTIME_REACHED,
                f"Stop time of {self.stop_time}s reached after {self.n_evaluations} evaluations",
            )

        # Copy so the in-place noise correction never touches optimizer state
        tax = np.clip(np.array(x, dtype=float), self.lower, self.upper)
        self.n_evaluations += 1

        try:
            welfare = self.objective(tax)
        except EvaluationError as e:
            self.n_failed += 1
            logger.warning(f"Evaluation {self.n_evaluations} failed, using penalty welfare: {e}")
            return -FAILED_EVALUATION_PENALTY

        if welfare > self.best_welfare:
            self.best_welfare = welfare
            self.best_tax = tax.copy()

        return -welfare

    def on_iteration(self, *args: Any, **kwargs: Any) -> None:
        """
        Stop once an iteration changes the best welfare by less than tolerance * |welfare|.

        Only valid for methods in _DESCENT_METHODS, where every iteration
        moves to a better point unless the search has converged.
        """
        if self.best_tax is None:
            return

        previous, self._previous_best = self._previous_best, self.best_welfare
        if previous is None:
            return

        change = abs(self.best_welfare - previous)
        if change <= self.tolerance * abs(self.best_welfare):
            raise _StopOptimization(
                Termination.FTOL_REACHED,
                f"Relative change in welfare {change:.3e} within tolerance {self.tolerance:.1e}",
            )


# Methods whose iterations each take a descent step. Nelder-Mead steps can
# improve only the worst vertex and differential evolution generations can
# leave the best member unchanged, so those use their native convergence tests.
_DESCENT_METHODS = ("Powell", "L-BFGS-B")


def _initial_simplex(x0: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    """
    Nelder-Mead starting simplex with edges of a quarter of each bound range.

    Each edge steps up from x0, or down where stepping up would leave the box.
    """
    step = 0.25 * (upper - lower)
    simplex = np.tile(x0, (len(x0) + 1, 1))
    for i in range(len(x0)):
        simplex[i + 1, i] += step[i] if x0[i] + step[i] <= upper[i] else -step[i]
    return simplex


def _run_optimizer(
    method: str,
    tracker: _EvaluationTracker,
    x0: np.ndarray,
    tolerance: float,
    max_iterations: int,
    seed: Optional[int]
) -> Any:
    bounds = list(zip(tracker.lower, tracker.upper))

    if method == "differential_evolution":
        # Converged once the population's welfare spread is within tolerance * |mean|
        return differential_evolution(
            tracker.negated_welfare,
            bounds,
            x0=x0,
            tol=tolerance,
            maxiter=max_iterations,
            polish=False,
            seed=seed,
        )

    options: dict[str, Any] = {"maxiter": max_iterations}
    callback = None
    if method in _DESCENT_METHODS:
        # Both methods use a relative function tolerance natively
        options["ftol"] = tolerance
        callback = tracker.on_iteration
    elif method == "Nelder-Mead":
        # Stop on the welfare spread across the simplex alone, relative to
        # the welfare of the starting policy
        options["initial_simplex"] = _initial_simplex(x0, tracker.lower, tracker.upper)
        options["fatol"] = tolerance * tracker.welfare_scale()
        options["xatol"] = np.inf

    return minimize(
        tracker.negated_welfare,
        x0,
        method=method,
        bounds=bounds,
        callback=callback,
        options=options,
    )


def _termination_from_result(result: Any, max_iterations: int) -> Termination:
    if result.success:
        return Termination.SUCCESS
    if getattr(result, "nit", 0) >= max_iterations or "maximum" in str(result.message).lower():
        return Termination.MAXITER_REACHED
    return Termination.FAILURE


def optimize_rice_air(
    inputs: RiceAirInputs,
    algorithm: str,
    n_objectives: int,
    stop_time: float,
    tolerance: float,
    backstop_price: Any,
    cobenefits: bool,
    starting_point: Any,
    model_factory: ModelFactory,
    cobenefit_inputs: Optional[Mapping[str, Any]] = None,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    seed: Optional[int] = None
) -> OptimizationResult:
    """
    Find the global carbon tax that maximizes welfare in RICE+AIR.

    Args:
        inputs: User-defined settings for RICE+AIR
        algorithm: Optimization algorithm id (see config.SUPPORTED_ALGORITHMS)
        n_objectives: Number of ten-year periods to optimize (max 59)
        stop_time: Seconds the optimization may run in case it does not converge
        tolerance: Relative tolerance on welfare between iterations
        backstop_price: [period, region] RICE2010 backstop prices
        cobenefits: Account for air-quality health co-benefits
        starting_point: Carbon taxes used to initialize the optimization
        model_factory: Callable building a model instance from ``inputs``
        cobenefit_inputs: Optional co-benefit matrices replacing model defaults
        max_iterations: Iteration limit passed to the optimizer
        seed: Random seed for stochastic algorithms

    Returns:
        OptimizationResult whose model was last run with the optimal policy

    Raises:
        ValidationError: If any setting, table or the starting point is invalid
        EvaluationError: If no model run produced finite welfare
    """
    # Fail fast before building the model
    validate_optimizer_settings(algorithm, stop_time, tolerance)
    backstop = as_backstop_array(backstop_price, n_periods=inputs.nsteps)
    validate_n_periods(n_objectives, total_periods=inputs.nsteps)
    lower, upper = tax_bounds(backstop, n_objectives)
    x0 = validate_starting_point(starting_point, lower, upper)

    objective, runner = make_objective(
        inputs, backstop, cobenefits, model_factory, cobenefit_inputs=cobenefit_inputs
    )

    method = SUPPORTED_ALGORITHMS[algorithm]
    logger.info(
        f"Optimizing {n_objectives} periods with {method} "
        f"(stop time {stop_time}s, tolerance {tolerance:.1e})"
    )

    tracker = _EvaluationTracker(objective, lower, upper, stop_time, tolerance)
    try:
        # The starting policy's welfare sets the scale for relative tolerances
        tracker.negated_welfare(x0)
        result = _run_optimizer(method, tracker, x0, tolerance, max_iterations, seed)
        termination = _termination_from_result(result, max_iterations)
        message = str(result.message)
    except _StopOptimization as stop:
        termination = stop.reason
        message = stop.message
    except Exception:
        logger.exception(f"{method} failed after {tracker.n_evaluations} evaluations")
        raise

    if tracker.best_tax is None:
        logger.error(f"No finite welfare in {tracker.n_evaluations} model evaluations")
        raise EvaluationError(
            f"All {tracker.n_evaluations} model evaluations returned non-finite welfare.\n"
            f"No policy could be evaluated; check the model inputs."
        )

    status = OptimizationStatus(
        success=termination in CONVERGED,
        status=termination,
        message=message,
        n_evaluations=tracker.n_evaluations,
        n_failed_evaluations=tracker.n_failed,
        elapsed_seconds=tracker.elapsed(),
    )
    logger.info(f"Convergence result: {termination.value} ({message})")
    if not status.success:
        logger.warning("Optimizer did not converge; returning the best policy found so far")

    # Carry out final check for noise after hitting backstop price.
    optimal_tax = normalize_tax(tracker.best_tax.copy(), backstop)

    # Get matrix of regional MIU values from optimal tax and leave the model
    # instance holding exactly that policy.
    opt_abatement, tax = mu_from_tax(optimal_tax, backstop, THETA2)
    welfare = runner.evaluate(opt_abatement)

    logger.info(
        f"Optimal welfare {welfare:.6f} after {status.n_evaluations} evaluations "
        f"({status.elapsed_seconds:.1f}s)"
    )
    return OptimizationResult(
        abatement=opt_abatement,
        tax=tax,
        model=runner,
        optimal_tax=optimal_tax,
        welfare=welfare,
        status=status,
    )
