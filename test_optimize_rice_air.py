"""
Tests for the carbon tax optimization driver.
"""

import itertools

import numpy as np
import pytest

import optimize_rice_air as driver
from config import FAILED_EVALUATION_PENALTY
from conftest import StubRiceAir
from objective import make_objective
from optimize_rice_air import Termination, optimize_rice_air
from optimizer_utils import mu_from_tax, normalize_tax, tax_bounds
from validation import BoundsError, EvaluationError, ValidationError

N_OBJECTIVES = 6


def _optimize(inputs, backstop, factory, algorithm="powell", cobenefits=False, **kwargs):
    kwargs.setdefault("starting_point", np.zeros(N_OBJECTIVES))
    kwargs.setdefault("n_objectives", N_OBJECTIVES)
    kwargs.setdefault("tolerance", 1e-10)
    return optimize_rice_air(
        inputs,
        algorithm,
        stop_time=60,
        backstop_price=backstop,
        cobenefits=cobenefits,
        model_factory=factory,
        **kwargs,
    )


def test_optimal_tax_respects_bounds(inputs, backstop, factory):
    result = _optimize(inputs, backstop, factory)
    lower, upper = tax_bounds(backstop, N_OBJECTIVES)

    assert result.optimal_tax.shape == (N_OBJECTIVES,)
    assert np.all(result.optimal_tax >= lower)
    assert np.all(result.optimal_tax <= upper)


def test_result_is_consistent_with_optimal_tax(inputs, backstop, factory):
    result = _optimize(inputs, backstop, factory)
    mu, full_tax = mu_from_tax(result.optimal_tax, backstop)

    np.testing.assert_allclose(result.abatement, mu)
    np.testing.assert_allclose(result.tax, full_tax)
    assert result.tax[0] == 0.0


def test_optimal_tax_satisfies_backstop_ceiling(inputs, backstop, factory):
    result = _optimize(inputs, backstop, factory, cobenefits=True)
    corrected = normalize_tax(result.optimal_tax.copy(), backstop)
    np.testing.assert_array_equal(corrected, result.optimal_tax)


def test_model_holds_optimal_policy(inputs, backstop, factory):
    result = _optimize(inputs, backstop, factory)
    model = result.model.model

    np.testing.assert_allclose(model.params[("emissions", "MIU")], result.abatement)
    np.testing.assert_allclose(model.params[("air_coreduction", "MIU")], result.abatement)
    assert result.model.welfare() == pytest.approx(result.welfare)
    assert len(factory.models) == 1


def test_optimum_beats_starting_point(inputs, backstop, factory):
    objective, _ = make_objective(inputs, backstop, False, factory)
    start_welfare = objective(np.zeros(N_OBJECTIVES))

    result = _optimize(inputs, backstop, factory)

    assert result.welfare > start_welfare
    assert result.status.n_evaluations > 1


def test_status_is_reported(inputs, backstop, factory):
    result = _optimize(inputs, backstop, factory)
    status = result.status

    assert isinstance(status.status, Termination)
    assert status.success == (status.status in driver.CONVERGED)
    assert status.message
    assert status.n_failed_evaluations == 0
    assert status.elapsed_seconds >= 0.0


def test_cobenefits_raise_abatement(inputs, backstop, factory):
    climate_only = _optimize(inputs, backstop, factory, cobenefits=False)
    with_cobenefits = _optimize(inputs, backstop, factory, cobenefits=True)

    window = slice(1, N_OBJECTIVES + 1)
    assert with_cobenefits.abatement[window].mean() > climate_only.abatement[window].mean()


@pytest.mark.parametrize("algorithm", ["nelder-mead", "l-bfgs-b", "differential_evolution"])
def test_converged_status_means_optimum_reached(inputs, backstop, factory, algorithm):
    reference = _optimize(inputs, backstop, factory, tolerance=1e-8)
    result = _optimize(
        inputs, backstop, factory, algorithm=algorithm, tolerance=1e-8, seed=1
    )
    _, upper = tax_bounds(backstop, N_OBJECTIVES)

    assert reference.status.success
    assert result.status.success
    assert result.status.status in driver.CONVERGED
    assert result.welfare >= reference.welfare - 1e-4 * abs(reference.welfare)
    assert np.all(result.optimal_tax >= 0.0)
    assert np.all(result.optimal_tax <= upper)


@pytest.mark.parametrize("algorithm", ["nelder-mead", "differential_evolution"])
def test_iteration_limit_is_not_reported_as_success(inputs, backstop, factory, algorithm):
    result = _optimize(inputs, backstop, factory, algorithm=algorithm, max_iterations=2, seed=1)

    assert result.status.status is Termination.MAXITER_REACHED
    assert not result.status.success
    assert np.isfinite(result.welfare)


def test_stop_time_returns_best_point_with_non_success_status(inputs, backstop, factory):
    start = np.full(N_OBJECTIVES, 50.0)

    result = optimize_rice_air(
        inputs, "powell", N_OBJECTIVES, 1e-9, 1e-10, backstop, False, start, factory
    )

    assert result.status.status is Termination.MAXTIME_REACHED
    assert not result.status.success
    assert result.status.n_evaluations == 1
    np.testing.assert_allclose(result.optimal_tax, start)


def test_unsupported_algorithm_rejected(inputs, backstop, factory):
    with pytest.raises(ValidationError, match="Unsupported"):
        _optimize(inputs, backstop, factory, algorithm="LN_SBPLX")
    assert factory.models == []


@pytest.mark.parametrize("n_objectives", [0, 10, 60])
def test_period_count_rejected(inputs, backstop, factory, n_objectives):
    with pytest.raises(ValidationError):
        _optimize(inputs, backstop, factory, n_objectives=n_objectives,
                  starting_point=np.zeros(max(n_objectives, 1)))
    assert factory.models == []


def test_starting_point_outside_bounds_rejected(inputs, backstop, ceiling, factory):
    start = np.zeros(N_OBJECTIVES)
    start[2] = ceiling[3] + 1.0
    with pytest.raises(BoundsError, match="outside the tax bounds"):
        _optimize(inputs, backstop, factory, starting_point=start)
    assert factory.models == []


def test_starting_point_length_checked(inputs, backstop, factory):
    with pytest.raises(BoundsError):
        _optimize(inputs, backstop, factory, starting_point=np.zeros(N_OBJECTIVES - 1))


@pytest.mark.parametrize("stop_time, tolerance", [(0, 1e-6), (10, 0.0), (10, 1.5)])
def test_stopping_criteria_validated(inputs, backstop, factory, stop_time, tolerance):
    with pytest.raises(ValidationError):
        optimize_rice_air(
            inputs, "powell", N_OBJECTIVES, stop_time, tolerance, backstop, False,
            np.zeros(N_OBJECTIVES), factory,
        )


def test_all_failed_evaluations_raise(inputs, backstop, factory, capsys):
    factory.options = {"nan_welfare": True}
    with pytest.raises(EvaluationError, match="non-finite welfare"):
        _optimize(inputs, backstop, factory, max_iterations=2)
    assert "No finite welfare in" in capsys.readouterr().out


class BrokenModel(StubRiceAir):
    def run(self):
        raise RuntimeError("solver crashed")


def test_unexpected_model_error_is_logged_and_raised(inputs, backstop, capsys):
    with pytest.raises(RuntimeError, match="solver crashed"):
        _optimize(inputs, backstop, BrokenModel)

    out = capsys.readouterr().out
    assert "Powell failed after 1 evaluations" in out
    assert "Traceback" in out


def test_failed_evaluation_becomes_penalty(inputs, backstop, factory):
    factory.options = {"nan_welfare": True}
    objective, _ = make_objective(inputs, backstop, True, factory)
    lower, upper = tax_bounds(backstop, 2)
    tracker = driver._EvaluationTracker(objective, lower, upper, stop_time=60, tolerance=1e-6)

    assert tracker.negated_welfare(np.array([10.0, 10.0])) == -FAILED_EVALUATION_PENALTY
    assert tracker.n_failed == 1
    assert tracker.best_tax is None


def test_tracker_clips_trials_and_keeps_caller_array(inputs, backstop, ceiling, factory):
    objective, _ = make_objective(inputs, backstop, False, factory)
    lower, upper = tax_bounds(backstop, 2)
    tracker = driver._EvaluationTracker(objective, lower, upper, stop_time=60, tolerance=1e-6)
    trial = np.array([-10.0, 1e9])

    tracker.negated_welfare(trial)

    np.testing.assert_array_equal(trial, [-10.0, 1e9])
    np.testing.assert_allclose(tracker.best_tax, [0.0, ceiling[2]])


def test_tracker_stops_descent_methods_on_relative_tolerance(inputs, backstop, factory):
    objective, _ = make_objective(inputs, backstop, False, factory)
    lower, upper = tax_bounds(backstop, 2)
    tracker = driver._EvaluationTracker(objective, lower, upper, stop_time=60, tolerance=1e-6)

    tracker.negated_welfare(np.array([100.0, 100.0]))
    tracker.on_iteration(np.array([100.0, 100.0]))
    with pytest.raises(driver._StopOptimization) as stop:
        tracker.on_iteration(np.array([100.0, 100.0]))
    assert stop.value.reason is Termination.FTOL_REACHED


def test_tracker_stops_at_time_limit_after_first_evaluation(inputs, backstop, factory):
    objective, _ = make_objective(inputs, backstop, False, factory)
    lower, upper = tax_bounds(backstop, 2)
    ticks = itertools.count(0.0, 100.0)
    tracker = driver._EvaluationTracker(
        objective, lower, upper, stop_time=10, tolerance=1e-6, clock=lambda: next(ticks)
    )

    tracker.negated_welfare(np.array([100.0, 100.0]))
    with pytest.raises(driver._StopOptimization) as stop:
        tracker.negated_welfare(np.array([200.0, 200.0]))
    assert stop.value.reason is Termination.MAXTIME_REACHED
    assert tracker.n_evaluations == 1


def test_initial_simplex_stays_within_bounds(backstop):
    lower, upper = tax_bounds(backstop, 3)
    x0 = np.array([0.0, upper[1], 0.5 * upper[2]])

    simplex = driver._initial_simplex(x0, lower, upper)

    assert simplex.shape == (4, 3)
    np.testing.assert_array_equal(simplex[0], x0)
    assert np.all(simplex >= lower)
    assert np.all(simplex <= upper)
    np.testing.assert_allclose(np.abs(np.diag(simplex[1:] - x0)), 0.25 * (upper - lower))
