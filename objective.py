"""
RICE+AIR objective function.

make_objective() builds an instance of RICE+AIR for the user settings and
returns a callable that takes a vector of global carbon tax values and returns
the total economic welfare generated by that climate policy. The objective
assumes that once the carbon tax hits the backstop price (full
decarbonization), it stays there.
"""

from typing import Any, Mapping, Optional

import numpy as np

from config import THETA2
from logger import get_logger
from model_runner import EvaluationResult, ModelFactory, ModelRunner
from optimizer_utils import mu_from_tax, normalize_tax
from rice_air_inputs import RiceAirInputs
from validation import ValidationError, as_backstop_array, validate_cobenefit_inputs

logger = get_logger(__name__)


class RiceAirObjective:
    """
    Welfare objective bound to one model instance.

    Every call reconfigures and reruns the same model; only the abatement
    inputs change between calls.

    Args:
        runner: Runner owning the model instance
        backstop_price: [period, region] RICE2010 backstop prices
        theta2: Exponent on the abatement cost function
    """

    def __init__(self, runner: ModelRunner, backstop_price: np.ndarray, theta2: float = THETA2):
        self.runner = runner
        self.backstop_price = backstop_price
        self.theta2 = theta2
        self.n_evaluations = 0
        self.last_result: Optional[EvaluationResult] = None

    def evaluate(self, opt_tax: Any) -> EvaluationResult:
        """
        Run RICE+AIR with a carbon tax policy.

        The tax vector is corrected in place for noise after it hits the
        backstop price before mitigation levels are computed.

        Args:
            opt_tax: Global carbon tax for the optimized periods

        Returns:
            Immutable record of the evaluated policy and its welfare

        Raises:
            EvaluationError: If the model run returns non-finite welfare
        """
        self.n_evaluations += 1
        tax = normalize_tax(opt_tax, self.backstop_price)
        abatement, full_tax = mu_from_tax(tax, self.backstop_price, self.theta2)

        welfare = self.runner.evaluate(abatement)
        logger.debug(f"Evaluation {self.n_evaluations}: welfare={welfare:.6f}")

        self.last_result = EvaluationResult.build(tax, full_tax, abatement, welfare)
        return self.last_result

    def __call__(self, opt_tax: Any) -> float:
        return self.evaluate(opt_tax).welfare


def make_objective(
    inputs: RiceAirInputs,
    backstop_price: Any,
    cobenefits: bool,
    model_factory: ModelFactory,
    cobenefit_inputs: Optional[Mapping[str, Any]] = None,
    theta2: float = THETA2
) -> tuple[RiceAirObjective, ModelRunner]:
    """
    Create a RICE+AIR objective function for the user settings.

    Args:
        inputs: User-defined settings for RICE+AIR
        backstop_price: [period, region] RICE2010 backstop prices
        cobenefits: Account for air-quality health co-benefits (False = climate only)
        model_factory: Callable building a model instance from ``inputs``
        cobenefit_inputs: Optional co-benefit matrices ("lifeyears",
            "avoided_deaths") replacing the model defaults
        theta2: Exponent on the abatement cost function

    Returns:
        tuple: (objective, runner)
            - objective: Callable tax vector -> welfare
            - runner: Runner around the model instance the objective mutates

    Raises:
        ValidationError: If settings or tables are malformed
    """
    backstop = as_backstop_array(backstop_price, n_periods=inputs.nsteps)
    shape = (inputs.nsteps, backstop.shape[1])

    matrices = None
    if cobenefit_inputs is not None:
        if not cobenefits:
            raise ValidationError(
                "Co-benefit inputs were supplied but co-benefits are disabled.\n"
                "Pass cobenefits=True to use them."
            )
        matrices = validate_cobenefit_inputs(cobenefit_inputs, shape)

    runner = ModelRunner(model_factory(inputs), inputs, n_regions=backstop.shape[1])

    # If optimizing the reference case, set health co-benefits to 0.
    if not cobenefits:
        runner.disable_cobenefits()
    elif matrices:
        runner.set_cobenefits(matrices)

    logger.info(
        f"Created RICE+AIR objective ({inputs.nsteps} periods, {shape[1]} regions, "
        f"{inputs.ssp_scenario}, co-benefits {'on' if cobenefits else 'off'})"
    )
    return RiceAirObjective(runner, backstop, theta2), runner
