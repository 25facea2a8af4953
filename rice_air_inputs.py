"""
User-defined settings for one RICE+AIR experiment.

A RiceAirInputs instance is created once per optimization and handed to every
stage of the pipeline (model construction, objective, driver). It is frozen so
no stage can change the settings of a running experiment.
"""

from dataclasses import dataclass

from config import N_STEPS
from validation import validate_rice_air_settings


@dataclass(frozen=True)
class RiceAirInputs:
    """
    Settings used to construct an instance of RICE+AIR.

    Attributes:
        nsteps: Number of ten-year model time periods
        rho: Pure rate of time preference
        eta: Elasticity of marginal utility of consumption
        tau: Rate/shape parameter of the mortality valuation
        kuznets_term: Income elasticity (Kuznets curve) of the pollution response
        ssp_scenario: SSP scenario used for the co-reduction relationship
        hyears: Horizon (years) of life-years gained per avoided death
        use_vsl: Value avoided deaths with the value of a statistical life
        voly_elasticity: Income elasticity of the value of a life-year
    """

    nsteps: int = N_STEPS
    rho: float = 0.015
    eta: float = 1.5
    tau: float = 0.0
    kuznets_term: float = 0.0
    ssp_scenario: str = "SSP2"
    hyears: float = 0.0
    use_vsl: bool = False
    voly_elasticity: float = 1.0

    def __post_init__(self) -> None:
        validate_rice_air_settings(self.nsteps, self.eta, self.ssp_scenario, self.hyears)
