"""
Narrow interface between the optimization pipeline and the RICE+AIR model.

The coupled climate / economy / air-pollution model is an external
collaborator. The pipeline only needs three operations from it:

- configure(component, field, value): set a model input
- run(): execute a full model run
- read(component, field): read an output (or input) after a run

ModelRunner is the only object that mutates a model instance. It writes the
abatement policy consistently to both the emissions and air co-reduction
components, checks that outputs are finite, and hands out deep-copied
snapshots for baseline runs.
"""

import copy
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import numpy as np

from config import COBENEFIT_FIELDS, MODEL_FIELDS
from logger import get_logger
from rice_air_inputs import RiceAirInputs
from validation import EvaluationError, ValidationError

logger = get_logger(__name__)


class RiceAirModel(Protocol):
    """Protocol for coupled model instances consumed by the pipeline."""

    def configure(self, component: str, field: str, value: Any) -> None: ...

    def run(self) -> None: ...

    def read(self, component: str, field: str) -> Any: ...


# Builds a fresh model instance from user settings
ModelFactory = Callable[[RiceAirInputs], RiceAirModel]


def _frozen(values: Any) -> np.ndarray:
    array = np.array(values, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class EvaluationResult:
    """
    Immutable record of one objective evaluation.

    Attributes:
        tax: Tax vector after backstop-noise correction
        full_tax: Full tax trajectory over all model periods
        abatement: [period, region] abatement levels written to the model
        welfare: Total welfare returned by the model run
    """

    tax: np.ndarray
    full_tax: np.ndarray
    abatement: np.ndarray
    welfare: float

    @classmethod
    def build(cls, tax: Any, full_tax: Any, abatement: Any, welfare: float) -> "EvaluationResult":
        """Create a record holding read-only copies of the arrays."""
        return cls(_frozen(tax), _frozen(full_tax), _frozen(abatement), float(welfare))


class ModelRunner:
    """
    Owns all mutation of one RICE+AIR model instance.

    Args:
        model: Model instance implementing the RiceAirModel protocol
        inputs: Settings the model was built with
        n_regions: Number of regions in every [period, region] input
    """

    def __init__(self, model: RiceAirModel, inputs: RiceAirInputs, n_regions: int):
        self.model = model
        self.inputs = inputs
        self.n_regions = n_regions
        self.abatement: Optional[np.ndarray] = None
        self.runs = 0

    @property
    def shape(self) -> tuple[int, int]:
        """Shape of every [period, region] model input."""
        return (self.inputs.nsteps, self.n_regions)

    def _configure(self, key: str, value: np.ndarray) -> None:
        component, field = MODEL_FIELDS[key]
        self.model.configure(component, field, value)

    def _read(self, key: str) -> Any:
        component, field = MODEL_FIELDS[key]
        return self.model.read(component, field)

    def set_abatement(self, abatement: Any) -> None:
        """
        Write abatement levels to both components consuming the policy.

        Emissions and air-pollution co-reduction must always see the same
        policy signal.

        Raises:
            ValidationError: If the matrix does not match the model shape
        """
        mu = np.array(abatement, dtype=float)
        if mu.shape != self.shape:
            raise ValidationError(
                f"Abatement matrix has shape {mu.shape}, expected {self.shape}"
            )
        self._configure("miu", mu)
        self._configure("coreduction_miu", mu.copy())
        self.abatement = mu

    def set_cobenefits(self, matrices: dict[str, np.ndarray]) -> None:
        """Write co-benefit inputs (life-years gained, avoided deaths)."""
        for name, matrix in matrices.items():
            self._configure(name, np.array(matrix, dtype=float))

    def disable_cobenefits(self) -> None:
        """Zero out co-benefit inputs to isolate climate-only welfare."""
        self.set_cobenefits({name: np.zeros(self.shape) for name in COBENEFIT_FIELDS})
        logger.debug("Air-quality co-benefits set to zero")

    def run(self) -> None:
        """Execute one full model run with the current inputs."""
        self.model.run()
        self.runs += 1

    def welfare(self) -> float:
        """
        Read total welfare from the last run.

        Raises:
            EvaluationError: If welfare is not a single finite value
        """
        values = np.asarray(self._read("welfare"), dtype=float)
        if values.size != 1:
            raise EvaluationError(
                f"Model run returned welfare with shape {values.shape}, expected a scalar.\n"
                f"Read the model's total welfare, not a per-period series."
            )
        welfare = float(values.reshape(-1)[0])
        if not np.isfinite(welfare):
            raise EvaluationError(f"Model run returned non-finite welfare: {welfare}")
        return welfare

    def industrial_emissions(self) -> np.ndarray:
        """
        Read [period, region] industrial CO2 emissions from the last run.

        Raises:
            EvaluationError: If any emissions value is NaN or infinite
        """
        emissions = np.array(self._read("industrial_emissions"), dtype=float)
        if emissions.ndim == 1:
            emissions = emissions.reshape(-1, 1)
        if not np.all(np.isfinite(emissions)):
            raise EvaluationError(
                f"Model run returned non-finite industrial emissions in periods "
                f"{sorted(set(np.argwhere(~np.isfinite(emissions))[:, 0].tolist()))}"
            )
        return emissions

    def evaluate(self, abatement: Any) -> float:
        """Configure an abatement policy, run the model and return welfare."""
        self.set_abatement(abatement)
        self.run()
        return self.welfare()

    def snapshot(self) -> "ModelRunner":
        """
        Return an independent runner around a deep copy of the model.

        The copy shares no mutable state with this runner, so it can be
        reconfigured and run (e.g. as a no-policy baseline) without touching
        the original instance.
        """
        clone = ModelRunner(copy.deepcopy(self.model), self.inputs, self.n_regions)
        clone.abatement = None if self.abatement is None else self.abatement.copy()
        return clone
