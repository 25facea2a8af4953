"""
Shared pytest fixtures: a deterministic stand-in for the RICE+AIR model.

StubRiceAir honours the configure / run / read contract. Welfare is a
concave function of abatement that peaks at ``target`` per cell when
co-benefits are zero, plus a linear co-benefit term on the co-reduction
abatement. Industrial emissions are baseline emissions times (1 - MIU).
"""

import numpy as np
import pytest

from rice_air_inputs import RiceAirInputs

N_STEPS = 10
N_REGIONS = 3


class StubRiceAir:
    def __init__(
        self,
        inputs,
        n_regions=N_REGIONS,
        target=0.6,
        nan_welfare=False,
        base_emissions=None,
    ):
        self.inputs = inputs
        self.target = target
        self.nan_welfare = nan_welfare
        shape = (inputs.nsteps, n_regions)
        self.params = {
            ("emissions", "MIU"): np.zeros(shape),
            ("air_coreduction", "MIU"): np.zeros(shape),
            ("air_consumption", "lifeyears"): np.full(shape, 0.5),
            ("air_consumption", "avoided_deaths"): np.full(shape, 0.2),
        }
        if base_emissions is None:
            base_emissions = np.linspace(10.0, 20.0, inputs.nsteps)[:, None] * np.ones(n_regions)
        self.base_emissions = np.asarray(base_emissions, dtype=float)
        self.outputs = {}
        self.run_count = 0

    def configure(self, component, field, value):
        self.params[(component, field)] = np.array(value, dtype=float)

    def run(self):
        self.run_count += 1
        miu = self.params[("emissions", "MIU")]
        coreduction = self.params[("air_coreduction", "MIU")]
        cobenefits = (
            self.params[("air_consumption", "lifeyears")]
            + self.params[("air_consumption", "avoided_deaths")]
        )

        welfare = np.sum(miu - miu ** 2 / (2 * self.target)) + np.sum(cobenefits * coreduction)
        self.outputs[("welfare", "welfare")] = np.nan if self.nan_welfare else welfare
        self.outputs[("emissions", "EIND")] = self.base_emissions * (1.0 - miu)

    def read(self, component, field):
        key = (component, field)
        if key in self.outputs:
            return self.outputs[key]
        return self.params[key]


@pytest.fixture
def inputs():
    return RiceAirInputs(nsteps=N_STEPS)


@pytest.fixture
def backstop():
    """[period, region] backstop prices in thousand $/tCO2, declining 5% per period."""
    decline = 1.0 - 0.05 * np.arange(N_STEPS)
    return np.outer(decline, [1.2, 1.0, 0.9])


@pytest.fixture
def ceiling(backstop):
    """Scaled per-period maximum backstop price ($/tCO2)."""
    return backstop.max(axis=1) * 1000.0


@pytest.fixture
def factory():
    """Model factory that records every model it builds."""

    class Factory:
        def __init__(self):
            self.models = []
            self.options = {}

        def __call__(self, inputs):
            model = StubRiceAir(inputs, **self.options)
            self.models.append(model)
            return model

    return Factory()
