"""
Configuration file for RICE+AIR Carbon Tax Optimization.

This module centralizes all configuration settings, constants, and model
component names used across the optimization pipeline. This ensures consistency
and makes it easy to update settings in one place.
"""


# ============================================================================
# Model Dimensions
# ============================================================================

# Number of ten-year model time periods in RICE+AIR
N_STEPS = 60

# Period 1 is fixed at a $0 tax, so at most 59 periods can be optimized
MAX_OPTIMIZED_PERIODS = N_STEPS - 1

# First model year and length of each time period (years)
START_YEAR = 2005
TIMESTEP_YEARS = 10

# RICE2010 regions (column order of every [period, region] table)
REGIONS = [
    "US",
    "EU",
    "Japan",
    "Russia",
    "Eurasia",
    "China",
    "India",
    "MidEast",
    "Africa",
    "LatAm",
    "OHI",
    "OthAs",
]

# Shared socioeconomic pathways available for the co-reduction relationship
SSP_SCENARIOS = ["SSP1", "SSP2", "SSP3", "SSP4", "SSP5"]

# ============================================================================
# Model Component / Field Names
# ============================================================================
# (component, field) pairs read from or written to the coupled model.

MODEL_FIELDS = {
    "miu": ("emissions", "MIU"),
    "coreduction_miu": ("air_coreduction", "MIU"),
    "lifeyears": ("air_consumption", "lifeyears"),
    "avoided_deaths": ("air_consumption", "avoided_deaths"),
    "welfare": ("welfare", "welfare"),
    "industrial_emissions": ("emissions", "EIND"),
}

# Co-benefit inputs zeroed out for the climate-only case
COBENEFIT_FIELDS = ["lifeyears", "avoided_deaths"]

# ============================================================================
# Abatement Cost Settings
# ============================================================================

# RICE2010 backstop prices are stored in thousands of $ per tonne
BACKSTOP_SCALE = 1000.0

# Exponent on the abatement cost function (RICE2010 value)
THETA2 = 2.8

# Decimal digits used when checking if a tax has hit the backstop price
ROUNDING_DIGITS = 2

# ============================================================================
# Optimization Settings
# ============================================================================

# Algorithms accepted by the optimization driver
# Keys are user-facing ids, values are the scipy.optimize method names
SUPPORTED_ALGORITHMS = {
    "powell": "Powell",
    "nelder-mead": "Nelder-Mead",
    "l-bfgs-b": "L-BFGS-B",
    "differential_evolution": "differential_evolution",
}

# Iteration limit passed to the optimizer (the stop time usually binds first)
DEFAULT_MAX_ITERATIONS = 10000

# Welfare assigned to a trial whose model run produced non-finite output.
# Must be finite so the optimizer's comparisons stay well defined.
FAILED_EVALUATION_PENALTY = -1e30

# ============================================================================
# Display Formatting
# ============================================================================

# Width for console output formatting
DISPLAY_WIDTH = 80
