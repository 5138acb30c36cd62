"""
Climate modules for the DICE model.

A climate module turns the emission path into an atmospheric temperature
path. Implementations register themselves under a configuration key and are
selected once when the model is built:

    "climate": {"type": "dice", "parameters": {...}}

The DICE module implements the three-reservoir carbon cycle (atmosphere,
upper ocean/biosphere, lower ocean) and the two-layer temperature model of
DICE-2013R. All stocks are memoized backward-looking series, each stepped
from the previous time step only.
"""

from dataclasses import dataclass

from autodiff import constant, log2
from constants import CO2_PER_C
from observer import Observable
from timeseries import BackwardLookingTimeSeries, Bounded, LowerBounded


CLIMATE_MODULES = {}


def register_climate_module(name):
    """Class decorator adding a climate module to the registry under `name`."""
    def decorator(cls):
        CLIMATE_MODULES[name] = cls
        return cls
    return decorator


def create_climate_module(module_type, parameters, global_params, control, emissions, check_cycles=False):
    """
    Construct the climate module registered under `module_type`.

    Raises
    ------
    ValueError
        If no module is registered under `module_type`
    """
    if module_type not in CLIMATE_MODULES:
        raise ValueError(f"unknown climate module type '{module_type}'")
    return CLIMATE_MODULES[module_type](parameters, global_params, control, emissions,
                                        check_cycles=check_cycles)


class Climate(Observable):
    """
    Interface of all climate modules.

    Parameters
    ----------
    global_params : GlobalParameters
    control : Control
    emissions : Emissions
        Source of total CO2 emissions E(t) (GtCO2 per year)
    """

    def __init__(self, global_params, control, emissions, check_cycles=False):
        super().__init__(global_params.timestep_num, control.variables_num, check_cycles)
        self.global_params = global_params
        self.control = control
        self.emissions = emissions

    def T_atm(self, t):
        """Increase of atmospheric temperature (°C from 1900)."""
        raise NotImplementedError


@dataclass
class DICEClimateParameters:
    """
    Parameters of the DICE climate module.

    Attributes
    ----------
    b12, b23 : float
        Carbon cycle transition matrix coefficients
    c1 : float
        Climate equation coefficient for upper level
    c3 : float
        Transfer coefficient upper to lower stratum
    c4 : float
        Transfer coefficient for lower level
    fco22x : float
        Forcings of equilibrium CO2 doubling (Wm-2)
    fex0 : float
        Forcings of non-CO2 GHG at start year (Wm-2)
    fex1 : float
        Forcings of non-CO2 GHG from forcoth_end_year on (Wm-2)
    forcoth_end_year : int
        Year at which non-CO2 forcing reaches fex1
    M_atm_eq, M_u_eq, M_l_eq : float
        Equilibrium concentrations in atmosphere, upper and lower strata (GtC)
    M_atm_ref : float
        Reference atmospheric concentration for radiative forcing (GtC)
    t2xco2 : float
        Equilibrium temperature impact (°C per doubling CO2)
    M_atm0, M_u0, M_l0 : float
        Initial concentrations (GtC)
    M_atm_lower, M_u_lower, M_l_lower : float
        Lower bounds on concentrations (GtC)
    T_ocean0, T_ocean_lower, T_ocean_upper : float
        Initial value and bounds of the lower ocean temperature (°C)
    T_atm0, T_atm_lower, T_atm_upper : float
        Initial value and bounds of the atmospheric temperature (°C)
    """
    b12: float
    b23: float
    c1: float
    c3: float
    c4: float
    fco22x: float
    fex0: float
    fex1: float
    forcoth_end_year: int
    M_atm_eq: float
    M_u_eq: float
    M_l_eq: float
    M_atm_ref: float
    t2xco2: float
    M_atm0: float
    M_u0: float
    M_l0: float
    M_atm_lower: float
    M_u_lower: float
    M_l_lower: float
    T_ocean0: float
    T_ocean_lower: float
    T_ocean_upper: float
    T_atm0: float
    T_atm_lower: float
    T_atm_upper: float


@register_climate_module('dice')
class DICEClimate(Climate):
    """DICE-2013R carbon cycle and temperature model."""

    observed = ('M_atm', 'M_u', 'M_l', 'T_ocean', 'T_atm', 'force', 'forcoth')

    def __init__(self, parameters, global_params, control, emissions, check_cycles=False):
        super().__init__(global_params, control, emissions, check_cycles)
        p = DICEClimateParameters(**parameters)
        self.params = p

        # Carbon cycle transition matrix
        self.b11 = 1 - p.b12
        self.b21 = p.b12 * p.M_atm_eq / p.M_u_eq
        self.b22 = 1 - self.b21 - p.b23
        self.b32 = p.b23 * p.M_u_eq / p.M_l_eq
        self.b33 = 1 - self.b32

        n = self.width
        self.M_atm_series = self.add_series(
            BackwardLookingTimeSeries, 'M_atm', constant(n, p.M_atm0), self._M_atm_step,
            bound=LowerBounded(p.M_atm_lower))
        self.M_u_series = self.add_series(
            BackwardLookingTimeSeries, 'M_u', constant(n, p.M_u0), self._M_u_step,
            bound=LowerBounded(p.M_u_lower))
        self.M_l_series = self.add_series(
            BackwardLookingTimeSeries, 'M_l', constant(n, p.M_l0), self._M_l_step,
            bound=LowerBounded(p.M_l_lower))
        self.T_ocean_series = self.add_series(
            BackwardLookingTimeSeries, 'T_ocean', constant(n, p.T_ocean0), self._T_ocean_step,
            bound=Bounded(p.T_ocean_lower, p.T_ocean_upper))
        self.T_atm_series = self.add_series(
            BackwardLookingTimeSeries, 'T_atm', constant(n, p.T_atm0), self._T_atm_step,
            bound=Bounded(p.T_atm_lower, p.T_atm_upper))

    # Carbon concentration in atmosphere (GtC)
    def M_atm(self, t):
        return self.M_atm_series.get(t)

    def _M_atm_step(self, t, M_atm_last):
        dt = self.global_params.timestep_length
        return M_atm_last * self.b11 + self.M_u(t - 1) * self.b21 + self.emissions.E(t - 1) * (dt / CO2_PER_C)

    # Carbon concentration in shallow oceans (GtC)
    def M_u(self, t):
        return self.M_u_series.get(t)

    def _M_u_step(self, t, M_u_last):
        return self.M_atm(t - 1) * self.params.b12 + M_u_last * self.b22 + self.M_l(t - 1) * self.b32

    # Carbon concentration in lower oceans (GtC)
    def M_l(self, t):
        return self.M_l_series.get(t)

    def _M_l_step(self, t, M_l_last):
        return M_l_last * self.b33 + self.M_u(t - 1) * self.params.b23

    # Increase temperature of lower oceans (°C from 1900)
    def T_ocean(self, t):
        return self.T_ocean_series.get(t)

    def _T_ocean_step(self, t, T_ocean_last):
        return T_ocean_last + self.params.c4 * (self.T_atm(t - 1) - T_ocean_last)

    # Exogenous forcing for other greenhouse gases (Wm-2)
    def forcoth(self, t):
        self.check_time(t)
        p = self.params
        year = self.global_params.year(t)
        if year > p.forcoth_end_year:
            return p.fex1
        start_year = self.global_params.start_year
        return p.fex0 + (p.fex1 - p.fex0) * (year - start_year) / (p.forcoth_end_year - start_year)

    # Increase in radiative forcing (Wm-2 from 1900)
    def force(self, t):
        p = self.params
        return p.fco22x * log2(self.M_atm(t) / p.M_atm_ref) + self.forcoth(t)

    # Increase temperature of atmosphere (°C from 1900)
    def T_atm(self, t):
        return self.T_atm_series.get(t)

    def _T_atm_step(self, t, T_atm_last):
        p = self.params
        return T_atm_last + p.c1 * (self.force(t) - (p.fco22x / p.t2xco2) * T_atm_last
                                    - p.c3 * (T_atm_last - self.T_ocean(t - 1)))
