"""
Damage modules for the DICE model.

A damage module maps the atmospheric temperature path onto the fraction of
gross output lost to climate damages. Like climate modules they are selected
by configuration key:

    "damage": {"type": "dice", "parameters": {"a1": 0, "a2": 0.00267, "a3": 2}}
"""

from dataclasses import dataclass

from observer import Observable
from timeseries import MemoizedTimeSeries


DAMAGE_MODULES = {}


def register_damage_module(name):
    """Class decorator adding a damage module to the registry under `name`."""
    def decorator(cls):
        DAMAGE_MODULES[name] = cls
        return cls
    return decorator


def create_damage_module(module_type, parameters, global_params, control, climate, check_cycles=False):
    """
    Construct the damage module registered under `module_type`.

    Raises
    ------
    ValueError
        If no module is registered under `module_type`
    """
    if module_type not in DAMAGE_MODULES:
        raise ValueError(f"unknown damage module type '{module_type}'")
    return DAMAGE_MODULES[module_type](parameters, global_params, control, climate,
                                       check_cycles=check_cycles)


class Damage(Observable):
    """Interface of all damage modules."""

    def __init__(self, global_params, control, climate, check_cycles=False):
        super().__init__(global_params.timestep_num, control.variables_num, check_cycles)
        self.global_params = global_params
        self.climate = climate

    def DAMFRAC(self, t):
        """Damages as fraction of gross output."""
        raise NotImplementedError


@dataclass
class DICEDamageParameters:
    """
    Attributes
    ----------
    a1 : float
        Damage intercept
    a2 : float
        Damage quadratic term
    a3 : float
        Damage exponent
    """
    a1: float
    a2: float
    a3: float


@register_damage_module('dice')
class DICEDamage(Damage):
    """Polynomial damage function DAMFRAC = a1*T + a2*T^a3."""

    observed = ('DAMFRAC',)

    def __init__(self, parameters, global_params, control, climate, check_cycles=False):
        super().__init__(global_params, control, climate, check_cycles)
        self.params = DICEDamageParameters(**parameters)
        self.DAMFRAC_series = self.add_series(MemoizedTimeSeries, 'DAMFRAC', self._DAMFRAC)

    def DAMFRAC(self, t):
        return self.DAMFRAC_series.get(t)

    def _DAMFRAC(self, t):
        p = self.params
        T_atm = self.climate.T_atm(t)
        return p.a1 * T_atm + p.a2 * T_atm ** p.a3
