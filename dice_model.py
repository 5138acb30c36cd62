"""
Evaluation driver of the DICE model.

DICEModel wires the components together and evaluates one full pass:

1. bind the decision vector into the savings rates
2. reset every memoized series
3. force the per-step utility for every time index (backward recursion pulls
   in everything it depends on)
4. reduce to the scalar objective scale1 * sum + scale2

Each pass returns the objective, its gradient with respect to the decision
vector and the cumulative emissions constraint. Errors raised during a pass
propagate unchanged; deciding whether a failed pass is an infeasible point
or a fatal misconfiguration is up to the caller (see optimization.py).

One model instance owns all of its caches. Parallel searches need one
instance per worker.
"""

import numpy as np

from autodiff import constant
from climate import create_climate_module
from constants import CO2_PER_C
from control import Control
from damage import create_damage_module
from economy import Economy
from emissions import Emissions


class DICEModel:
    """
    Coupled climate-economy model.

    Parameters
    ----------
    config : ModelConfiguration
        Complete model configuration

    Raises
    ------
    ValueError
        If no or more than one region is configured, or a module type is unknown
    """

    def __init__(self, config):
        if not config.economies:
            raise ValueError("no economies given")
        if len(config.economies) > 1:
            raise ValueError("multiple regions not supported yet")

        self.config = config
        self.global_params = config.global_params
        check_cycles = config.debug

        self.control = Control(self.global_params, config.control)
        self.emissions = Emissions(self.global_params, self.control, check_cycles)
        self.climate = create_climate_module(
            config.climate_type, config.climate_parameters,
            self.global_params, self.control, self.emissions, check_cycles)
        self.damage = create_damage_module(
            config.damage_type, config.damage_parameters,
            self.global_params, self.control, self.climate, check_cycles)
        self.economies = [
            Economy(params, self.global_params, self.control, self.damage, check_cycles)
            for params in config.economies
        ]
        for economy in self.economies:
            self.emissions.add_economy(economy)

    @property
    def width(self):
        """Number of decision variables."""
        return self.control.variables_num

    @property
    def horizon(self):
        return self.global_params.timestep_num

    def components(self):
        """Components in the order they are offered to observers."""
        return [*self.economies, self.climate, self.damage, self.control, self.emissions]

    def reset(self):
        for component in self.components():
            component.reset()

    def decision_vector(self):
        return self.control.decision_vector()

    def set_decision_vector(self, x):
        self.control.set_decision_vector(x)
        self.reset()

    # -------------------------------------------------------------------------
    # Objective and constraint
    # -------------------------------------------------------------------------

    def utility(self):
        """
        Aggregate utility for the current decision vector.

        Returns
        -------
        Value
            scale1 * sum_t utility(t) + scale2, with gradient
        """
        g = self.global_params
        economy = self.economies[0]
        total = constant(self.width, 0.0)
        for t in range(self.horizon):
            total = total + economy.utility(t)
        return g.scale1 * total + g.scale2

    def cumulative_emissions(self):
        """Cumulative industrial and land carbon emissions (GtC) over the horizon."""
        g = self.global_params
        cca = constant(self.width, g.cca0)
        for t in range(self.horizon):
            cca = cca + g.timestep_length * self.emissions.E(t) / CO2_PER_C
        return cca

    def constraint(self):
        """Cumulative emissions minus fosslim; feasible when <= 0."""
        return self.cumulative_emissions() - self.global_params.fosslim

    def evaluate(self, x):
        """
        Run one evaluation pass.

        Parameters
        ----------
        x : array_like
            Decision vector (savings rates of the free time steps)

        Returns
        -------
        tuple
            (objective, gradient, constraint): objective as float, its
            gradient as a numpy array of length width, constraint as float
        """
        self.set_decision_vector(x)
        objective = self.utility()
        constraint = self.constraint()
        return objective.value, np.array(objective.gradient), constraint.value

    def constraint_and_gradient(self):
        """Constraint value and gradient for the currently bound decision vector."""
        constraint = self.constraint()
        return constraint.value, np.array(constraint.gradient)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def names(self):
        """All quantity names, in observer order."""
        names = []
        for component in self.components():
            names.extend(component.names())
        return names

    def compute_all(self):
        """Fill every cache in time order so later lookups never recurse deeply."""
        self.utility()
        self.cumulative_emissions()

    def observe(self, observer, compute=True):
        """
        Offer every component's quantities to `observer` until one is handled.

        With compute=False the caches are not filled first; callers that look
        up many single values call compute_all() once beforehand.
        """
        if compute:
            self.compute_all()
        for component in self.components():
            if not component.observe(observer):
                return False
        return True

    def query(self, name, t=None):
        """
        Value of quantity `name` at time index t, or its whole series.

        Raises
        ------
        KeyError
            If no component holds `name`
        """
        self.compute_all()
        for component in self.components():
            if name in component.observed:
                return component.query(name, t)
        raise KeyError(f"variable '{name}' not found")

    def inject(self, name, values):
        """
        Overwrite quantity `name` with external data for the whole horizon.

        Raises
        ------
        KeyError
            If no component holds `name`
        ValueError
            If `name` is derived and cannot be overwritten, or values has the
            wrong length
        """
        for component in self.components():
            if not component.inject(name, values):
                self.reset()
                return
        raise KeyError(f"variable '{name}' not found")
