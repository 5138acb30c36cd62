"""
Total CO2 emissions summed over all regional economies.

Emissions sits between the economies and the climate module: the climate
module reads E(t) from here, the economies are attached once they have been
built (they in turn depend on the climate through the damage module).
"""

from autodiff import constant
from observer import Observable
from timeseries import MemoizedTimeSeries


class Emissions(Observable):
    """
    Parameters
    ----------
    global_params : GlobalParameters
    control : Control
    check_cycles : bool, optional
    """

    observed = ('E',)

    def __init__(self, global_params, control, check_cycles=False):
        super().__init__(global_params.timestep_num, control.variables_num, check_cycles)
        self.economies = []
        self.E_series = self.add_series(MemoizedTimeSeries, 'E', self._E)

    def add_economy(self, economy):
        self.economies.append(economy)
        self.reset()

    # Total CO2 emissions (GtCO2 per year)
    def E(self, t):
        return self.E_series.get(t)

    def _E(self, t):
        total = constant(self.width, 0.0)
        for economy in self.economies:
            total = total + economy.E(t)
        return total
