"""
Control variables of the DICE model.

The savings rate s(t) is the decision variable searched by the optimizer:
the first `variables_num` time steps are bound into the model as autodiff
variables (one-hot gradients), the remaining `s_fix_steps` trailing steps are
held at their stored values as constants. The emission control rate MIU(t)
follows an exogenous schedule.

Both series are storage-backed and can be overwritten with external data
(see Observable.inject).
"""

import numpy as np

from autodiff import DimensionMismatch, constant, variable
from observer import Observable


class Control(Observable):
    """
    Savings rate and emission control rate over the simulation horizon.

    Parameters
    ----------
    global_params : GlobalParameters
        Global model parameters
    control_params : ControlParameters
        MIU schedule and number of fixed trailing savings rates
    """

    observed = ('s', 'MIU')

    def __init__(self, global_params, control_params):
        horizon = global_params.timestep_num
        variables_num = horizon - control_params.s_fix_steps
        if not 0 < variables_num <= horizon:
            raise ValueError(
                f"s_fix_steps = {control_params.s_fix_steps} leaves no decision variables "
                f"for a horizon of {horizon} time steps"
            )
        super().__init__(horizon, variables_num)
        self.variables_num = variables_num

        self.s_values = self.add_storage('s', np.full(horizon, global_params.optlrsav))
        self.MIU_values = self.add_storage(
            'MIU', [control_params.MIU(year) for year in global_params.years()]
        )

    # Savings rate (fraction of net output invested)
    def s(self, t):
        self.check_time(t)
        if t < self.variables_num:
            return variable(self.width, t, self.s_values[t])
        return constant(self.width, self.s_values[t])

    # Emission control rate
    def MIU(self, t):
        self.check_time(t)
        return constant(self.width, self.MIU_values[t])

    def decision_vector(self):
        return self.s_values[:self.variables_num].copy()

    def set_decision_vector(self, x):
        """
        Bind a decision vector into the savings rates.

        Raises
        ------
        DimensionMismatch
            If x does not have exactly variables_num entries
        """
        x = np.asarray(x, dtype=float)
        if x.shape != (self.variables_num,):
            raise DimensionMismatch(
                f"decision vector needs {self.variables_num} entries, got shape {x.shape}"
            )
        self.s_values[:self.variables_num] = x
