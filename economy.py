"""
Regional economy of the DICE model (DICE-2013R).

Exogenous paths (population, productivity, carbon intensity, backstop price,
land emissions, discount factor) are computed once at construction and kept
as plain float arrays. They do not depend on the decision variables and can
be overwritten with external data.

Endogenous quantities follow the DICE production and savings equations and
are memoized series:

    Y_gross   = A * (L/1000)^(1-gamma) * K^gamma
    DAMAGES   = Y_gross * DAMFRAC
    Y_net     = Y_gross * (1 - DAMFRAC)
    ABATECOST = Y_gross * cost1 * MIU^expcost2
    Y         = Y_net - ABATECOST
    I         = s * Y
    C         = Y - I
    CPC       = 1000 * C / L
    K(t)      = (1-dK)^tstep * K(t-1) + tstep * I(t-1)
    E_ind     = sigma * Y_gross * (1 - MIU)
    E         = E_ind + E_land
    periodu   = (CPC^(1-elasmu) - 1) / (1 - elasmu) - 1
    utility   = tstep * periodu * L * rr
"""

import numpy as np

from autodiff import constant, log
from constants import EPSILON
from observer import Observable
from timeseries import BackwardLookingTimeSeries, LowerBounded, MemoizedTimeSeries


class Economy(Observable):
    """
    Economy of one region.

    Parameters
    ----------
    params : EconomyParameters
        Regional economic parameters
    global_params : GlobalParameters
        Global model parameters
    control : Control
        Savings rate s(t) and emission control rate MIU(t)
    damage : Damage
        Source of the damage fraction DAMFRAC(t)
    check_cycles : bool, optional
        Enables the cyclic dependency guard on all series
    """

    observed = (
        'L', 'A', 'sigma', 'pbacktime', 'cost1', 'E_land', 'rr',
        'K', 'Y_gross', 'DAMAGES', 'Y_net', 'ABATECOST', 'Y', 'I', 'C', 'CPC',
        'E_ind', 'periodu', 'utility',
    )

    def __init__(self, params, global_params, control, damage, check_cycles=False):
        super().__init__(global_params.timestep_num, control.variables_num, check_cycles)
        self.params = params
        self.global_params = global_params
        self.control = control
        self.damage = damage

        self._initialize_exogenous()

        self.K_series = self.add_series(
            BackwardLookingTimeSeries, 'K', constant(self.width, params.K0), self._K_step,
            bound=LowerBounded(params.K_lower))
        self.Y_gross_series = self.add_series(MemoizedTimeSeries, 'Y_gross', self._Y_gross)
        self.DAMAGES_series = self.add_series(MemoizedTimeSeries, 'DAMAGES', self._DAMAGES)
        self.Y_net_series = self.add_series(MemoizedTimeSeries, 'Y_net', self._Y_net)
        self.ABATECOST_series = self.add_series(MemoizedTimeSeries, 'ABATECOST', self._ABATECOST)
        self.Y_series = self.add_series(MemoizedTimeSeries, 'Y', self._Y)
        self.I_series = self.add_series(MemoizedTimeSeries, 'I', self._I)
        self.C_series = self.add_series(
            MemoizedTimeSeries, 'C', self._C, bound=LowerBounded(params.C_lower))
        self.CPC_series = self.add_series(
            MemoizedTimeSeries, 'CPC', self._CPC, bound=LowerBounded(params.CPC_lower))
        self.E_ind_series = self.add_series(MemoizedTimeSeries, 'E_ind', self._E_ind)
        self.periodu_series = self.add_series(MemoizedTimeSeries, 'periodu', self._periodu)
        self.utility_series = self.add_series(MemoizedTimeSeries, 'utility', self._utility)

    def _initialize_exogenous(self):
        """Compute the exogenous paths over the whole horizon."""
        p = self.params
        g = self.global_params
        n = g.timestep_num
        dt = g.timestep_length
        t = np.arange(n)

        L = np.empty(n)
        A = np.empty(n)
        gsig = np.empty(n)
        sigma = np.empty(n)
        L[0] = p.pop0
        A[0] = p.a0
        gsig[0] = p.gsigma1
        sigma[0] = p.e0 / (p.q0 * (1 - p.miu0))
        ga = p.ga0 * np.exp(-p.dela * dt * t)
        for i in range(1, n):
            L[i] = L[i - 1] * (p.popasym / L[i - 1]) ** p.popadj
            A[i] = A[i - 1] / (1 - ga[i - 1])
            gsig[i] = gsig[i - 1] * (1 + p.dsig) ** dt
            sigma[i] = sigma[i - 1] * np.exp(gsig[i - 1] * dt)

        pbacktime = p.pback * (1 - p.gback) ** t

        self.L_values = self.add_storage('L', L)
        self.A_values = self.add_storage('A', A)
        self.sigma_values = self.add_storage('sigma', sigma)
        self.pbacktime_values = self.add_storage('pbacktime', pbacktime)
        self.cost1_values = self.add_storage('cost1', pbacktime * sigma / g.expcost2 / 1000)
        self.E_land_values = self.add_storage('E_land', p.eland0 * (1 - p.deland) ** t)
        self.rr_values = self.add_storage('rr', 1 / (1 + g.prstp) ** (dt * t))

    # -------------------------------------------------------------------------
    # Exogenous quantities
    # -------------------------------------------------------------------------

    # Population and labor (millions)
    def L(self, t):
        self.check_time(t)
        return self.L_values[t]

    # Total factor productivity
    def A(self, t):
        self.check_time(t)
        return self.A_values[t]

    # CO2-equivalent-emissions output ratio
    def sigma(self, t):
        self.check_time(t)
        return self.sigma_values[t]

    # Backstop price (2005$ per tCO2)
    def pbacktime(self, t):
        self.check_time(t)
        return self.pbacktime_values[t]

    # Adjusted cost for backstop
    def cost1(self, t):
        self.check_time(t)
        return self.cost1_values[t]

    # Emissions from deforestation (GtCO2 per year)
    def E_land(self, t):
        self.check_time(t)
        return self.E_land_values[t]

    # Average utility social discount rate
    def rr(self, t):
        self.check_time(t)
        return self.rr_values[t]

    # -------------------------------------------------------------------------
    # Endogenous quantities
    # -------------------------------------------------------------------------

    # Capital stock (trill 2005 USD)
    def K(self, t):
        return self.K_series.get(t)

    def _K_step(self, t, K_last):
        dt = self.global_params.timestep_length
        return (1 - self.global_params.dK) ** dt * K_last + dt * self.I(t - 1)

    # Gross world product including abatement and damages (trill 2005 USD per year)
    def Y_gross(self, t):
        return self.Y_gross_series.get(t)

    def _Y_gross(self, t):
        gamma = self.global_params.gamma
        return self.A(t) * (self.L(t) / 1000) ** (1 - gamma) * self.K(t) ** gamma

    # Damages (trill 2005 USD per year)
    def DAMAGES(self, t):
        return self.DAMAGES_series.get(t)

    def _DAMAGES(self, t):
        return self.Y_gross(t) * self.damage.DAMFRAC(t)

    # Output net of damages (trill 2005 USD per year)
    def Y_net(self, t):
        return self.Y_net_series.get(t)

    def _Y_net(self, t):
        return self.Y_gross(t) * (1 - self.damage.DAMFRAC(t))

    # Cost of emissions reductions (trill 2005 USD per year)
    def ABATECOST(self, t):
        return self.ABATECOST_series.get(t)

    def _ABATECOST(self, t):
        return self.Y_gross(t) * self.cost1(t) * self.control.MIU(t) ** self.global_params.expcost2

    # Gross world product net of abatement and damages (trill 2005 USD per year)
    def Y(self, t):
        return self.Y_series.get(t)

    def _Y(self, t):
        return self.Y_net(t) - self.ABATECOST(t)

    # Investment (trill 2005 USD per year)
    def I(self, t):
        return self.I_series.get(t)

    def _I(self, t):
        return self.control.s(t) * self.Y(t)

    # Consumption (trill 2005 USD per year)
    def C(self, t):
        return self.C_series.get(t)

    def _C(self, t):
        return self.Y(t) - self.I(t)

    # Per capita consumption (thousands 2005 USD per year)
    def CPC(self, t):
        return self.CPC_series.get(t)

    def _CPC(self, t):
        return 1000 * self.C(t) / self.L(t)

    # Industrial emissions (GtCO2 per year)
    def E_ind(self, t):
        return self.E_ind_series.get(t)

    def _E_ind(self, t):
        return self.sigma(t) * self.Y_gross(t) * (1 - self.control.MIU(t))

    # Regional CO2 emissions (GtCO2 per year), summed up in Emissions
    def E(self, t):
        return self.E_ind(t) + self.E_land(t)

    # One period utility function
    def periodu(self, t):
        return self.periodu_series.get(t)

    def _periodu(self, t):
        elasmu = self.global_params.elasmu
        if abs(elasmu - 1) < EPSILON:
            return log(self.CPC(t)) - 1
        return (self.CPC(t) ** (1 - elasmu) - 1) / (1 - elasmu) - 1

    # Period utility, discounted and scaled by population and time step length
    def utility(self, t):
        return self.utility_series.get(t)

    def _utility(self, t):
        return self.global_params.timestep_length * self.periodu(t) * self.L(t) * self.rr(t)
