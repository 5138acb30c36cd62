"""
Parameter definitions and configurations for the DICE model.

This module provides:
1. Time-dependent function factories for exogenous schedules
2. Parameter dataclasses for the global, economy, control, optimization and
   output sections of a configuration
3. JSON configuration loading with command-line overrides

All model parameters are required (no defaults) following the fail-fast
philosophy. Only run settings (solver tolerances, limits, output options)
are optional.

Climate and damage parameters are passed through as raw dictionaries and
validated by the module type selected in the configuration (see
climate.py and damage.py).
"""

import json
import numpy as np
from dataclasses import dataclass, field


# =============================================================================
# Time-Dependent Function Factories
# =============================================================================

def create_constant(value):
    """
    Create a constant function that returns the same value for all times.

    Parameters
    ----------
    value : float
        The constant value to return

    Returns
    -------
    callable
        Function f(year) = value
    """
    return lambda year: value


def create_exponential_growth(initial_value, growth_rate, start_year):
    """
    Create an exponential growth/decay function.

    Parameters
    ----------
    initial_value : float
        Value at start_year
    growth_rate : float
        Growth rate (yr^-1). Positive for growth, negative for decay.
    start_year : float
        Calendar year at which the function equals initial_value

    Returns
    -------
    callable
        Function f(year) = initial_value * exp(growth_rate * (year - start_year))
    """
    return lambda year: initial_value * np.exp(growth_rate * (year - start_year))


def create_logistic_growth(L0, L_inf, growth_rate, start_year):
    """
    Create a logistic (S-curve) growth function.

    Parameters
    ----------
    L0 : float
        Initial value at start_year
    L_inf : float
        Asymptotic limit as year -> infinity
    growth_rate : float
        Intrinsic growth rate (yr^-1)
    start_year : float
        Calendar year at which the function equals L0

    Returns
    -------
    callable
        Function f(year) = L_inf / (1 + ((L_inf/L0) - 1) * exp(-growth_rate * (year - start_year)))
    """
    return lambda year: L_inf / (1 + ((L_inf / L0) - 1) * np.exp(-growth_rate * (year - start_year)))


def create_piecewise_linear(time_points, values):
    """
    Create a piecewise linear function from discrete points.

    Parameters
    ----------
    time_points : array_like
        Calendar years (must be monotonically increasing)
    values : array_like
        Function values at each year

    Returns
    -------
    callable
        Function that linearly interpolates between points and is constant
        beyond the first and last point

    Examples
    --------
    Emission control rate ramping up to full abatement in 2150:
    >>> MIU = create_piecewise_linear([2010, 2150], [0.039, 1.0])
    """
    time_points = np.asarray(time_points, dtype=float)
    values = np.asarray(values, dtype=float)
    if time_points.shape != values.shape:
        raise ValueError(f"piecewise_linear needs as many values as time points, "
                         f"got {len(values)} and {len(time_points)}")
    if np.any(np.diff(time_points) <= 0):
        raise ValueError(f"piecewise_linear time points must be increasing: {time_points}")
    return lambda year: float(np.interp(year, time_points, values))


def _create_time_function(func_spec, start_year):
    """
    Create a time-dependent function from JSON specification.

    Parameters
    ----------
    func_spec : dict
        Dictionary with 'type' key and type-specific parameters
    start_year : float
        First simulated calendar year (reference for growth functions)

    Returns
    -------
    callable
        Function of the calendar year
    """
    func_type = func_spec['type']

    if func_type == 'constant':
        return create_constant(func_spec['value'])
    elif func_type == 'exponential_growth':
        return create_exponential_growth(
            func_spec['initial_value'],
            func_spec['growth_rate'],
            start_year
        )
    elif func_type == 'logistic_growth':
        return create_logistic_growth(
            func_spec['L0'],
            func_spec['L_inf'],
            func_spec['growth_rate'],
            start_year
        )
    elif func_type == 'piecewise_linear':
        return create_piecewise_linear(
            func_spec['time_points'],
            func_spec['values']
        )
    raise ValueError(f"unknown time function type '{func_type}'")


# =============================================================================
# Parameter Dataclasses
# =============================================================================

@dataclass
class GlobalParameters:
    """
    Global parameters shared by all model components.

    All parameters are required (no defaults).

    Attributes
    ----------
    dK : float
        Depreciation rate on capital (per year)
    elasmu : float
        Elasticity of marginal utility of consumption
    expcost2 : float
        Exponent of control cost function
    fosslim : float
        Maximum cumulative extraction fossil fuels (GtC)
    gamma : float
        Capital elasticity in production function
    prstp : float
        Initial rate of social time preference per year
    scale1 : float
        Multiplicative scaling coefficient of the aggregate utility
    scale2 : float
        Additive scaling coefficient of the aggregate utility
    cca0 : float
        Cumulative industrial carbon emissions at the start year (GtC)
    timestep_length : int
        Years per time step
    start_year : int
        Calendar year of time index 0
    timestep_num : int
        Number of time steps (simulation horizon)
    """
    dK: float
    elasmu: float
    expcost2: float
    fosslim: float
    gamma: float
    prstp: float
    scale1: float
    scale2: float
    cca0: float
    timestep_length: int
    start_year: int
    timestep_num: int

    def __post_init__(self):
        if self.timestep_num < 1:
            raise ValueError(f"timestep_num must be positive, got {self.timestep_num}")
        if self.timestep_length <= 0:
            raise ValueError(f"timestep_length must be positive, got {self.timestep_length}")

    @property
    def optlrsav(self):
        """Optimal long-run savings rate used for transversality."""
        return (self.dK + 0.004) / (self.dK + 0.004 * self.elasmu + self.prstp) * self.gamma

    def year(self, t):
        """Calendar year of time index t."""
        return self.start_year + self.timestep_length * t

    def years(self):
        return self.start_year + self.timestep_length * np.arange(self.timestep_num)


@dataclass
class EconomyParameters:
    """
    Parameters of one regional economy (DICE-2013R calibration).

    Attributes
    ----------
    pop0 : float
        Initial world population (millions)
    popadj : float
        Growth rate to calibrate to 2050 population projection
    popasym : float
        Asymptotic population (millions)
    a0 : float
        Initial level of total factor productivity
    ga0 : float
        Initial growth rate for TFP per time step
    dela : float
        Decline rate of TFP growth per year
    gsigma1 : float
        Initial growth of sigma (per year)
    dsig : float
        Decline rate of decarbonization (per year)
    e0 : float
        Industrial emissions at start year (GtCO2 per year)
    q0 : float
        Initial world gross output (trill 2005 USD)
    miu0 : float
        Initial emissions control rate used to calibrate sigma
    eland0 : float
        Carbon emissions from land at start year (GtCO2 per year)
    deland : float
        Decline rate of land emissions (per time step)
    pback : float
        Cost of backstop (2005$ per tCO2) at start year
    gback : float
        Initial cost decline of backstop per time step
    K0 : float
        Initial capital value (trill 2005 USD)
    K_lower : float
        Lower bound on capital
    C_lower : float
        Lower bound on consumption
    CPC_lower : float
        Lower bound on per-capita consumption
    """
    pop0: float
    popadj: float
    popasym: float
    a0: float
    ga0: float
    dela: float
    gsigma1: float
    dsig: float
    e0: float
    q0: float
    miu0: float
    eland0: float
    deland: float
    pback: float
    gback: float
    K0: float
    K_lower: float
    C_lower: float
    CPC_lower: float


@dataclass
class ControlParameters:
    """
    Control variable settings.

    Attributes
    ----------
    MIU : callable
        Emission control rate as a function of the calendar year
    s_fix_steps : int
        Number of trailing time steps whose savings rate is held fixed at the
        optimal long-run savings rate instead of being optimized
    """
    MIU: callable
    s_fix_steps: int = 0


@dataclass
class IterationParameters:
    """
    Settings for one optimization iteration.

    Attributes
    ----------
    library : str
        Solver backend ('nlopt' or 'scipy')
    algorithm : str, optional
        Algorithm name within the backend (e.g. 'lbfgs', 'LD_MMA', 'SLSQP')
    utility_precision : float, optional
        Absolute tolerance on the objective
    rel_var_precision : float, optional
        Relative tolerance on the decision variables
    maxiter : int, optional
        Maximum number of objective evaluations
    timeout : float, optional
        Maximum run time in seconds
    limit_cca : bool
        Whether to impose the cumulative emissions constraint (cca <= fosslim)
    repeat : int
        Number of times this iteration is repeated, each warm-started from
        the previous optimum
    """
    library: str
    algorithm: str = None
    utility_precision: float = None
    rel_var_precision: float = None
    maxiter: int = None
    timeout: float = None
    limit_cca: bool = False
    repeat: int = 1


@dataclass
class OptimizationParameters:
    """
    Ordered list of optimization iterations. Empty means a single forward
    evaluation with the configured (or injected) savings rates.
    """
    iterations: list = field(default_factory=list)


@dataclass
class OutputParameters:
    """
    Attributes
    ----------
    type : str
        Output format ('csv')
    columns : list of str, optional
        Quantities to write, in order ('t' and 'year' are always available).
        None writes every quantity.
    plots : bool
        Whether to also write a PDF with time series plots
    """
    type: str
    columns: list = None
    plots: bool = True


@dataclass
class ModelConfiguration:
    """
    Complete model configuration bundling all parameters.

    Attributes
    ----------
    run_name : str
        Name for this run (used for output directory naming)
    global_params : GlobalParameters
        Parameters shared by all components
    climate_type : str
        Key of the climate module in the climate module registry
    climate_parameters : dict
        Raw parameters for the climate module
    damage_type : str
        Key of the damage module in the damage module registry
    damage_parameters : dict
        Raw parameters for the damage module
    economies : list of EconomyParameters
        One entry per region
    control : ControlParameters
        Control variable settings
    optimization : OptimizationParameters
        Optimization iterations
    control_input : dict, optional
        Quantity name -> input specification ({format, filename, column})
    output : OutputParameters, optional
        Output settings; None disables output
    debug : bool
        Enables the cyclic dependency guard on every series
    """
    run_name: str
    global_params: GlobalParameters
    climate_type: str
    climate_parameters: dict
    damage_type: str
    damage_parameters: dict
    economies: list
    control: ControlParameters
    optimization: OptimizationParameters
    control_input: dict = None
    output: OutputParameters = None
    debug: bool = False


# =============================================================================
# Command-Line Overrides
# =============================================================================

def parse_overrides(args):
    """
    Parse command-line overrides of the form --a.b.c value.

    Parameters
    ----------
    args : list of str
        Arguments following the configuration file name

    Returns
    -------
    dict
        Dotted key -> value. Values are parsed as JSON when possible
        (numbers, booleans, lists), otherwise kept as strings.

    Examples
    --------
    >>> parse_overrides(['--run_name', 'test', '--parameters.timestep_num', '20'])
    {'run_name': 'test', 'parameters.timestep_num': 20}
    """
    if len(args) % 2 != 0:
        raise ValueError(f"overrides must come in '--key value' pairs, got {args}")

    overrides = {}
    for key, raw_value in zip(args[::2], args[1::2]):
        if not key.startswith('--'):
            raise ValueError(f"override key must start with '--', got '{key}'")
        try:
            value = json.loads(raw_value)
        except json.JSONDecodeError:
            value = raw_value
        overrides[key[2:]] = value
    return overrides


def apply_overrides(config_data, overrides):
    """
    Apply dotted-key overrides to raw configuration data in place.

    Integer path components index into lists, e.g.
    'optimization.iterations.0.maxiter'.
    """
    for dotted_key, value in overrides.items():
        keys = dotted_key.split('.')
        node = config_data
        for key in keys[:-1]:
            node = node[int(key)] if isinstance(node, list) else node.setdefault(key, {})
        last = keys[-1]
        if isinstance(node, list):
            node[int(last)] = value
        else:
            node[last] = value
    return config_data


# =============================================================================
# Configuration Loading from JSON
# =============================================================================

def _create_module_spec(node, section):
    if 'type' not in node:
        raise ValueError(f"'{section}' section needs a 'type'")
    return node['type'], dict(node['parameters'])


def configuration_from_dict(config_data):
    """
    Build a ModelConfiguration from raw (already parsed) configuration data.

    See load_configuration() for the expected layout.
    """
    global_params = GlobalParameters(**config_data['parameters'])

    climate_type, climate_parameters = _create_module_spec(config_data['climate'], 'climate')
    damage_type, damage_parameters = _create_module_spec(config_data['damage'], 'damage')

    economies = [EconomyParameters(**region['economy']) for region in config_data['regions']]

    control_data = config_data['control']
    control = ControlParameters(
        MIU=_create_time_function(control_data['MIU'], global_params.start_year),
        s_fix_steps=control_data.get('s_fix_steps', 0),
    )

    optimization_data = config_data.get('optimization', {})
    optimization = OptimizationParameters(
        iterations=[IterationParameters(**it) for it in optimization_data.get('iterations', [])]
    )

    output = None
    if 'output' in config_data:
        output = OutputParameters(**config_data['output'])

    return ModelConfiguration(
        run_name=config_data['run_name'],
        global_params=global_params,
        climate_type=climate_type,
        climate_parameters=climate_parameters,
        damage_type=damage_type,
        damage_parameters=damage_parameters,
        economies=economies,
        control=control,
        optimization=optimization,
        control_input=config_data.get('control_input'),
        output=output,
        debug=config_data.get('debug', False),
    )


def load_configuration(config_path, overrides=None):
    """
    Load model configuration from JSON file.

    Parameters
    ----------
    config_path : str
        Path to JSON configuration file
    overrides : dict, optional
        Dotted key -> value replacements applied before validation
        (see parse_overrides())

    Returns
    -------
    ModelConfiguration
        Complete model configuration loaded from file

    Notes
    -----
    The JSON file must contain:
    - run_name: string identifier for this run
    - parameters: dict with all GlobalParameters fields
    - climate: {type, parameters} for the climate module
    - damage: {type, parameters} for the damage module
    - regions: list of {economy: dict with all EconomyParameters fields}
    - control: {MIU: time function spec, s_fix_steps (optional)}

    Optional sections:
    - optimization: {iterations: list of IterationParameters dicts}
    - control_input: {name: {format, filename, column}}
    - output: OutputParameters dict
    - debug: bool

    See config_baseline.json for an example.
    """
    with open(config_path, 'r') as f:
        config_data = json.load(f)

    if overrides:
        apply_overrides(config_data, overrides)

    return configuration_from_dict(config_data)
