"""
Optimization of the savings rate path.

Searches the decision vector (savings rates of the free time steps) that
maximizes aggregate utility, optionally subject to the cumulative emissions
limit cca <= fosslim. Each configured iteration selects a solver backend by
its `library` key:

- nlopt: NLopt algorithms, by short name ('lbfgs', 'mma', 'sbplx', ...) or
  raw NLopt constant name ('LD_MMA')
- scipy: scipy.optimize.minimize (default method SLSQP)

Both backends use the analytic gradient computed by the model. Iterations
are run in order, each warm-started from the previous optimum.
"""

import time
from dataclasses import dataclass

import nlopt
import numpy as np
from scipy.optimize import minimize

from autodiff import DimensionMismatch
from constants import DECISION_LOWER_BOUND, DECISION_UPPER_BOUND, NEG_BIGNUM


NLOPT_ALGORITHMS = {
    'direct': 'GN_DIRECT',
    'direct_l': 'GN_DIRECT_L',
    'direct_lrand': 'GN_DIRECT_L_RAND',
    'direct_noscal': 'GN_DIRECT_NOSCAL',
    'direct_lnoscal': 'GN_DIRECT_L_NOSCAL',
    'direct_lrand_noscal': 'GN_DIRECT_L_RAND_NOSCAL',
    'orig_direct': 'GN_ORIG_DIRECT',
    'orig_direct_l': 'GN_ORIG_DIRECT_L',
    'stogo': 'GD_STOGO',
    'stogo_rand': 'GD_STOGO_RAND',
    'lbfgs': 'LD_LBFGS',
    'praxis': 'LN_PRAXIS',
    'var1': 'LD_VAR1',
    'var2': 'LD_VAR2',
    'tnewton': 'LD_TNEWTON',
    'tnewton_restart': 'LD_TNEWTON_RESTART',
    'tnewton_precond': 'LD_TNEWTON_PRECOND',
    'tnewton_precond_restart': 'LD_TNEWTON_PRECOND_RESTART',
    'crs2_lm': 'GN_CRS2_LM',
    'gn_mlsl': 'GN_MLSL',
    'mlsl': 'GD_MLSL',
    'mlsl_lds': 'GN_MLSL_LDS',
    'mma': 'LD_MMA',
    'cobyla': 'LN_COBYLA',
    'newuoa': 'LN_NEWUOA',
    'newuoa_bound': 'LN_NEWUOA_BOUND',
    'neldermead': 'LN_NELDERMEAD',
    'sbplx': 'LN_SBPLX',
    'bobyqa': 'LN_BOBYQA',
    'isres': 'GN_ISRES',
    'slsqp': 'LD_SLSQP',
    'ccsaq': 'LD_CCSAQ',
    'esch': 'GN_ESCH',
}

TERMINATION_NAMES = {
    1: 'SUCCESS',
    2: 'STOPVAL_REACHED',
    3: 'FTOL_REACHED',
    4: 'XTOL_REACHED',
    5: 'MAXEVAL_REACHED',
    6: 'MAXTIME_REACHED',
    -1: 'FAILURE',
    -2: 'INVALID_ARGS',
    -3: 'OUT_OF_MEMORY',
    -4: 'ROUNDOFF_LIMITED',
    -5: 'FORCED_STOP',
}

TERMINATION_DESCRIPTIONS = {
    1: 'Generic success',
    2: 'Optimization stopped because stopval was reached',
    3: 'Optimization stopped because ftol_rel or ftol_abs was reached',
    4: 'Optimization stopped because xtol_rel or xtol_abs was reached',
    5: 'Optimization stopped because maxeval was reached',
    6: 'Optimization stopped because maxtime was reached',
    -1: 'Generic failure',
    -2: 'Invalid arguments (e.g. lower bounds are bigger than upper bounds or an unknown algorithm)',
    -3: 'Ran out of memory',
    -4: 'Halted because roundoff errors limited progress',
    -5: 'Halted because of a forced termination',
}


def nlopt_algorithm_name(algorithm):
    """
    Resolve a short or raw NLopt algorithm name.

    Raises
    ------
    ValueError
        If the name is neither a short name nor an NLopt constant
    """
    name = NLOPT_ALGORITHMS.get(algorithm, algorithm)
    if not isinstance(name, str) or not hasattr(nlopt, name):
        raise ValueError(f"unknown algorithm '{algorithm}'")
    return name


# =============================================================================
# Objective wrapper
# =============================================================================

class UtilityProblem:
    """
    Objective and constraint of a model as seen by a solver.

    A pass that fails with an arithmetic error (division by zero, overflow,
    math domain error) is reported as an infeasible point: objective
    NEG_BIGNUM with zero gradient. Errors that point at a programming or
    configuration mistake propagate.

    Parameters
    ----------
    model : DICEModel
        Model to evaluate
    limit_cca : bool
        Whether the cumulative emissions constraint is active
    """

    def __init__(self, model, limit_cca=False):
        self.model = model
        self.limit_cca = limit_cca
        self.n = model.width
        self.n_evaluations = 0
        self.n_failed = 0
        self.best_objective = -np.inf
        self.best_x = None
        self._last_x = None
        self._last = None

    def _evaluate(self, x):
        x = np.array(x, dtype=float)
        if self._last_x is not None and np.array_equal(x, self._last_x):
            return self._last

        self.n_evaluations += 1
        failed = False
        try:
            objective, gradient, _ = self.model.evaluate(x)
            constraint, constraint_gradient = self.model.constraint_and_gradient()
        except DimensionMismatch:
            raise
        except (ArithmeticError, ValueError):
            self.n_failed += 1
            failed = True
            objective, gradient = NEG_BIGNUM, np.zeros(self.n)
            constraint, constraint_gradient = -NEG_BIGNUM, np.zeros(self.n)

        feasible = not self.limit_cca or constraint <= 0
        if not failed and feasible and objective > self.best_objective:
            self.best_objective = objective
            self.best_x = x.copy()

        self._last_x = x
        self._last = (objective, gradient, constraint, constraint_gradient)
        return self._last

    def objective(self, x):
        """Aggregate utility and its gradient at x."""
        objective, gradient, _, _ = self._evaluate(x)
        return objective, gradient

    def constraint(self, x):
        """Cumulative emissions minus fosslim (feasible when <= 0) and its gradient at x."""
        _, _, constraint, constraint_gradient = self._evaluate(x)
        return constraint, constraint_gradient


@dataclass
class SolverResult:
    """
    Attributes
    ----------
    x : ndarray
        Optimal decision vector
    objective : float
        Aggregate utility at x
    n_evaluations : int
        Number of evaluation passes
    n_failed : int
        Number of passes reported as infeasible points
    termination_name : str
        Short termination reason
    termination_description : str
        Human-readable termination reason
    elapsed_time : float
        Wall clock seconds
    """
    x: np.ndarray
    objective: float
    n_evaluations: int
    n_failed: int
    termination_name: str
    termination_description: str
    elapsed_time: float


# =============================================================================
# Solver backends
# =============================================================================

SOLVERS = {}


def register_solver(name):
    """Class decorator adding a solver backend to the registry under `name`."""
    def decorator(cls):
        SOLVERS[name] = cls
        return cls
    return decorator


def create_solver(library):
    """
    Raises
    ------
    ValueError
        If no backend is registered under `library`
    """
    if library not in SOLVERS:
        raise ValueError(f"unknown library '{library}'")
    return SOLVERS[library]()


class Solver:
    """Interface of all solver backends."""

    def solve(self, problem, x0, iteration):
        """
        Maximize the problem's objective starting from x0.

        Parameters
        ----------
        problem : UtilityProblem
        x0 : ndarray
            Initial decision vector
        iteration : IterationParameters
            Algorithm and stopping criteria

        Returns
        -------
        SolverResult
        """
        raise NotImplementedError


@register_solver('nlopt')
class NloptSolver(Solver):
    """NLopt backend."""

    default_algorithm = 'lbfgs'

    def solve(self, problem, x0, iteration):
        algorithm = nlopt_algorithm_name(iteration.algorithm or self.default_algorithm)
        n = problem.n

        def objective_wrapper(x, grad):
            objective, gradient = problem.objective(x)
            if grad.size > 0:
                grad[:] = gradient
            return objective

        def constraint_wrapper(x, grad):
            constraint, gradient = problem.constraint(x)
            if grad.size > 0:
                grad[:] = gradient
            return constraint

        opt = nlopt.opt(getattr(nlopt, algorithm), n)
        lower_bounds = np.full(n, DECISION_LOWER_BOUND)
        upper_bounds = np.full(n, DECISION_UPPER_BOUND)
        opt.set_lower_bounds(lower_bounds)
        opt.set_upper_bounds(upper_bounds)
        opt.set_max_objective(objective_wrapper)
        if iteration.limit_cca:
            opt.add_inequality_constraint(constraint_wrapper, 0.1)

        if iteration.utility_precision is not None:
            opt.set_ftol_abs(iteration.utility_precision)
        if iteration.rel_var_precision is not None:
            opt.set_xtol_rel(iteration.rel_var_precision)
        if iteration.maxiter is not None:
            opt.set_maxeval(iteration.maxiter)
        if iteration.timeout is not None:
            opt.set_maxtime(iteration.timeout)

        # Ensure x0 is within bounds (clip to bounds to handle floating point precision issues)
        x0 = np.clip(x0, lower_bounds, upper_bounds)

        start_time = time.time()
        try:
            optimal_x = opt.optimize(x0)
            optimal_f = opt.last_optimum_value()
            termination_code = opt.last_optimize_result()
        except nlopt.RoundoffLimited:
            # NLopt raises instead of returning ROUNDOFF_LIMITED; the best point so far is still usable
            if problem.best_x is None:
                raise
            optimal_x = problem.best_x
            optimal_f = problem.best_objective
            termination_code = -4
        elapsed_time = time.time() - start_time

        return SolverResult(
            x=np.array(optimal_x),
            objective=optimal_f,
            n_evaluations=problem.n_evaluations,
            n_failed=problem.n_failed,
            termination_name=TERMINATION_NAMES.get(termination_code, f'UNKNOWN_{termination_code}'),
            termination_description=TERMINATION_DESCRIPTIONS.get(termination_code, ''),
            elapsed_time=elapsed_time,
        )


@register_solver('scipy')
class ScipySolver(Solver):
    """scipy.optimize.minimize backend, minimizing the negated utility."""

    default_algorithm = 'SLSQP'

    def solve(self, problem, x0, iteration):
        method = iteration.algorithm or self.default_algorithm
        n = problem.n

        def negated_objective(x):
            objective, gradient = problem.objective(x)
            return -objective, -gradient

        constraints = ()
        if iteration.limit_cca:
            # scipy expects fun(x) >= 0
            constraints = ({
                'type': 'ineq',
                'fun': lambda x: -problem.constraint(x)[0],
                'jac': lambda x: -problem.constraint(x)[1],
            },)

        options = {}
        if iteration.maxiter is not None:
            options['maxiter'] = iteration.maxiter

        x0 = np.clip(x0, DECISION_LOWER_BOUND, DECISION_UPPER_BOUND)

        start_time = time.time()
        result = minimize(
            negated_objective,
            x0,
            method=method,
            jac=True,
            bounds=[(DECISION_LOWER_BOUND, DECISION_UPPER_BOUND)] * n,
            constraints=constraints,
            tol=iteration.utility_precision,
            options=options,
        )
        elapsed_time = time.time() - start_time

        return SolverResult(
            x=np.array(result.x),
            objective=-float(result.fun),
            n_evaluations=problem.n_evaluations,
            n_failed=problem.n_failed,
            termination_name='SUCCESS' if result.success else 'FAILURE',
            termination_description=str(result.message),
            elapsed_time=elapsed_time,
        )


# =============================================================================
# Driver
# =============================================================================

def run_optimization(model, optimization_params):
    """
    Run all configured optimization iterations on the model.

    Each iteration (repeated `repeat` times) starts from the model's current
    decision vector and leaves its optimum bound in the model.

    Parameters
    ----------
    model : DICEModel
    optimization_params : OptimizationParameters

    Returns
    -------
    list of dict
        One entry per solver run with the iteration settings and SolverResult
    """
    history = []
    n_iterations = len(optimization_params.iterations)

    for index, iteration in enumerate(optimization_params.iterations, start=1):
        solver = create_solver(iteration.library)
        for repetition in range(1, iteration.repeat + 1):
            print(f"\n{'=' * 80}")
            print(f"  ITERATION {index}/{n_iterations}, RUN {repetition}/{iteration.repeat}")
            print(f"  Library: {iteration.library}, algorithm: {iteration.algorithm or solver.default_algorithm}")
            print(f"  Decision variables: {model.width}, limit_cca: {iteration.limit_cca}")
            print(f"{'=' * 80}\n")

            problem = UtilityProblem(model, limit_cca=iteration.limit_cca)
            result = solver.solve(problem, model.decision_vector(), iteration)

            objective, _, constraint = model.evaluate(result.x)

            print(f"Iteration {index} run {repetition} complete:")
            print(f"  Status: {result.termination_name} ({result.termination_description})")
            print(f"  Evaluations: {result.n_evaluations} ({result.n_failed} failed)")
            print(f"  Time: {result.elapsed_time:.2f} s")
            print(f"Finished with utility = {objective:.10g}")
            print(f"  Cumulative emissions - fosslim: {constraint:.6g}")

            history.append({
                'iteration': index,
                'repetition': repetition,
                'library': iteration.library,
                'algorithm': iteration.algorithm or solver.default_algorithm,
                'limit_cca': iteration.limit_cca,
                'result': result,
                'utility': objective,
                'constraint': constraint,
            })

    return history
