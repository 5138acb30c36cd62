"""
Tests for the Savings Rate Optimization

Validates the solver layer on small concave problems with known optima and
on a shortened DICE run:

1. Solver registry and NLopt algorithm names
2. UtilityProblem caching and treatment of failed evaluation passes
3. NLopt and scipy backends find the optimum of a bounded quadratic,
   with and without the linear constraint
4. run_optimization() never ends below the utility of its starting point

Usage:
    python test_optimization.py
"""

from pathlib import Path

import numpy as np

from autodiff import DimensionMismatch
from constants import NEG_BIGNUM
from dice_model import DICEModel
from optimization import (
    SOLVERS, TERMINATION_NAMES, UtilityProblem, create_solver, nlopt_algorithm_name,
    run_optimization,
)
from parameters import IterationParameters, OptimizationParameters, load_configuration

CONFIG_PATH = Path(__file__).parent / 'config_baseline.json'


class QuadraticModel:
    """
    Stand-in for DICEModel with objective -sum (x - target)^2 and
    constraint sum(x) - 1.
    """

    def __init__(self, target, x0):
        self.target = np.asarray(target, dtype=float)
        self.width = len(self.target)
        self.x = np.asarray(x0, dtype=float)
        self.calls = 0

    def decision_vector(self):
        return self.x.copy()

    def evaluate(self, x):
        self.calls += 1
        self.x = np.asarray(x, dtype=float)
        diff = self.x - self.target
        return -np.sum(diff ** 2), -2 * diff, np.sum(self.x) - 1

    def constraint_and_gradient(self):
        return np.sum(self.x) - 1, np.ones(self.width)


class FailingModel(QuadraticModel):
    """Raises `error` on every evaluation pass."""

    def __init__(self, error):
        super().__init__([0.5, 0.5], [0.1, 0.1])
        self.error = error

    def evaluate(self, x):
        raise self.error


def test_solver_registry():
    """Both backends are registered; unknown libraries and algorithms are rejected."""
    print("=" * 80)
    print("Solver registry")
    print("=" * 80)

    if {'nlopt', 'scipy'} <= set(SOLVERS):
        print(f"  ✓ PASS: registered backends {sorted(SOLVERS)}")
    else:
        raise AssertionError(f"missing backends in {sorted(SOLVERS)}")

    for library in ('pagmo', 'borg'):
        try:
            create_solver(library)
        except ValueError:
            print(f"  ✓ PASS: unknown library '{library}' rejected")
        else:
            raise AssertionError(f"create_solver('{library}') should raise ValueError")

    if nlopt_algorithm_name('mma') == 'LD_MMA' and nlopt_algorithm_name('LD_SLSQP') == 'LD_SLSQP':
        print("  ✓ PASS: short and raw algorithm names resolve")
    else:
        raise AssertionError("algorithm name resolution failed")

    try:
        nlopt_algorithm_name('gradient_ascent')
    except ValueError:
        print("  ✓ PASS: unknown algorithm rejected")
    else:
        raise AssertionError("unknown algorithm should raise ValueError")
    print()


def test_problem_caching():
    """Objective and constraint at the same point share one evaluation pass."""
    model = QuadraticModel([0.2, 0.4], [0.1, 0.1])
    problem = UtilityProblem(model, limit_cca=True)

    f, grad = problem.objective([0.3, 0.3])
    c, c_grad = problem.constraint([0.3, 0.3])
    if model.calls == 1 and problem.n_evaluations == 1:
        print("  ✓ PASS: one pass for objective and constraint at the same x")
    else:
        raise AssertionError(f"expected one evaluation, got {model.calls}")

    if abs(f - (-0.01 - 0.01)) < 1e-15 and np.allclose(grad, [-0.2, 0.2]) and \
            abs(c - (-0.4)) < 1e-15 and np.array_equal(c_grad, [1.0, 1.0]):
        print("  ✓ PASS: objective, constraint and gradients passed through")
    else:
        raise AssertionError(f"unexpected values f={f}, grad={grad}, c={c}")

    problem.objective([0.25, 0.3])
    if model.calls == 2 and np.array_equal(problem.best_x, [0.25, 0.3]):
        print("  ✓ PASS: new point evaluated, best feasible point tracked")
    else:
        raise AssertionError("cache or best point tracking failed")


def test_failed_passes():
    """Arithmetic failures become infeasible points; dimension errors propagate."""
    for error in (ZeroDivisionError("division by zero"), OverflowError("overflow"),
                  ValueError("math domain error")):
        problem = UtilityProblem(FailingModel(error), limit_cca=True)
        f, grad = problem.objective([0.1, 0.1])
        c, c_grad = problem.constraint([0.1, 0.1])
        if f == NEG_BIGNUM and not grad.any() and c == -NEG_BIGNUM and not c_grad.any() \
                and problem.n_failed == 1 and problem.best_x is None:
            print(f"  ✓ PASS: {type(error).__name__} reported as infeasible point")
        else:
            raise AssertionError(f"{type(error).__name__} not converted to NEG_BIGNUM")

    problem = UtilityProblem(FailingModel(ZeroDivisionError("division by zero")), limit_cca=False)
    problem.objective([0.1, 0.1])
    if problem.best_x is None and problem.best_objective == -np.inf:
        print("  ✓ PASS: failed pass never recorded as best point without the constraint")
    else:
        raise AssertionError(f"failed pass recorded as best point {problem.best_x}")

    problem = UtilityProblem(FailingModel(DimensionMismatch("width 3 vs 2")))
    try:
        problem.objective([0.1, 0.1])
    except DimensionMismatch:
        print("  ✓ PASS: DimensionMismatch propagates")
    else:
        raise AssertionError("DimensionMismatch should propagate")


def solve(library, algorithm, model, limit_cca):
    iteration = IterationParameters(
        library=library, algorithm=algorithm, utility_precision=1e-14,
        rel_var_precision=1e-12, maxiter=500, limit_cca=limit_cca)
    problem = UtilityProblem(model, limit_cca=limit_cca)
    return create_solver(library).solve(problem, model.decision_vector(), iteration)


def test_backends_on_quadratic():
    """Both backends find the bounded and the constrained optimum of a quadratic."""
    print("=" * 80)
    print("Backends on a concave quadratic")
    print("=" * 80)

    # Last target component lies above the upper bound of 1
    unconstrained = [0.2, 0.5, 1.3]
    for library, algorithm in [('nlopt', 'lbfgs'), ('nlopt', 'slsqp'), ('scipy', None), ('scipy', 'L-BFGS-B')]:
        result = solve(library, algorithm, QuadraticModel(unconstrained, [0.5, 0.5, 0.5]), False)
        error = np.max(np.abs(result.x - [0.2, 0.5, 1.0]))
        print(f"  {library}/{algorithm}: x = {np.round(result.x, 6)}, "
              f"{result.n_evaluations} evaluations, {result.termination_name}")
        if error < 1e-4 and abs(result.objective - (-0.09)) < 1e-6:
            print("  ✓ PASS: bounded optimum found")
        else:
            raise AssertionError(f"{library}/{algorithm} missed the optimum by {error:.2e}")

    # sum(x) <= 1 binds: optimum at the projection onto the simplex face.
    # NLopt accepts constraint violations up to 0.1, i.e. 0.1 / 3 per component here.
    target = [0.6, 0.6, 0.6]
    for library, algorithm, tolerance in [('scipy', 'SLSQP', 1e-5), ('nlopt', 'slsqp', 0.1 / 3 + 1e-4)]:
        result = solve(library, algorithm, QuadraticModel(target, [0.1, 0.1, 0.1]), True)
        error = np.max(np.abs(result.x - 1 / 3))
        print(f"  {library}/{algorithm} with constraint: x = {np.round(result.x, 6)}")
        if error < tolerance:
            print("  ✓ PASS: constrained optimum found")
        else:
            raise AssertionError(f"{library}/{algorithm} constrained optimum off by {error:.2e}")

    if result.termination_name in TERMINATION_NAMES.values():
        print(f"  ✓ PASS: termination reported as {result.termination_name}")
    else:
        raise AssertionError(f"unexpected termination name {result.termination_name}")
    print()


def test_run_optimization_on_dice():
    """Short DICE optimization runs never end below the starting utility."""
    print("=" * 80)
    print("run_optimization() on a 20-step DICE model")
    print("=" * 80)

    config = load_configuration(CONFIG_PATH, {'parameters.timestep_num': 20, 'control.s_fix_steps': 5})
    model = DICEModel(config)
    start_utility, _, _ = model.evaluate(model.decision_vector())

    optimization = OptimizationParameters(iterations=[
        IterationParameters(library='nlopt', algorithm='lbfgs', utility_precision=1e-8, maxiter=20),
        IterationParameters(library='nlopt', algorithm='mma', utility_precision=1e-8, maxiter=10,
                            limit_cca=True, repeat=2),
    ])
    history = run_optimization(model, optimization)

    if [(h['iteration'], h['repetition']) for h in history] == [(1, 1), (2, 1), (2, 2)]:
        print("  ✓ PASS: one history entry per iteration run")
    else:
        raise AssertionError(f"unexpected history {[(h['iteration'], h['repetition']) for h in history]}")

    previous = start_utility
    for entry in history:
        utility = entry['utility']
        print(f"  iteration {entry['iteration']}.{entry['repetition']} ({entry['algorithm']}): "
              f"utility {previous:.10g} -> {utility:.10g}")
        if utility < previous - 1e-9 * abs(previous):
            raise AssertionError("optimization decreased the utility")
        if not np.all((entry['result'].x >= 0) & (entry['result'].x <= 1)):
            raise AssertionError("savings rates left [0, 1]")
        previous = utility
    print("  ✓ PASS: utility non-decreasing, savings rates within bounds")

    if np.array_equal(model.decision_vector(), history[-1]['result'].x) and \
            model.utility().value == history[-1]['utility'] and history[-1]['constraint'] <= 0:
        print("  ✓ PASS: final optimum bound in the model and within fosslim")
    else:
        raise AssertionError("final optimum not bound in the model")
    print()


def run_all_optimization_tests():
    """Run all optimization tests."""
    print("\n" + "=" * 80)
    print("OPTIMIZATION VALIDATION")
    print("=" * 80)
    print()

    try:
        test_solver_registry()
        test_problem_caching()
        test_failed_passes()
        test_backends_on_quadratic()
        test_run_optimization_on_dice()

        print("=" * 80)
        print("ALL OPTIMIZATION TESTS PASSED")
        print("=" * 80)

    except AssertionError as e:
        print("=" * 80)
        print(f"OPTIMIZATION TEST FAILED: {e}")
        print("=" * 80)
        raise


if __name__ == "__main__":
    run_all_optimization_tests()
