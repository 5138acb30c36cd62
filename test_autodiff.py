"""
Unit Tests for Forward-Mode Automatic Differentiation

This module validates the Value arithmetic against analytical derivatives and
against high-precision numerical differentiation with mpmath.

Test Cases:
1. Sum, product and quotient rules on two variables
2. Elementary functions (log, log2, exp, sqrt, pow) against mpmath.diff
3. Division by zero and gradient width mismatches raise
4. Comparisons look at values only
5. maximum/minimum carry the gradient of the selected operand (first on ties)
6. clamp returns the bound's own gradient

Usage:
    python test_autodiff.py
"""

import mpmath as mp
import numpy as np

from autodiff import (
    DimensionMismatch, DivisionByZero, Value, clamp, constant, exp, log, log2,
    maximum, minimum, sqrt, variable,
)
from constants import EPSILON

# High precision for the reference derivatives
mp.mp.dps = 50


def check_gradient(label, actual, expected, tolerance=1e-12):
    error = np.max(np.abs(np.asarray(actual) - np.asarray(expected)))
    if error <= tolerance:
        print(f"  ✓ PASS: {label} (max error = {error:.2e})")
    else:
        print(f"  ✗ FAIL: {label}: got {actual}, expected {expected}")
        raise AssertionError(f"{label}: gradient error {error:.2e} exceeds {tolerance:.2e}")


def test_arithmetic_rules():
    """Sum, product and quotient rules for f(x, y) on a width-3 gradient."""
    print("=" * 80)
    print("Arithmetic rules")
    print("=" * 80)

    x = variable(3, 0, 2.0)
    y = variable(3, 1, 5.0)
    c = constant(3, 4.0)

    check_gradient("x + y", (x + y).gradient, [1, 1, 0])
    check_gradient("x - y", (x - y).gradient, [1, -1, 0])
    check_gradient("3 - x", (3 - x).gradient, [-1, 0, 0])
    check_gradient("x * y", (x * y).gradient, [5, 2, 0])
    check_gradient("x / y", (x / y).gradient, [1 / 5, -2 / 25, 0])
    check_gradient("1 / x", (1 / x).gradient, [-1 / 4, 0, 0])
    check_gradient("c * x", (c * x).gradient, [4, 0, 0])
    check_gradient("-x", (-x).gradient, [-1, 0, 0])

    if (x * y).value == 10.0 and (x / y).value == 0.4:
        print("  ✓ PASS: values")
    else:
        raise AssertionError("arithmetic values are wrong")

    if not c.gradient.flags.writeable:
        print("  ✓ PASS: gradients are read-only")
    else:
        raise AssertionError("gradient of a constant is writeable")
    print()


def test_numpy_scalars_defer_to_value():
    """Mixing numpy scalars and Values yields Values, not numpy arrays."""
    x = variable(2, 1, 3.0)
    result = np.float64(2.0) * x + np.float64(1.0)
    if isinstance(result, Value) and result.value == 7.0:
        check_gradient("np.float64 * x + np.float64", result.gradient, [0, 2])
    else:
        raise AssertionError(f"expected a Value, got {type(result).__name__}")


def test_elementary_functions_against_mpmath():
    """Derivatives of elementary functions match mpmath.diff."""
    print("=" * 80)
    print("Elementary functions vs mpmath")
    print("=" * 80)

    cases = [
        ('log', log, mp.log, 1.7),
        ('log2', log2, lambda v: mp.log(v, 2), 830.4 / 588),
        ('exp', exp, mp.exp, -0.3),
        ('sqrt', sqrt, mp.sqrt, 2.5),
        ('pow 2.8', lambda v: v ** 2.8, lambda v: v ** mp.mpf('2.8'), 0.45),
        ('pow -0.45', lambda v: v ** -0.45, lambda v: v ** mp.mpf('-0.45'), 12.0),
        ('rpow', lambda v: 0.985 ** v, lambda v: mp.mpf('0.985') ** v, 7.0),
    ]

    for label, function, reference, point in cases:
        x = variable(1, 0, point)
        result = function(x)
        expected_value = float(reference(mp.mpf(point)))
        expected_derivative = float(mp.diff(reference, mp.mpf(point)))
        tolerance = 1e-12 * max(1.0, abs(expected_derivative))
        if abs(result.value - expected_value) > 1e-12 * max(1.0, abs(expected_value)):
            raise AssertionError(f"{label}: value {result.value} != {expected_value}")
        check_gradient(f"d/dx {label}({point})", result.gradient, [expected_derivative], tolerance)

    x = variable(2, 0, 1.3)
    y = variable(2, 1, 0.7)
    result = x ** y
    expected = [
        float(mp.diff(lambda a: a ** mp.mpf('0.7'), mp.mpf('1.3'))),
        float(mp.diff(lambda b: mp.mpf('1.3') ** b, mp.mpf('0.7'))),
    ]
    check_gradient("x ** y", result.gradient, expected, 1e-12)
    print()


def test_division_by_zero():
    """Dividing by a value equal to zero raises DivisionByZero."""
    x = variable(2, 0, 1.0)
    zero = constant(2, 0.0)

    for label, operation in [
        ("Value / zero Value", lambda: x / zero),
        ("Value / 0", lambda: x / 0),
        ("1 / zero Value", lambda: 1 / zero),
        ("sqrt(0)", lambda: sqrt(zero)),
    ]:
        try:
            operation()
        except DivisionByZero:
            print(f"  ✓ PASS: {label} raises DivisionByZero")
        else:
            print(f"  ✗ FAIL: {label} did not raise")
            raise AssertionError(f"{label} should raise DivisionByZero")

    if issubclass(DivisionByZero, ZeroDivisionError):
        print("  ✓ PASS: DivisionByZero is a ZeroDivisionError")
    else:
        raise AssertionError("DivisionByZero must derive from ZeroDivisionError")


def test_dimension_mismatch():
    """Combining values of different gradient widths raises DimensionMismatch."""
    a = variable(2, 0, 1.0)
    b = variable(3, 0, 1.0)

    for label, operation in [
        ("a + b", lambda: a + b),
        ("a * b", lambda: a * b),
        ("a / b", lambda: a / b),
        ("a < b", lambda: a < b),
        ("maximum(a, b)", lambda: maximum(a, b)),
    ]:
        try:
            operation()
        except DimensionMismatch:
            print(f"  ✓ PASS: {label} raises DimensionMismatch")
        else:
            raise AssertionError(f"{label} should raise DimensionMismatch")

    try:
        variable(2, 2, 0.0)
    except IndexError:
        print("  ✓ PASS: variable index outside the width raises IndexError")
    else:
        raise AssertionError("variable(2, 2, ...) should raise IndexError")


def test_comparisons_use_values():
    """Comparisons ignore gradients."""
    a = variable(2, 0, 1.0)
    b = variable(2, 1, 1.0)
    c = constant(2, 2.0)

    checks = [
        ("a == b (same value, different gradient)", a == b),
        ("a < c", a < c),
        ("c > 1.5", c > 1.5),
        ("a <= 1", a <= 1),
        ("not (a != b)", not (a != b)),
    ]
    for label, result in checks:
        if result:
            print(f"  ✓ PASS: {label}")
        else:
            raise AssertionError(f"comparison failed: {label}")


def test_maximum_minimum_ties():
    """On ties maximum and minimum return the first operand with its gradient."""
    a = variable(2, 0, 1.0)
    b = variable(2, 1, 1.0)
    check_gradient("maximum tie -> first", maximum(a, b).gradient, [1, 0])
    check_gradient("minimum tie -> first", minimum(b, a).gradient, [0, 1])

    c = variable(2, 1, 3.0)
    check_gradient("maximum picks larger", maximum(a, c).gradient, [0, 1])
    check_gradient("minimum picks smaller", minimum(a, c).gradient, [1, 0])
    check_gradient("maximum with real", maximum(a, 5.0).gradient, [0, 0])


def test_clamp():
    """Clamped values carry the bound's gradient."""
    x = variable(2, 0, 0.5)

    inside = clamp(x, lower=0.0, upper=1.0)
    check_gradient("inside bounds keeps gradient", inside.gradient, [1, 0])

    below = clamp(x, lower=0.8)
    if abs(below.value - 0.8) < EPSILON:
        check_gradient("below real bound -> zero gradient", below.gradient, [0, 0])
    else:
        raise AssertionError(f"clamp to lower bound gave {below.value}")

    bound = variable(2, 1, 0.2)
    above = clamp(x, upper=bound)
    check_gradient("above Value bound -> bound gradient", above.gradient, [0, 1])

    at_bound = clamp(variable(2, 0, 0.8), lower=0.8)
    check_gradient("exactly at bound is not clamped", at_bound.gradient, [1, 0])


def run_all_autodiff_tests():
    """Run all autodiff tests."""
    print("\n" + "=" * 80)
    print("AUTOMATIC DIFFERENTIATION VALIDATION")
    print("=" * 80)
    print()

    try:
        test_arithmetic_rules()
        test_numpy_scalars_defer_to_value()
        test_elementary_functions_against_mpmath()
        test_division_by_zero()
        test_dimension_mismatch()
        test_comparisons_use_values()
        test_maximum_minimum_ties()
        test_clamp()

        print("=" * 80)
        print("ALL AUTODIFF TESTS PASSED")
        print("=" * 80)

    except AssertionError as e:
        print("=" * 80)
        print(f"AUTODIFF TEST FAILED: {e}")
        print("=" * 80)
        raise


if __name__ == "__main__":
    run_all_autodiff_tests()
