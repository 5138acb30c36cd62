"""
Forward-mode automatic differentiation for the DICE model.

Every quantity computed in the model recurrences is a `Value`: a real number
together with the dense vector of its partial derivatives with respect to the
decision variables (one entry per optimized savings rate). Arithmetic on
`Value` objects propagates both parts by the chain rule, so evaluating the
model once yields the objective and its full gradient without a separate
derivative code path.

Mathematical Foundation
-----------------------
For values a = (a, ∇a) and b = (b, ∇b):

    a + b  ->  (a + b, ∇a + ∇b)
    a · b  ->  (a·b,   ∇a·b + a·∇b)
    a / b  ->  (a/b,   (∇a - (a/b)·∇b) / b)
    f(a)   ->  (f(a),  f'(a)·∇a)

Plain Python/numpy reals are treated as constants (zero gradient).

Two constructors match the two flavors of values in the model:

- constant(width, value): gradient identically zero
- variable(width, index, value): one-hot gradient at `index`, used when a
  decision-vector component is bound into the model
"""

import math
import numbers
from functools import lru_cache

import numpy as np

LN2 = math.log(2.0)


class DimensionMismatch(ValueError):
    """Raised when two values with different gradient widths are combined."""


class DivisionByZero(ZeroDivisionError):
    """Raised when dividing by a value that is exactly zero."""


@lru_cache(maxsize=None)
def _zeros(width):
    zeros = np.zeros(width)
    zeros.flags.writeable = False
    return zeros


def _new(value, gradient):
    # internal constructor, takes ownership of `gradient`
    result = Value.__new__(Value)
    gradient.flags.writeable = False
    result.value = value
    result.gradient = gradient
    return result


class Value:
    """
    A real value augmented with its gradient over the decision variables.

    Parameters
    ----------
    value : float
        The real value
    gradient : array_like
        Partial derivatives of `value` with respect to each decision variable.
        Copied and stored read-only.

    Notes
    -----
    Values are immutable: every operation returns a new `Value`. Comparisons
    (<, <=, ==, ...) look at `.value` only, gradients are not ordered.
    """

    __slots__ = ('value', 'gradient')

    # make numpy scalars defer to our reflected operators
    __array_ufunc__ = None

    def __init__(self, value, gradient):
        gradient = np.array(gradient, dtype=float)
        if gradient.ndim != 1:
            raise ValueError(f"gradient must be one-dimensional, got shape {gradient.shape}")
        gradient.flags.writeable = False
        self.value = float(value)
        self.gradient = gradient

    @property
    def width(self):
        return self.gradient.shape[0]

    def _check_width(self, other):
        if other.gradient.shape[0] != self.gradient.shape[0]:
            raise DimensionMismatch(
                f"cannot combine values with gradient widths {self.width} and {other.width}"
            )

    # -------------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------------

    def __add__(self, other):
        if isinstance(other, Value):
            self._check_width(other)
            return _new(self.value + other.value, self.gradient + other.gradient)
        if isinstance(other, numbers.Real):
            return _new(self.value + float(other), self.gradient)
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, Value):
            self._check_width(other)
            return _new(self.value - other.value, self.gradient - other.gradient)
        if isinstance(other, numbers.Real):
            return _new(self.value - float(other), self.gradient)
        return NotImplemented

    def __rsub__(self, other):
        if isinstance(other, numbers.Real):
            return _new(float(other) - self.value, -self.gradient)
        return NotImplemented

    def __mul__(self, other):
        if isinstance(other, Value):
            self._check_width(other)
            return _new(self.value * other.value,
                        self.gradient * other.value + self.value * other.gradient)
        if isinstance(other, numbers.Real):
            other = float(other)
            return _new(self.value * other, self.gradient * other)
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, Value):
            self._check_width(other)
            if other.value == 0:
                raise DivisionByZero(f"division of {self.value} by a value equal to zero")
            quotient = self.value / other.value
            return _new(quotient, (self.gradient - quotient * other.gradient) / other.value)
        if isinstance(other, numbers.Real):
            if other == 0:
                raise DivisionByZero(f"division of {self.value} by zero")
            other = float(other)
            return _new(self.value / other, self.gradient / other)
        return NotImplemented

    def __rtruediv__(self, other):
        if isinstance(other, numbers.Real):
            if self.value == 0:
                raise DivisionByZero(f"division of {other} by a value equal to zero")
            quotient = float(other) / self.value
            return _new(quotient, -quotient / self.value * self.gradient)
        return NotImplemented

    def __neg__(self):
        return _new(-self.value, -self.gradient)

    def __pos__(self):
        return self

    def __pow__(self, exponent):
        if isinstance(exponent, Value):
            self._check_width(exponent)
            if self.value <= 0:
                raise ValueError(f"power with variable exponent needs a positive base, got {self.value}")
            result = math.pow(self.value, exponent.value)
            log_base = math.log(self.value)
            return _new(result, result * (exponent.gradient * log_base
                                          + exponent.value * self.gradient / self.value))
        if isinstance(exponent, numbers.Real):
            exponent = float(exponent)
            if exponent == 0:
                return constant(self.width, 1.0)
            if exponent == 1:
                return self
            # math.pow raises ValueError for negative bases with fractional exponents
            result = math.pow(self.value, exponent)
            return _new(result, exponent * math.pow(self.value, exponent - 1) * self.gradient)
        return NotImplemented

    def __rpow__(self, base):
        if isinstance(base, numbers.Real):
            base = float(base)
            if base <= 0:
                raise ValueError(f"power with variable exponent needs a positive base, got {base}")
            result = math.pow(base, self.value)
            return _new(result, result * math.log(base) * self.gradient)
        return NotImplemented

    # -------------------------------------------------------------------------
    # Comparisons (values only)
    # -------------------------------------------------------------------------

    def _compared(self, other):
        if isinstance(other, Value):
            self._check_width(other)
            return other.value
        if isinstance(other, numbers.Real):
            return float(other)
        return None

    def __lt__(self, other):
        other = self._compared(other)
        return NotImplemented if other is None else self.value < other

    def __le__(self, other):
        other = self._compared(other)
        return NotImplemented if other is None else self.value <= other

    def __gt__(self, other):
        other = self._compared(other)
        return NotImplemented if other is None else self.value > other

    def __ge__(self, other):
        other = self._compared(other)
        return NotImplemented if other is None else self.value >= other

    def __eq__(self, other):
        other = self._compared(other)
        return NotImplemented if other is None else self.value == other

    def __ne__(self, other):
        other = self._compared(other)
        return NotImplemented if other is None else self.value != other

    __hash__ = None

    def __float__(self):
        return self.value

    def __repr__(self):
        return f"Value({self.value!r}, gradient={self.gradient.tolist()!r})"


# =============================================================================
# Constructors
# =============================================================================

def constant(width, value):
    """
    Create a constant value (zero gradient).

    Parameters
    ----------
    width : int
        Number of decision variables
    value : float
        The constant

    Returns
    -------
    Value
    """
    return _new(float(value), _zeros(width))


def variable(width, index, value):
    """
    Create a decision variable with a one-hot gradient at `index`.

    Parameters
    ----------
    width : int
        Number of decision variables
    index : int
        Position of this variable in the decision vector (0 <= index < width)
    value : float
        Current value of the decision variable

    Returns
    -------
    Value
    """
    if not 0 <= index < width:
        raise IndexError(f"variable index {index} outside [0, {width})")
    gradient = np.zeros(width)
    gradient[index] = 1.0
    return _new(float(value), gradient)


def as_value(x, width):
    """Return `x` as a Value of the given width (reals become constants)."""
    if isinstance(x, Value):
        if x.width != width:
            raise DimensionMismatch(f"expected gradient width {width}, got {x.width}")
        return x
    return constant(width, x)


def value_of(x):
    """Plain float of a Value or a real."""
    return x.value if isinstance(x, Value) else float(x)


# =============================================================================
# Elementary functions
# =============================================================================

def log(x):
    """Natural logarithm, d/dx = 1/x."""
    if not isinstance(x, Value):
        return math.log(x)
    if x.value <= 0:
        raise ValueError(f"logarithm of non-positive value {x.value}")
    return _new(math.log(x.value), x.gradient / x.value)


def log2(x):
    """Base-2 logarithm, d/dx = 1/(x·ln 2)."""
    if not isinstance(x, Value):
        return math.log2(x)
    if x.value <= 0:
        raise ValueError(f"logarithm of non-positive value {x.value}")
    return _new(math.log2(x.value), x.gradient / (x.value * LN2))


def exp(x):
    """Exponential, d/dx = exp(x)."""
    if not isinstance(x, Value):
        return math.exp(x)
    result = math.exp(x.value)
    return _new(result, result * x.gradient)


def sqrt(x):
    """Square root, d/dx = 1/(2·sqrt(x))."""
    if not isinstance(x, Value):
        return math.sqrt(x)
    result = math.sqrt(x.value)
    if result == 0:
        raise DivisionByZero("derivative of sqrt is unbounded at zero")
    return _new(result, x.gradient / (2.0 * result))


def maximum(a, b):
    """
    Larger of two values, carrying the gradient of the larger operand.

    On an exact tie the first operand (and its gradient) is returned.
    """
    if isinstance(a, Value) and isinstance(b, Value):
        a._check_width(b)
    elif not isinstance(a, Value) and not isinstance(b, Value):
        return max(a, b)
    width = a.width if isinstance(a, Value) else b.width
    return as_value(a, width) if value_of(a) >= value_of(b) else as_value(b, width)


def minimum(a, b):
    """
    Smaller of two values, carrying the gradient of the smaller operand.

    On an exact tie the first operand (and its gradient) is returned.
    """
    if isinstance(a, Value) and isinstance(b, Value):
        a._check_width(b)
    elif not isinstance(a, Value) and not isinstance(b, Value):
        return min(a, b)
    width = a.width if isinstance(a, Value) else b.width
    return as_value(a, width) if value_of(a) <= value_of(b) else as_value(b, width)


def clamp(x, lower=None, upper=None):
    """
    Clamp a value into [lower, upper].

    Parameters
    ----------
    x : Value
        Unclamped value
    lower, upper : Value or float or None
        Bounds; None disables that side

    Returns
    -------
    Value
        `x` itself when inside the bounds, otherwise the bound, carrying the
        bound's own gradient (zero for a real bound). The clamped state is
        not a function of the unclamped inputs, so none of x's gradient
        survives.
    """
    if lower is not None and x.value < value_of(lower):
        return as_value(lower, x.width)
    if upper is not None and x.value > value_of(upper):
        return as_value(upper, x.width)
    return x
