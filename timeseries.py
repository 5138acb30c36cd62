"""
Memoized, backward-looking time series for the DICE model recurrences.

Each endogenous model quantity (carbon stocks, temperatures, capital,
output, ...) is held in a fixed-length series that computes its values on
demand and caches them until the next `reset()`. A recurrence for index t may
query other series at t or earlier and sees this series' own value at t-1
through its `previous` argument. It never looks forward in time, so the
dependency graph between quantities stays acyclic and any `get(t)` terminates
after at most t+1 recurrence calls per series touched.

Bound policies clamp a freshly computed value before it is cached:

- Unbounded: identity
- LowerBounded(lower): value < lower -> lower
- Bounded(lower, upper): additionally value > upper -> upper

At a clamp the cached value carries the bound's gradient (zero for a plain
real bound), see `autodiff.clamp`.
"""

import numpy as np

from autodiff import clamp, constant


class OutOfRange(IndexError):
    """Raised when a time index lies outside [0, length)."""


class CyclicDependency(RuntimeError):
    """Raised when a series value is requested while it is being computed."""


# =============================================================================
# Bound policies
# =============================================================================

class Unbounded:
    """Identity policy."""

    def apply(self, value):
        return value

    def __repr__(self):
        return "Unbounded()"


class LowerBounded:
    """
    Clamp values into [lower, ∞).

    Parameters
    ----------
    lower : float or Value
        Lower bound
    """

    def __init__(self, lower):
        self.lower = lower

    def apply(self, value):
        return clamp(value, lower=self.lower)

    def __repr__(self):
        return f"LowerBounded({self.lower!r})"


class Bounded:
    """
    Clamp values into [lower, upper].

    Parameters
    ----------
    lower : float or Value
        Lower bound
    upper : float or Value
        Upper bound (must not be below `lower`)
    """

    def __init__(self, lower, upper):
        if float(upper) < float(lower):
            raise ValueError(f"upper bound {upper} is below lower bound {lower}")
        self.lower = lower
        self.upper = upper

    def apply(self, value):
        return clamp(value, lower=self.lower, upper=self.upper)

    def __repr__(self):
        return f"Bounded({self.lower!r}, {self.upper!r})"


# =============================================================================
# Series
# =============================================================================

class MemoizedTimeSeries:
    """
    Fixed-length series whose values are computed pointwise and cached.

    Parameters
    ----------
    length : int
        Number of time steps
    function : callable
        function(t) -> Value. May query other series at index t or earlier.
    bound : Unbounded, LowerBounded or Bounded, optional
        Bound policy applied before caching (default: Unbounded)
    name : str, optional
        Name used in error messages
    check_cycles : bool, optional
        If True, re-entering `get(t)` while index t is still being computed
        raises CyclicDependency instead of recursing until the interpreter's
        recursion limit.

    Notes
    -----
    Values can be held fixed with `fix()`. Fixed values survive `reset()`
    and replace the computed ones until `release()` is called.
    """

    def __init__(self, length, function, bound=None, name=None, check_cycles=False):
        if length < 1:
            raise ValueError(f"time series length must be positive, got {length}")
        self.length = length
        self.function = function
        self.bound = bound if bound is not None else Unbounded()
        self.name = name
        self.check_cycles = check_cycles
        self._cache = [None] * length
        self._fixed = [None] * length
        self._in_progress = set()

    def __len__(self):
        return self.length

    def get(self, t):
        """
        Value at time index t, computed on first access and cached.

        Raises
        ------
        OutOfRange
            If t < 0 or t >= length
        CyclicDependency
            If check_cycles is enabled and t is requested while being computed
        """
        if t < 0 or t >= self.length:
            raise OutOfRange(f"time index {t} outside [0, {self.length}) for series '{self.name}'")
        value = self._cache[t]
        if value is not None:
            return value

        value = self._fixed[t]
        if value is None:
            if self.check_cycles:
                if t in self._in_progress:
                    raise CyclicDependency(f"series '{self.name}' depends on itself at time index {t}")
                self._in_progress.add(t)
                try:
                    value = self._compute(t)
                finally:
                    self._in_progress.discard(t)
            else:
                value = self._compute(t)

        self._cache[t] = value
        return value

    def _compute(self, t):
        return self.bound.apply(self.function(t))

    def is_cached(self, t):
        return self._cache[t] is not None

    def reset(self):
        """Clear all cached values (fixed values are kept)."""
        self._cache[:] = [None] * self.length
        self._in_progress.clear()

    def values(self):
        """Float values for the whole horizon (computes missing entries)."""
        return np.array([self.get(t).value for t in range(self.length)])

    def fix(self, values, width):
        """
        Hold values fixed instead of computing them.

        Parameters
        ----------
        values : array_like
            One entry per time step; NaN entries are left free
        width : int
            Gradient width of the fixed (constant) values
        """
        values = np.asarray(values, dtype=float)
        if values.shape != (self.length,):
            raise ValueError(
                f"series '{self.name}' needs {self.length} values, got shape {values.shape}"
            )
        for t, v in enumerate(values):
            self._fixed[t] = None if np.isnan(v) else constant(width, v)
        self.reset()

    def release(self):
        """Forget all fixed values."""
        self._fixed[:] = [None] * self.length
        self.reset()


class BackwardLookingTimeSeries(MemoizedTimeSeries):
    """
    Memoized series defined by a seed and a backward-looking recurrence.

    Parameters
    ----------
    length : int
        Number of time steps
    seed : Value
        Value at index 0 (clamped by the bound policy)
    recurrence : callable
        recurrence(t, previous) -> Value for t >= 1, where `previous` is this
        series' value at t-1. May query other series at t or t-1.
    bound, name, check_cycles
        See MemoizedTimeSeries

    Notes
    -----
    `get(t)` first obtains `previous = get(t-1)` recursively, so arbitrary
    lags stay expressible while only earlier indices are ever visited.
    """

    def __init__(self, length, seed, recurrence, bound=None, name=None, check_cycles=False):
        super().__init__(length, recurrence, bound=bound, name=name, check_cycles=check_cycles)
        self.seed = seed

    def _compute(self, t):
        if t == 0:
            return self.bound.apply(self.seed)
        previous = self.get(t - 1)
        return self.bound.apply(self.function(t, previous))
