"""
Introspection protocol for named model quantities.

Model components (control, climate, damage, economy, emissions) advertise the
quantities they hold by name. An `Observer` walks the components and, for
each name, says whether it wants it and whether it wants the whole series or
a single time step. Every answer returns a continuation flag:

- True:  not handled here, keep searching
- False: handled, stop

so several components can be asked in sequence until one claims a name,
which is the normal usage pattern for output writers. Nothing here knows
about file formats.

Quantities come in two kinds:

- storage-backed: plain float arrays owned by the component (decision
  variables and exogenous inputs); injection overwrites the array
- memoized: endogenous series computed by recurrences; injection holds the
  supplied values fixed in place of the computed ones
"""

import numpy as np

from timeseries import OutOfRange


class Observer:
    """
    Base class for observers. By default every quantity is wanted as a
    whole series and ignored.
    """

    def want(self, name):
        """
        Parameters
        ----------
        name : str
            Quantity name

        Returns
        -------
        tuple
            (wanted, whole_series, t): whether to observe `name`, whether as a
            whole series, and the time index for single-step observations
        """
        return True, True, 0

    def observe_series(self, name, values):
        """Receive a whole series (read-only float array). Returns the continuation flag."""
        return True

    def observe_value(self, name, value):
        """Receive a single time step (Value or float). Returns the continuation flag."""
        return True


class PointQueryObserver(Observer):
    """Look up one quantity, either at one time index or as a whole series."""

    def __init__(self, name, t=None):
        self.name = name
        self.t = t
        self.result = None
        self.found = False

    def want(self, name):
        return name == self.name, self.t is None, 0 if self.t is None else self.t

    def observe_series(self, name, values):
        self.result = values
        self.found = True
        return False

    def observe_value(self, name, value):
        self.result = value
        self.found = True
        return False


class SeriesCollector(Observer):
    """Collect every quantity as a whole series into `results`."""

    def __init__(self, names=None):
        self.names = None if names is None else set(names)
        self.results = {}

    def want(self, name):
        return self.names is None or name in self.names, True, 0

    def observe_series(self, name, values):
        self.results[name] = np.array(values)
        return True


class Observable:
    """
    Mixin for components that hold named quantities over a fixed horizon.

    Subclasses list their quantities in `observed`; each name must be a
    method `name(t)` returning the value at time index t. Series registered
    with `add_series` and arrays registered with `add_storage` are reset and
    injected automatically.

    Parameters
    ----------
    horizon : int
        Number of time steps
    width : int
        Gradient width (number of decision variables)
    check_cycles : bool, optional
        Passed on to every series created with `add_series`
    """

    observed = ()

    def __init__(self, horizon, width, check_cycles=False):
        self.horizon = horizon
        self.width = width
        self.check_cycles = check_cycles
        self._series = {}
        self._storage = {}

    def add_series(self, series_class, name, *args, **kwargs):
        """Create a memoized series of `series_class` for quantity `name`."""
        kwargs.setdefault('name', name)
        kwargs.setdefault('check_cycles', self.check_cycles)
        series = series_class(self.horizon, *args, **kwargs)
        self._series[name] = series
        return series

    def add_storage(self, name, values):
        """Register a float array as the backing storage of quantity `name`."""
        values = np.asarray(values, dtype=float)
        if values.shape != (self.horizon,):
            raise ValueError(f"'{name}' needs {self.horizon} values, got shape {values.shape}")
        self._storage[name] = values
        return values

    def check_time(self, t):
        if t < 0 or t >= self.horizon:
            raise OutOfRange(f"time index {t} outside [0, {self.horizon}) in {type(self).__name__}")

    def names(self):
        return list(self.observed)

    def reset(self):
        for series in self._series.values():
            series.reset()

    def series(self, name):
        """Whole series of quantity `name` as a read-only float array."""
        if name in self._storage:
            values = self._storage[name].copy()
        elif name in self._series:
            values = self._series[name].values()
        else:
            accessor = getattr(self, name)
            values = np.array([float(accessor(t)) for t in range(self.horizon)])
        values.flags.writeable = False
        return values

    def observe(self, observer):
        """
        Offer every quantity to `observer`.

        Returns
        -------
        bool
            False as soon as the observer reports a quantity as handled,
            True if it kept searching through all of them
        """
        for name in self.observed:
            wanted, whole_series, t = observer.want(name)
            if not wanted:
                continue
            if whole_series:
                carry_on = observer.observe_series(name, self.series(name))
            else:
                carry_on = observer.observe_value(name, getattr(self, name)(t))
            if not carry_on:
                return False
        return True

    def query(self, name, t=None):
        """
        Value of `name` at time index t, or its whole series if t is None.

        Raises
        ------
        KeyError
            If this component does not hold `name`
        """
        observer = PointQueryObserver(name, t)
        self.observe(observer)
        if not observer.found:
            raise KeyError(f"variable '{name}' not found in {type(self).__name__}")
        return observer.result

    def inject(self, name, values):
        """
        Overwrite quantity `name` with externally supplied values.

        Storage-backed quantities are overwritten in place, memoized ones
        are held fixed (NaN entries stay free).

        Returns
        -------
        bool
            Continuation flag: True if `name` is not held here

        Raises
        ------
        ValueError
            If `name` is a derived quantity without its own series
        """
        if name not in self.observed:
            return True
        values = np.asarray(values, dtype=float)
        if name in self._storage:
            if values.shape != (self.horizon,):
                raise ValueError(f"'{name}' needs {self.horizon} values, got shape {values.shape}")
            self._storage[name][:] = values
            self.reset()
        elif name in self._series:
            self._series[name].fix(values, self.width)
        else:
            raise ValueError(f"'{name}' is derived from other quantities and cannot be injected")
        return False

