from __future__ import annotations
import sys
import threading
from typing import Callable
import numpy as np

from .base import Objective, EvaluationError
from .project import stack_constraints


class Func(Objective):
    """Adapts a plain ``f(x) -> float`` to the Objective capability."""
    def __init__(self, fn: Callable[[np.ndarray], float]):
        self.fn = fn

    def objective(self, v: np.ndarray) -> float:
        return float(self.fn(np.asarray(v, dtype=float)))


class ObjectivePenalty(Objective):
    """
    Wraps an objective and inflates its value for violated linear
    constraints ``low <= A x <= up``.

    Each violation is divided by the range of its constraint so that rows of
    different scale weigh alike, and the total multiplies the base value:

        f_pen(x) = f(x) * (1 + weight * sum_i viol_i / range_i)

    With weight == 0 the wrapped objective's value is returned unaltered.
    """
    def __init__(self, obj: Objective, A, low, up, weight: float = 1.0):
        self.obj = obj
        self.A = A
        self.low = low
        self.up = up
        self.weight = float(weight)
        self._a = None       # stacked [A; -A], set last so it marks a finished init
        self._b = None       # stacked [up; -low]
        self._ranges = None  # up - low, once for each half
        self._lock = threading.Lock()

    def _init(self):
        if self._a is not None:
            return
        with self._lock:
            if self._a is not None:
                return
            a, b, ranges = stack_constraints(self.A, self.low, self.up)
            # Departs from plain violation / range: one-sided rows (infinite range)
            # and equality rows (zero range) are divided by 1, so they still count.
            self._ranges = np.where(np.isfinite(ranges) & (ranges > 0), ranges, 1.0)
            self._b = b
            self._a = a

    def penalty(self, v: np.ndarray) -> float:
        self._init()
        diff = self._a @ np.asarray(v, dtype=float) - self._b
        viol = diff > 0
        return float(np.sum(diff[viol] / self._ranges[viol]) * self.weight)

    def objective(self, v: np.ndarray) -> float:
        self._init()
        try:
            val = self.obj.objective(v)
        except EvaluationError as e:
            if self.weight != 0:
                e.value = e.value * (1 + self.penalty(v))
            raise
        if self.weight == 0:
            return val
        return val * (1 + self.penalty(v))


class ObjectivePrinter(Objective):
    """
    Pass-through objective that counts calls and prints every evaluation as
    ``count x1 x2 ...     value``.
    """
    def __init__(self, obj: Objective, file=None):
        self.obj = obj
        self.file = file
        self.count = 0
        self._lock = threading.Lock()

    def _report(self, v, val):
        with self._lock:
            self.count += 1
            coords = " ".join(str(x) for x in np.asarray(v, dtype=float))
            print(f"{self.count} {coords}     {val}", file=self.file or sys.stdout)

    def objective(self, v: np.ndarray) -> float:
        try:
            val = self.obj.objective(v)
        except EvaluationError as e:
            self._report(v, e.value)
            raise
        self._report(v, val)
        return val
