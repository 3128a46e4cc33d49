import io
import time

import numpy as np
import pytest

import optim.objective

from benchmarks.rosenbrock import rosenbrock
from optim.base import EvaluationError, Objective, Point
from optim.evaler import ParallelEvaler
from optim.objective import Func, ObjectivePenalty, ObjectivePrinter
from optim.project import stack_constraints


def sphere(x: np.ndarray) -> float:
    return float(np.sum(x**2)) + 1.0


class Failing(Objective):
    def __init__(self, value=np.inf):
        self.value = value

    def objective(self, v):
        raise EvaluationError("boom", value=self.value)


# x + y in [0, 2], x - y in [-1, 1]
A = np.array([[1.0, 1.0], [1.0, -1.0]])
LOW = np.array([0.0, -1.0])
UP = np.array([2.0, 1.0])


def test_func_adapter():
    assert Func(rosenbrock).objective(np.ones(4)) == 0.0


def test_penalty_zero_weight_passthrough():
    obj = ObjectivePenalty(Func(sphere), A, LOW, UP, weight=0.0)
    rng = np.random.default_rng(0)
    for x in rng.uniform(-10, 10, size=(20, 2)):
        assert obj.objective(x) == sphere(x)


def test_penalty_inside_feasible_region():
    obj = ObjectivePenalty(Func(sphere), A, LOW, UP, weight=5.0)
    x = np.array([0.5, 0.5])
    assert obj.objective(x) == sphere(x)


def test_penalty_value():
    obj = ObjectivePenalty(Func(sphere), A, LOW, UP, weight=2.0)
    x = np.array([2.0, 1.0])
    # x + y = 3 exceeds 2 by 1, range 2 ; x - y = 1 on the bound
    assert np.isclose(obj.objective(x), sphere(x) * (1 + 1.0 / 2.0 * 2.0))


def test_penalty_monotone_in_violation():
    obj = ObjectivePenalty(Func(sphere), A, LOW, UP, weight=1.5)
    vals = []
    for t in np.linspace(0.0, 5.0, 11):
        # move along x - y = 0 so only the x + y row is violated
        x = np.array([1.0 + t, 1.0 + t])
        vals.append(obj.objective(x) / sphere(x))
    assert all(b >= a for a, b in zip(vals, vals[1:]))
    assert vals[-1] > vals[0]


def test_penalty_one_sided_rows():
    obj = ObjectivePenalty(Func(sphere), [[1.0, 0.0]], [-np.inf], [1.0], weight=1.0)
    x = np.array([3.0, 0.0])
    assert np.isclose(obj.objective(x), sphere(x) * 3.0)


def test_penalty_reraises_with_penalised_value():
    obj = ObjectivePenalty(Failing(value=2.0), A, LOW, UP, weight=1.0)
    with pytest.raises(EvaluationError) as exc:
        obj.objective(np.array([3.0, 1.0]))
    # x + y = 4 exceeds 2 by 2, x - y = 2 exceeds 1 by 1, both ranges 2
    assert np.isclose(exc.value.value, 2.0 * (1 + 2.0 / 2.0 + 1.0 / 2.0))


def test_printer_passthrough():
    out = io.StringIO()
    obj = ObjectivePrinter(Func(sphere), file=out)
    assert obj.objective(np.array([1.0, 2.0])) == 6.0
    assert obj.objective(np.array([0.0, 0.0])) == 1.0
    assert obj.count == 2
    lines = out.getvalue().splitlines()
    assert lines[0].split() == ["1", "1.0", "2.0", "6.0"]


def test_printer_reports_failures():
    out = io.StringIO()
    obj = ObjectivePrinter(Failing(), file=out)
    with pytest.raises(EvaluationError):
        obj.objective(np.array([1.0]))
    assert obj.count == 1
    assert out.getvalue().split()[-1] == "inf"


def test_decorators_compose_under_parallel_evaler():
    out = io.StringIO()
    obj = ObjectivePrinter(ObjectivePenalty(Func(sphere), A, LOW, UP, weight=1.0), file=out)
    pts = [Point([float(i), 0.0]) for i in range(12)]
    res, n, err = ParallelEvaler(options={"workers": 3}).eval(obj, *pts)
    assert err is None
    assert n == 12
    assert obj.count == 12
    assert len(out.getvalue().splitlines()) == 12


def test_penalty_first_calls_from_many_threads(monkeypatch):
    def slow_stack(A, low, up):
        # widen the window in which other threads hit the lazy setup
        out = stack_constraints(A, low, up)
        time.sleep(0.05)
        return out

    monkeypatch.setattr(optim.objective, "stack_constraints", slow_stack)
    obj = ObjectivePenalty(Func(sphere), np.eye(2), [-1.0, -1.0], [1.0, 1.0], weight=1.0)
    pts = [Point([2.0 + i, -3.0]) for i in range(16)]
    res, n, err = ParallelEvaler().eval(obj, *pts)
    assert err is None
    assert n == 16
    for p in res:
        x = p.pos
        # x exceeds 1 by x - 1 and y falls short of -1 by 2, both ranges 2
        expect = sphere(x) * (1 + (x[0] - 1.0) / 2.0 + 2.0 / 2.0)
        assert np.isclose(p.val, expect)
