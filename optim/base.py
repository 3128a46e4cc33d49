from __future__ import annotations
import hashlib
from typing import List, Optional, Dict, Sequence, Tuple
import numpy as np

Bounds = List[Tuple[float, float]]


class EvaluationError(RuntimeError):
    """
    Raised by an objective when the evaluation of a point fails.

    ``value`` is the objective value that goes with the failure. It is +inf
    unless the objective managed a partial result, so ranking code should
    look at the value rather than at the exception.
    """
    def __init__(self, msg: str = "objective evaluation failed", value: float = np.inf):
        super().__init__(msg)
        self.value = float(value)


class BatchError(EvaluationError):
    """Several failures of one evaluation batch folded into a single error."""
    def __init__(self, errors: Sequence[EvaluationError], total: int):
        self.errors: List[EvaluationError] = list(errors)
        msg = f"{len(self.errors)} of {total} evaluations failed: {self.errors[0]}"
        super().__init__(msg, value=min(e.value for e in self.errors))


def collect_errors(errors: Sequence[EvaluationError], total: int) -> Optional[EvaluationError]:
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return BatchError(errors, total)


class Point:
    """
    A position in the search space plus its objective value.

    The position is copied in and copied out, so a Point never shares its
    coordinates with the caller. ``val`` is +inf until the point is evaluated.
    """
    __slots__ = ("_pos", "val")

    def __init__(self, pos, val: float = np.inf):
        self._pos = np.array(pos, dtype=float).reshape(-1)
        self.val = float(val)

    def at(self, i: int) -> float:
        if not 0 <= i < len(self._pos):
            raise IndexError(f"coordinate {i} out of range for {len(self._pos)}-d point")
        return float(self._pos[i])

    @property
    def pos(self) -> np.ndarray:
        return self._pos.copy()

    def __len__(self) -> int:
        return len(self._pos)

    def __repr__(self) -> str:
        return f"Point({list(self._pos)}, val={self.val})"


def l2_dist(p1: Point, p2: Point) -> float:
    if len(p1) != len(p2):
        raise ValueError(f"dimension mismatch: {len(p1)} != {len(p2)}")
    d = p1.pos - p2.pos
    return float(np.sqrt(np.sum(d * d)))


def fingerprint(p: Point) -> bytes:
    # big-endian IEEE-754 bits of every coordinate; NaN payloads and -0.0 are kept
    data = p.pos.astype(">f8").tobytes()
    return hashlib.sha1(data).digest()


class Objective:
    """
    Capability shared by plain functions and their decorators.
    Lower values are better; failures raise EvaluationError.
    """
    def objective(self, v: np.ndarray) -> float:
        raise NotImplementedError


class Evaluation:
    """Outcome of one Evaler.eval call."""
    __slots__ = ("points", "n", "error")

    def __init__(self, points: List[Point], n: int, error: Optional[EvaluationError] = None):
        self.points = points
        self.n = n
        self.error = error

    def __iter__(self):
        # allows ``points, n, err = ev.eval(...)``
        return iter((self.points, self.n, self.error))

    def __len__(self) -> int:
        return len(self.points)


class Evaler:
    """
    Evaluates batches of points against an objective.

    Points that could not be evaluated are left out of the result; ``n`` is
    the number of objective calls actually made.
    """
    def __init__(self, options: Optional[Dict] = None):
        self.options: Dict = options or {}

    def eval(self, obj: Objective, *points: Point) -> Evaluation:
        raise NotImplementedError


class Mesh:
    """Discretisation of the search space; only snapping is needed here."""
    def nearest(self, pos: np.ndarray) -> np.ndarray:
        raise NotImplementedError


def nearest(p: Point, mesh: Mesh) -> Point:
    return Point(mesh.nearest(p.pos), p.val)
