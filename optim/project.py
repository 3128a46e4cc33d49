from __future__ import annotations
import logging
from typing import Optional, Tuple
import numpy as np

from .base import Bounds

_COND_LIMIT = 1.0 / np.finfo(float).eps


class SingularSystemError(np.linalg.LinAlgError):
    pass


def clip(x: np.ndarray, bounds: Bounds) -> np.ndarray:
    lo = np.array([b[0] for b in bounds], dtype=float)
    hi = np.array([b[1] for b in bounds], dtype=float)
    return np.minimum(np.maximum(x, lo), hi)


def box_constraints(bounds: Bounds) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Express box bounds as the two-sided system ``low <= I x <= up``."""
    low = np.array([b[0] for b in bounds], dtype=float)
    up = np.array([b[1] for b in bounds], dtype=float)
    return np.eye(len(bounds)), low, up


def stack_constraints(A, low, up) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Convert ``low <= A x <= up`` into the one-sided ``A_s x <= b_s``.

    A_s = [A; -A], b_s = [up; -low]. The range ``up - low`` of every row is
    lost by the stacking, so it is returned as well (once for each half).
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    low = np.asarray(low, dtype=float).reshape(-1)
    up = np.asarray(up, dtype=float).reshape(-1)
    if not (A.shape[0] == len(low) == len(up)):
        raise ValueError(f"A has {A.shape[0]} rows but low/up have {len(low)}/{len(up)}")
    ranges = up - low
    return np.vstack([A, -A]), np.concatenate([up, -low]), np.concatenate([ranges, ranges])


def _check_conditioned(M: np.ndarray):
    with np.errstate(divide="ignore", invalid="ignore"):
        cond = np.linalg.cond(M)
    if not cond <= _COND_LIMIT:
        raise SingularSystemError("Singular matrix")


def ortho_proj(x0, A, b) -> np.ndarray:
    """
    Orthogonal projection of x0 onto the affine subspace A x = b.

        proj = [I - A^T (A A^T)^-1 A] x0 + A^T (A A^T)^-1 b

    A is m x n. For m >= n the system itself is solved (least squares when
    m > n) and x0 plays no part. The rows of A must be linearly independent;
    otherwise SingularSystemError is raised.
    """
    x = np.asarray(x0, dtype=float).reshape(-1)
    A = np.atleast_2d(np.asarray(A, dtype=float))
    b = np.asarray(b, dtype=float).reshape(-1)
    m, n = A.shape
    if n != len(x):
        raise ValueError(f"A has {n} columns but x0 has {len(x)} coordinates")

    if m >= n:
        if m == n:
            _check_conditioned(A)
            try:
                return np.linalg.solve(A, b)
            except np.linalg.LinAlgError as e:
                raise SingularSystemError(str(e)) from e
        sol, _, rank, _ = np.linalg.lstsq(A, b, rcond=None)
        if rank < n:
            raise SingularSystemError(f"rank deficient system (rank {rank} < {n})")
        return sol

    AAt = A @ A.T
    _check_conditioned(AAt)
    try:
        B = A.T @ np.linalg.inv(AAt)
    except np.linalg.LinAlgError as e:
        raise SingularSystemError(str(e)) from e
    return (np.eye(n) - B @ A) @ x + B @ b


def most_violated(x, A, b, eps: float = 1e-5) -> Optional[int]:
    """
    Index of the most violated row of A x <= b, or None if x is feasible.

    Rows are compared by the orthogonal distance from x to their hyperplane,
    not by the raw violation, so differently scaled rows compare fairly.
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    diff = A @ np.asarray(x, dtype=float) - np.asarray(b, dtype=float).reshape(-1)
    farthest = 0.0
    worst = None
    for i in np.flatnonzero(diff > eps):
        d = diff[i] / np.linalg.norm(A[i])
        if d > farthest:
            farthest = d
            worst = int(i)
    if worst is not None:
        logging.debug("most violated row=%d, distance=%.6e", worst, farthest)
    return worst


def nearest_feasible(x0, A, b, eps: float = 1e-5, max_iter: Optional[int] = None) -> Tuple[np.ndarray, bool]:
    """
    Nearest point to x0 that satisfies A x <= b (within eps).

    Active-set iteration: the most violated row is added to a working set of
    equalities and the starting point is projected onto it, until nothing is
    violated. A singular working set restarts the set from the current
    candidate; the second one ends the search. Returns ``(proj, ok)``; when
    ok is False, proj is the last valid candidate and may be infeasible.
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    b = np.asarray(b, dtype=float).reshape(-1)
    start = np.array(x0, dtype=float).reshape(-1)
    if max_iter is None:
        max_iter = 10 * (A.shape[0] + A.shape[1])

    src = start
    proj = start.copy()
    bad_rows = []
    failcount = 0
    for it in range(1, max_iter + 1):
        row = most_violated(proj, A, b, eps)
        if row is None:
            logging.debug("projection succeeded after %d iterations: %s --> %s", it, start, proj)
            return proj, True

        bad_rows.append(row)
        logging.debug("iter %d: working set rows %s", it, list(bad_rows))
        try:
            proj = ortho_proj(src, A[bad_rows], b[bad_rows])
        except SingularSystemError as e:
            failcount += 1
            if failcount == 2:
                logging.warning("projection failed (%s): %s --> %s", e, start, proj)
                return proj, False
            src = proj
            bad_rows = []

    logging.warning("projection did not converge in %d iterations: %s --> %s", max_iter, start, proj)
    return proj, False
