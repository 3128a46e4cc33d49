from __future__ import annotations
import logging
from multiprocessing.pool import ThreadPool
from typing import Dict, List, Optional, Tuple

from .base import (Evaler, Evaluation, EvaluationError, Objective, Point,
                   collect_errors, fingerprint)


def _evaluate(obj: Objective, p: Point) -> Tuple[Point, Optional[EvaluationError]]:
    try:
        return Point(p.pos, obj.objective(p.pos)), None
    except EvaluationError as e:
        logging.debug("evaluation failed at %s: %s", p.pos, e)
        return Point(p.pos, e.value), e


class SerialEvaler(Evaler):
    """
    Evaluates points one after the other, in order.

    Options:
    - continue_on_err: keep going after a failed evaluation and report all
      failures together (default False: stop at the first failure; the
      failed point is the last one returned)
    """
    def __init__(self, options: Optional[Dict] = None):
        super().__init__(options)
        self.continue_on_err: bool = bool(self.options.get("continue_on_err", False))

    def eval(self, obj: Objective, *points: Point) -> Evaluation:
        results: List[Point] = []
        errors: List[EvaluationError] = []
        for p in points:
            res, err = _evaluate(obj, p)
            results.append(res)
            if err is not None:
                errors.append(err)
                if not self.continue_on_err:
                    break
        return Evaluation(results, len(results), collect_errors(errors, len(results)))


class ParallelEvaler(Evaler):
    """
    Evaluates all points concurrently on a thread pool.

    Every point is attempted and returned even if some fail; results come
    back in completion order, not input order.

    Options:
    - workers: pool size (default None: one worker per point)
    """
    def __init__(self, options: Optional[Dict] = None):
        super().__init__(options)
        workers = self.options.get("workers", None)
        self.workers: Optional[int] = None if workers is None else int(workers)

    def eval(self, obj: Objective, *points: Point) -> Evaluation:
        if not points:
            return Evaluation([], 0)

        n_workers = len(points) if self.workers is None else max(1, min(self.workers, len(points)))
        results: List[Point] = []
        errors: List[EvaluationError] = []
        with ThreadPool(processes=n_workers) as pool:
            for res, err in pool.imap_unordered(lambda p: _evaluate(obj, p), points):
                results.append(res)
                if err is not None:
                    errors.append(err)
        return Evaluation(results, len(results), collect_errors(errors, len(results)))


class CacheEvaler(Evaler):
    """
    Wraps another Evaler and skips points whose coordinates were already
    evaluated (matched bit for bit through their fingerprint).

    The cache belongs to this instance unless a dict is passed in to share
    it on purpose. It is not locked: do not call eval concurrently.
    """
    def __init__(self, ev: Evaler, cache: Optional[Dict[bytes, float]] = None):
        super().__init__()
        self.ev = ev
        self.cache: Dict[bytes, float] = {} if cache is None else cache

    def eval(self, obj: Objective, *points: Point) -> Evaluation:
        points = list(points)
        keys = [fingerprint(p) for p in points]

        fromnew: List[int] = []  # index in points of every distinct miss
        newp: List[Point] = []
        pending = set()
        for i, (p, key) in enumerate(zip(points, keys)):
            if key in self.cache:
                p.val = self.cache[key]
            elif key not in pending:
                pending.add(key)
                fromnew.append(i)
                newp.append(p)

        if not newp:
            return Evaluation(points, 0)

        newresults, n, err = self.ev.eval(obj, *newp)
        if not newresults:
            return Evaluation(points, n, err)

        fresh = {fingerprint(p): p.val for p in newresults}
        self.cache.update(fresh)
        for p, key in zip(points, keys):
            if key in fresh:
                p.val = fresh[key]

        # the inner evaler stopped early: drop everything after the last new result
        if len(newresults) < len(newp):
            last = max(i for i in fromnew if keys[i] in fresh)
            points = points[:last + 1]

        return Evaluation(points, n, err)
