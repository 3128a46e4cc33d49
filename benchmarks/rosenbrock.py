import numpy as np

def rosenbrock(x: np.ndarray) -> float:
    """
    Rosenbrock valley, any dimension >= 2.
    Global minimum at x = (1, ..., 1), f = 0. Bounds typically [-30, 30]^D.
    """
    x = np.asarray(x, dtype=float)
    return float(np.sum(100.0 * (x[1:] - x[:-1] ** 2) ** 2 + (1.0 - x[:-1]) ** 2))
