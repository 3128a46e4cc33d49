import numpy as np

def griewank(x: np.ndarray) -> float:
    """
    Griewank function (D-dimensional), many regularly spaced local minima.
    Global minimum at x = 0, f = 0. Bounds typically [-600, 600]^D.
    """
    x = np.asarray(x, dtype=float)
    i = np.arange(1, len(x) + 1, dtype=float)
    return float(np.sum(x * x) / 4000.0 - np.prod(np.cos(x / np.sqrt(i))) + 1.0)
