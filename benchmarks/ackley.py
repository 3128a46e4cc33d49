import numpy as np

def ackley(x: np.ndarray) -> float:
    """
    Ackley function (D-dimensional).
    Global minimum at x = 0, f = 0. Bounds typically [-5, 5]^D.
    """
    x = np.asarray(x, dtype=float)
    d = len(x)
    a = -20.0 * np.exp(-0.2 * np.sqrt(np.sum(x * x) / d))
    b = -np.exp(np.sum(np.cos(2 * np.pi * x)) / d)
    return float(a + b + 20.0 + np.e)
