from __future__ import annotations
import logging

import numpy as np
from scipy.optimize import minimize
from typing import List, Tuple, Callable

logger = logging.getLogger(__name__)


def local_NLP(
    x0: List[float] | np.ndarray,
    cost_fn: Callable[[List[float]], float],
    int_bounds: List[Tuple[int, int]],
    real_bounds: List[Tuple[float, float]],
    *,
    tol_grad: float = 1e-8,
    tol_fun:  float = 1e-12,
    maxiter:  int   = 200
) -> Tuple[np.ndarray, float, object]:
    """
    Hybrid-refine the **continuous slice** of `x0` while keeping the
    integer block fixed.

    Returns
    -------
    x_opt : np.ndarray   # full chromosome (ints + reals)
    f_opt : float        # objective value cost_fn(x_opt)
    res   : OptimizeResult or None when the start point is infeasible
    """
    x0     = np.asarray(x0, dtype=float)
    n_int  = len(int_bounds)
    ints   = x0[:n_int].copy()
    reals0 = x0[n_int:].copy()
    f0     = cost_fn(list(x0))
    if not np.isfinite(f0):
        return x0, f0, None

    # objective that re-assembles chromosome; a large finite value keeps
    # the line search out of infeasible regions
    def obj(reals: np.ndarray) -> float:
        f = cost_fn(list(np.concatenate((ints, reals))))
        return f if np.isfinite(f) else 1e3 * (1.0 + f0)

    res = minimize(
        fun=obj,
        x0=reals0,
        method="L-BFGS-B",
        bounds=real_bounds,
        options={
            "gtol":  tol_grad,
            "ftol":  tol_fun,
            "maxiter": maxiter,
            "disp": False,
        },
    )
    if np.isnan(res.x).any():
        logger.debug("NLP_nan: keeping start point")
        return x0, f0, res

    x_opt = np.concatenate((ints, res.x))
    f_opt = cost_fn(list(x_opt))
    if not f_opt < f0:
        return x0, f0, res
    return x_opt, f_opt, res
