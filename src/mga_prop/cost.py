import logging

import numpy as np

from .pipeline import build_trajectory
from .trajectory import TrajectoryError

logger = logging.getLogger(__name__)


def chromosome_to_parameters(X) -> list[float]:
    """
    X = [
         case,           # transfer case index (integer)
         t0,             # departure [d since J2000]
         T1, T2, …, Tn   # times of flight [d] of every leg
        ]
    -> [t0, T1, …, Tn, case], the driver's parameter vector
    """
    X = [float(g) for g in X]
    return X[1:] + [int(round(X[0]))]


def chromosome_cost(X, *, ephemeris, transfer_cfg: dict) -> float:
    """Patched-conic Delta-V [km/s] of a chromosome; np.inf if infeasible."""
    leg_days = np.asarray(X[2:], dtype=float)
    if np.isnan(leg_days).any() or not (leg_days > 0).all():
        return np.inf

    try:
        trajectory = build_trajectory(ephemeris, transfer_cfg, chromosome_to_parameters(X))
        total_dv = trajectory.calculate_trajectory()
    except TrajectoryError:
        raise
    except ValueError as err:
        logger.debug("infeasible chromosome %s: %s", X, err)
        return np.inf

    return total_dv if np.isfinite(total_dv) else np.inf
