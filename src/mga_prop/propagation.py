"""
Numerical propagation of patched-conic legs under a perturbed model.

Each leg is propagated from its time midpoint, where the Lambert arc
provides the initial state, backwards to the departure epoch and
forwards to the arrival epoch. Either propagation may stop early when
the spacecraft enters the sphere of influence of the body it is heading
for, since the point-mass model is singular at the planet centre the
Lambert arc aims at.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.integrate import solve_ivp
from scipy.interpolate import BarycentricInterpolator

from .accelerations import cowell_rhs, relative_distances
from .constants import MU, sphere_of_influence
from .dynamics import kepler_propagate

logger = logging.getLogger(__name__)

STATE_COLUMNS = ["x", "y", "z", "vx", "vy", "vz"]

Ftype = Callable[[float, np.ndarray], np.ndarray]


@dataclass
class IntegratorSettings:
    """
    ``method`` is ``"rk4"`` for the fixed-step Runge-Kutta 4 integrator,
    or the name of any ``scipy.integrate.solve_ivp`` method. ``step`` is
    the fixed step (rk4) or the first step (scipy); its sign is taken
    from the propagation direction.
    """
    method: str = "rk4"
    step: float = 1000.0
    rtol: float = 1e-10
    atol: float = 1e-3
    max_step: float = np.inf


@dataclass
class Termination:
    final_epoch: float
    soi_body: str | None = None
    soi_radius: float = np.nan


@dataclass
class PropagatorSettings:
    """Single-arc translational (Cowell) propagation of the spacecraft."""
    accelerations: List[Callable]
    initial_epoch: float
    initial_state: np.ndarray
    termination: Termination
    ephemeris: object
    dependent_bodies: List[str] = field(default_factory=list)

    def reset(self, **changes) -> "PropagatorSettings":
        """Copy with e.g. a new initial_state, initial_epoch or termination."""
        return dataclasses.replace(self, **changes)


@dataclass
class LegResult:
    lambert: pd.DataFrame
    numerical: pd.DataFrame
    dependent: pd.DataFrame


def rk4(*, F: Ftype, t0: float, y0: np.ndarray, dt: float) -> np.ndarray:
    """Take a single fourth-order Runge-Kutta step of size dt."""
    dy1 = dt*F(t0,        y0)
    dy2 = dt*F(t0 + dt/2, y0 + dy1/2)
    dy3 = dt*F(t0 + dt/2, y0 + dy2/2)
    dy4 = dt*F(t0 + dt,   y0 + dy3)
    return y0 + (dy1 + 2*dy2 + 2*dy3 + dy4)/6


def _inside_soi(settings: PropagatorSettings, t: float, y: np.ndarray) -> bool:
    term = settings.termination
    if term.soi_body is None:
        return False
    body_r = settings.ephemeris.state(term.soi_body, t)[:3]
    return np.linalg.norm(y[:3] - body_r) <= term.soi_radius


def _propagate_rk4(F, settings, integrator):
    t, y = settings.initial_epoch, np.asarray(settings.initial_state, dtype=float)
    tf = settings.termination.final_epoch
    direction = np.sign(tf - t)
    h = direction * abs(integrator.step)

    ts, ys = [t], [y]
    while direction * (tf - t) > 1e-9:
        # last step is shortened to land on tf exactly
        dt, t_next = (h, t + h) if abs(tf - t) > abs(h) else (tf - t, tf)
        y = rk4(F=F, t0=t, y0=y, dt=dt)
        t = t_next
        ts.append(t)
        ys.append(y)
        if _inside_soi(settings, t, y):
            break
    return np.array(ts), np.array(ys)


def _propagate_scipy(F, settings, integrator):
    t0, tf = settings.initial_epoch, settings.termination.final_epoch
    term = settings.termination

    events = None
    if term.soi_body is not None:
        def enter_soi(t, y):
            body_r = settings.ephemeris.state(term.soi_body, t)[:3]
            return np.linalg.norm(y[:3] - body_r) - term.soi_radius
        enter_soi.terminal = True
        enter_soi.direction = -1
        events = [enter_soi]

    sol = solve_ivp(F, (t0, tf), np.asarray(settings.initial_state, dtype=float),
                    method=integrator.method, rtol=integrator.rtol, atol=integrator.atol,
                    first_step=min(abs(integrator.step), abs(tf - t0)), max_step=integrator.max_step,
                    events=events)
    if sol.status == -1:
        raise RuntimeError(f"integration failed: {sol.message}")
    return sol.t, sol.y.T


def propagate(settings: PropagatorSettings, integrator: IntegratorSettings
              ) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Propagate one arc.

    Returns
    -------
    states : DataFrame indexed by epoch ``t`` with columns x..vz
    dependent : DataFrame indexed by epoch with one ``d_<body>`` column
                per relative-distance dependent variable
    """
    if settings.termination.final_epoch == settings.initial_epoch:
        raise ValueError("propagation has zero duration")

    F = cowell_rhs(settings.accelerations)
    if integrator.method.lower() == "rk4":
        ts, ys = _propagate_rk4(F, settings, integrator)
    else:
        ts, ys = _propagate_scipy(F, settings, integrator)

    states = pd.DataFrame(ys, index=pd.Index(ts, name="t"), columns=STATE_COLUMNS)
    dep = [relative_distances(settings.ephemeris, settings.dependent_bodies, t, y)
           for t, y in zip(ts, ys)]
    dependent = pd.DataFrame(np.reshape(dep, (len(ts), len(settings.dependent_bodies))),
                             index=states.index,
                             columns=[f"d_{b}" for b in settings.dependent_bodies])
    return states, dependent


def _termination(ephemeris, epoch, body, central_body, terminate_on_soi):
    if not terminate_on_soi:
        return Termination(epoch)
    # SOI sized by the body's distance from the central body at the leg epoch
    distance = np.linalg.norm(ephemeris.state(body, epoch)[:3] - ephemeris.state(central_body, epoch)[:3])
    return Termination(epoch, body, sphere_of_influence(body, central_body, distance))


def get_patched_conic_propagator_settings(trajectory, accelerations: Sequence[List[Callable]],
                                          dependent_bodies: Sequence[str], *,
                                          terminate_on_soi: bool = True
                                          ) -> List[Tuple[PropagatorSettings, PropagatorSettings]]:
    """
    Backward and forward propagation settings for every leg, both
    starting from the Lambert state at the leg's time midpoint.
    """
    if not trajectory.legs:
        trajectory.calculate_trajectory()
    mu_c = MU[trajectory.central_body]

    pairs = []
    for leg in trajectory.legs:
        mid_state = kepler_propagate(leg.initial_state[:3], leg.initial_state[3:],
                                     0.5 * leg.time_of_flight, mu_c)

        common = dict(accelerations=list(accelerations[leg.index]),
                      initial_epoch=leg.middle_epoch, initial_state=mid_state,
                      ephemeris=trajectory.ephemeris, dependent_bodies=list(dependent_bodies))
        back_term = _termination(trajectory.ephemeris, leg.departure_epoch, leg.departure_body,
                                 trajectory.central_body, terminate_on_soi)
        fwd_term = _termination(trajectory.ephemeris, leg.arrival_epoch, leg.arrival_body,
                                trajectory.central_body, terminate_on_soi)
        backward = PropagatorSettings(termination=back_term, **common)
        forward = PropagatorSettings(termination=fwd_term, **common)
        pairs.append((backward, forward))
    return pairs


def lambert_state_history(leg, epochs, mu: float) -> pd.DataFrame:
    """Kepler-propagated Lambert arc of a leg at the given epochs."""
    epochs = np.asarray(epochs, dtype=float)
    states = kepler_propagate(leg.initial_state[:3], leg.initial_state[3:],
                              epochs - leg.departure_epoch, mu)
    return pd.DataFrame(states, index=pd.Index(epochs, name="t"), columns=STATE_COLUMNS)


def full_propagation_patched_conics_trajectory(trajectory, propagator_settings,
                                               integrator: IntegratorSettings
                                               ) -> Dict[int, LegResult]:
    """
    Propagate every leg backwards and forwards from its midpoint and
    evaluate the Lambert arc at the same epochs.
    """
    mu_c = MU[trajectory.central_body]
    results = {}
    for leg, (backward, forward) in zip(trajectory.legs, propagator_settings):
        back_states, back_dep = propagate(backward, integrator)
        fwd_states, fwd_dep = propagate(forward, integrator)

        # backward arc runs in decreasing time; its first row is the midpoint
        numerical = pd.concat([back_states.iloc[:0:-1], fwd_states])
        dependent = pd.concat([back_dep.iloc[:0:-1], fwd_dep])
        lambert = lambert_state_history(leg, numerical.index.values, mu_c)

        logger.info("[propagation] leg %d %s -> %s: %d epochs, %.1f .. %.1f d",
                    leg.index, leg.departure_body, leg.arrival_body, len(numerical),
                    numerical.index[0] / 86400.0, numerical.index[-1] / 86400.0)
        results[leg.index] = LegResult(lambert, numerical, dependent)
    return results


def lagrange_interpolate(history: pd.DataFrame, epoch: float, order: int = 8) -> np.ndarray:
    """Lagrange interpolation through the ``order`` nodes nearest to epoch."""
    t = history.index.values
    if len(t) < order:
        raise ValueError(f"need at least {order} nodes, history has {len(t)}")
    if not t[0] <= epoch <= t[-1]:
        raise ValueError(f"epoch {epoch} outside history [{t[0]}, {t[-1]}]")

    idx = np.searchsorted(t, epoch)
    start = int(np.clip(idx - order // 2, 0, len(t) - order))
    nodes = t[start:start + order]
    scale = nodes[-1] - nodes[0]
    interp = BarycentricInterpolator((nodes - nodes[0]) / scale,
                                     history.values[start:start + order])
    return np.asarray(interp((epoch - nodes[0]) / scale), dtype=float)
