"""
Acceleration models for the perturbed propagation of patched-conic legs.

An acceleration is a callable ``acc(t, y) -> ndarray (3,)`` taking the
epoch (s since J2000) and the heliocentric spacecraft state. Settings are
kept as plain maps ``{exerting body: [model name, ...]}`` so the model of
each leg can be logged and inspected before it is instantiated.
"""
from typing import Callable, Dict, List, Sequence

import numpy as np

from .constants import MU

CENTRAL_GRAVITY = "central_gravity"
POINT_MASS_GRAVITY = "point_mass_gravity"

Acceleration = Callable[[float, np.ndarray], np.ndarray]


def central_gravity(mu: float) -> Acceleration:
    def inner(t, y):
        """Point-mass attraction of the body at the frame origin."""
        return -mu * y[:3] / np.linalg.norm(y[:3])**3
    inner.__name__ = CENTRAL_GRAVITY
    return inner


def third_body_point_mass(ephemeris, body: str, mu: float) -> Acceleration:
    """
    Differential attraction of ``body`` on the spacecraft and on the
    central body, which sits at the origin of the propagation frame.
    """
    def inner(t, y):
        body_r = ephemeris.state(body, t)[:3]
        center_a = body_r * mu / np.linalg.norm(body_r)**3
        sc_r = body_r - y[:3]
        sc_a = sc_r * mu / np.linalg.norm(sc_r)**3
        return sc_a - center_a
    inner.__name__ = f"{POINT_MASS_GRAVITY}:{body}"
    return inner


def leg_acceleration_settings(n_legs: int, central_body: str,
                              body_order: Sequence[str]) -> List[Dict[str, List[str]]]:
    """
    Central gravity of the Sun plus point masses of the departure and
    (when different) arrival body of every leg.
    """
    settings = []
    for i in range(n_legs):
        acc = {central_body: [CENTRAL_GRAVITY]}
        acc.setdefault(body_order[i], []).append(POINT_MASS_GRAVITY)
        if i != n_legs - 1 and body_order[i] != body_order[i + 1]:
            acc.setdefault(body_order[i + 1], []).append(POINT_MASS_GRAVITY)
        settings.append(acc)
    return settings


def create_acceleration_models(settings: Dict[str, List[str]], ephemeris,
                               central_body: str) -> List[Acceleration]:
    models = []
    for body, kinds in settings.items():
        for kind in kinds:
            if kind == CENTRAL_GRAVITY:
                if body != central_body:
                    raise ValueError(f"central gravity requested from non-central body {body}")
                models.append(central_gravity(MU[body]))
            elif kind == POINT_MASS_GRAVITY:
                models.append(third_body_point_mass(ephemeris, body, MU[body]))
            else:
                raise ValueError(f"unknown acceleration model {kind!r}")
    return models


def get_acceleration_models_perturbed_patched_conics_trajectory(
        n_legs: int, central_body: str, body_order: Sequence[str],
        ephemeris) -> List[List[Acceleration]]:
    return [create_acceleration_models(s, ephemeris, central_body)
            for s in leg_acceleration_settings(n_legs, central_body, body_order)]


def relative_distance_bodies(body_order: Sequence[str], central_body: str = "Sun") -> List[str]:
    """Unique bodies of the transfer, in order of appearance, then the central body."""
    bodies = []
    for body in body_order:
        if body not in bodies:
            bodies.append(body)
    bodies.append(central_body)
    return bodies


def relative_distances(ephemeris, bodies: Sequence[str], t: float, y: np.ndarray) -> np.ndarray:
    return np.array([np.linalg.norm(y[:3] - ephemeris.state(b, t)[:3]) for b in bodies])


def cowell_rhs(accelerations: Sequence[Acceleration]):
    """First-order equations of motion in Cartesian coordinates."""
    def F(t, y):
        a = np.zeros(3)
        for acc in accelerations:
            a += acc(t, y)
        return np.hstack((y[3:6], a))
    return F
