"""
Patched-conic multiple-gravity-assist trajectory without deep-space
manoeuvres.

Every leg between consecutive bodies is a heliocentric Lambert arc. The
Delta-V budget is collected at each encounter: an optional escape
impulse at departure, a powered swingby at every intermediate body and
an optional capture impulse at the final body.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .constants import DAY, MU, default_minimum_pericenter_radii
from .dynamics import capture_delta_v, escape_delta_v, gravity_assist_delta_v, lambert_leg

logger = logging.getLogger(__name__)

TRANSFER_CASES = ["EVEEJ", "EVVEJ", "EVEVJ", "EVVMJ", "EVEMJ", "EVMMJ", "EVMVJ"]
TRANSFER_CASE_BODIES = [
    ("Earth", "Earth"), ("Venus", "Earth"), ("Earth", "Venus"), ("Venus", "Mars"),
    ("Earth", "Mars"), ("Mars", "Mars"), ("Mars", "Venus"),
]


class TrajectoryError(ValueError):
    """Inconsistent transfer definition."""


class LegType(enum.Enum):
    MGA_DEPARTURE = "mga_departure"
    MGA_SWINGBY = "mga_swingby"
    CAPTURE = "capture"


@dataclass
class Leg:
    """One heliocentric Lambert arc of the transfer."""
    index: int
    departure_body: str
    arrival_body: str
    departure_epoch: float
    arrival_epoch: float
    departure_state: np.ndarray     # departure body state at departure_epoch
    arrival_state: np.ndarray       # arrival body state at arrival_epoch
    v_departure: np.ndarray         # spacecraft velocity leaving departure body
    v_arrival: np.ndarray           # spacecraft velocity reaching arrival body

    @property
    def time_of_flight(self) -> float:
        return self.arrival_epoch - self.departure_epoch

    @property
    def middle_epoch(self) -> float:
        return 0.5 * (self.departure_epoch + self.arrival_epoch)

    @property
    def initial_state(self) -> np.ndarray:
        return np.hstack((self.departure_state[:3], self.v_departure))


def validate_leg_types(leg_types: Sequence[LegType], n_bodies: int) -> List[LegType]:
    leg_types = [LegType(t) for t in leg_types]
    if len(leg_types) != n_bodies:
        raise TrajectoryError(f"{len(leg_types)} leg types for {n_bodies} bodies")
    if n_bodies < 2:
        raise TrajectoryError("a transfer needs at least two bodies")
    if leg_types[0] is not LegType.MGA_DEPARTURE:
        raise TrajectoryError(f"first leg must be {LegType.MGA_DEPARTURE.value}")
    if leg_types[-1] is not LegType.CAPTURE:
        raise TrajectoryError(f"last leg must be {LegType.CAPTURE.value}")
    for t in leg_types[1:-1]:
        if t is not LegType.MGA_SWINGBY:
            raise TrajectoryError(f"unsupported intermediate leg type {t.value}")
    return leg_types


class Trajectory:
    """
    Semi-analytical patched-conic trajectory.

    Parameters
    ----------
    ephemeris : object with ``state(body, et)``
    body_order : sequence of body names, departure first
    leg_types : one LegType per body
    departure_epoch : float, s since J2000
    times_of_flight : sequence of len(body_order)-1 floats, s
    minimum_pericenter_radii : one radius per body [km]; defaults per body when None
    include_departure_delta_v : add the escape impulse to the total
    departure_orbit, capture_orbit : (semi-major axis [km], eccentricity) or None
    include_arrival_delta_v : add the capture impulse to the total
    """

    def __init__(self, ephemeris, body_order, leg_types, departure_epoch, times_of_flight,
                 minimum_pericenter_radii=None, *,
                 include_departure_delta_v=False, departure_orbit=None,
                 include_arrival_delta_v=True, capture_orbit=None,
                 central_body="Sun"):
        self.ephemeris = ephemeris
        self.body_order = list(body_order)
        self.leg_types = validate_leg_types(leg_types, len(self.body_order))
        self.departure_epoch = float(departure_epoch)
        self.times_of_flight = [float(t) for t in times_of_flight]
        if len(self.times_of_flight) != len(self.body_order) - 1:
            raise TrajectoryError(
                f"{len(self.times_of_flight)} times of flight for {len(self.body_order) - 1} legs")
        if any(t <= 0.0 for t in self.times_of_flight):
            raise TrajectoryError("times of flight must be positive")

        if minimum_pericenter_radii is None:
            minimum_pericenter_radii = default_minimum_pericenter_radii(self.body_order)
        self.minimum_pericenter_radii = list(minimum_pericenter_radii)
        if len(self.minimum_pericenter_radii) != len(self.body_order):
            raise TrajectoryError(f"{len(self.minimum_pericenter_radii)} minimum pericenter radii "
                                  f"for {len(self.body_order)} bodies")

        if include_departure_delta_v and departure_orbit is None:
            raise TrajectoryError("departure Delta V requested without a departure orbit")
        if include_arrival_delta_v and capture_orbit is None:
            raise TrajectoryError("arrival Delta V requested without a capture orbit")
        self.include_departure_delta_v = include_departure_delta_v
        self.include_arrival_delta_v = include_arrival_delta_v
        self.departure_orbit = departure_orbit
        self.capture_orbit = capture_orbit
        self.central_body = central_body

        self.legs: List[Leg] = []
        self.encounter_delta_v: List[float] = []
        self.pericenters: List[float] = []
        self.departure_delta_v = np.nan
        self.capture_delta_v = np.nan
        self.total_delta_v = np.nan

    @property
    def epochs(self) -> np.ndarray:
        return self.departure_epoch + np.concatenate(([0.0], np.cumsum(self.times_of_flight)))

    def _build_legs(self):
        mu_c = MU[self.central_body]
        epochs = self.epochs
        states = [self.ephemeris.state(b, t) for b, t in zip(self.body_order, epochs)]

        self.legs = []
        for i in range(len(self.body_order) - 1):
            v0, v1 = lambert_leg(states[i][:3], states[i + 1][:3],
                                 self.times_of_flight[i], mu_c)
            self.legs.append(Leg(i, self.body_order[i], self.body_order[i + 1],
                                 epochs[i], epochs[i + 1], states[i], states[i + 1], v0, v1))
        return states

    def calculate_trajectory(self) -> float:
        """Solve all legs and return the total Delta-V [km/s]."""
        states = self._build_legs()
        legs = self.legs

        dv = []
        self.pericenters = []

        # departure
        v_inf = np.linalg.norm(legs[0].v_departure - states[0][3:])
        if self.departure_orbit is not None:
            sma, ecc = self.departure_orbit
            self.departure_delta_v = escape_delta_v(MU[self.body_order[0]], sma, ecc, v_inf)
        else:
            self.departure_delta_v = np.nan
        dv.append(self.departure_delta_v if self.include_departure_delta_v else 0.0)
        self.pericenters.append(np.nan)

        # swingbys
        for i in range(1, len(self.body_order) - 1):
            body = self.body_order[i]
            dv_i, rp = gravity_assist_delta_v(legs[i - 1].v_arrival, legs[i].v_departure,
                                              states[i][3:], MU[body],
                                              self.minimum_pericenter_radii[i])
            dv.append(dv_i)
            self.pericenters.append(rp)

        # capture
        v_inf = np.linalg.norm(legs[-1].v_arrival - states[-1][3:])
        if self.capture_orbit is not None:
            sma, ecc = self.capture_orbit
            self.capture_delta_v = capture_delta_v(MU[self.body_order[-1]], sma, ecc, v_inf)
        else:
            self.capture_delta_v = np.nan
        dv.append(self.capture_delta_v if self.include_arrival_delta_v else 0.0)
        self.pericenters.append(np.nan)

        self.encounter_delta_v = dv
        self.total_delta_v = float(np.sum(dv))
        return self.total_delta_v

    def maneuvers(self):
        """Positions [km], epochs [s] and Delta-V [km/s] at every encounter."""
        if not self.legs:
            self.calculate_trajectory()
        positions = [leg.departure_state[:3] for leg in self.legs] + [self.legs[-1].arrival_state[:3]]
        return positions, list(self.epochs), list(self.encounter_delta_v)


def transfer_body_order(case: int, cases=None) -> List[str]:
    """Earth-Venus-X-Y-Jupiter with (X, Y) taken from the transfer case table."""
    cases = TRANSFER_CASE_BODIES if cases is None else cases
    if not 0 <= case < len(cases):
        raise TrajectoryError(f"transfer case {case} outside 0..{len(cases) - 1}")
    x, y = cases[case]
    return ["Earth", "Venus", x, y, "Jupiter"]


def default_leg_types(n_bodies: int) -> List[LegType]:
    return [LegType.MGA_DEPARTURE] + [LegType.MGA_SWINGBY] * (n_bodies - 2) + [LegType.CAPTURE]


def split_parameters(parameters):
    """
    [t0_days, tof1_days, ..., tofN_days, case] -> (departure_epoch [s], tofs [s], case).
    """
    parameters = list(parameters)
    if len(parameters) < 3:
        raise TrajectoryError("parameters need a departure date, a time of flight and a case")
    case = int(round(parameters[-1]))
    departure_epoch = parameters[0] * DAY
    tofs = [p * DAY for p in parameters[1:-1]]
    return departure_epoch, tofs, case


def trajectory_from_parameters(ephemeris, parameters, *, cases=None, **kwargs) -> Trajectory:
    departure_epoch, tofs, case = split_parameters(parameters)
    body_order = transfer_body_order(case, cases)
    if len(tofs) != len(body_order) - 1:
        raise TrajectoryError(f"{len(tofs)} times of flight for {len(body_order) - 1} legs")
    return Trajectory(ephemeris, body_order, default_leg_types(len(body_order)),
                      departure_epoch, tofs, **kwargs)
