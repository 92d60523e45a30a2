"""
Heliocentric ECLIPJ2000 ephemerides of the Sun and planets.

Three providers share one interface, ``state(body, et) -> ndarray (6,)``
in km and km/s with ``et`` in seconds since J2000:

* ApproximateEphemeris -- JPL mean Keplerian elements with secular rates
  (Standish, "Keplerian Elements for Approximate Positions of the Major
  Planets", table 1, 1800 AD - 2050 AD). Needs no data files.
* SpiceEphemeris -- direct SPICE queries against furnished kernels.
* TabulatedEphemeris -- Hermite splines through sampled states, built
  once from SPICE (or any other provider) and cached with pickle.
"""
from __future__ import annotations

import logging
import pickle
from pathlib import Path

import numpy as np
import pandas as pd
import spiceypy as spice
from poliastro.core.angles import E_to_nu, M_to_E
from poliastro.core.elements import coe2rv
from scipy.interpolate import CubicHermiteSpline

from .constants import AU, DAY, JULIAN_CENTURY_DAYS, MU, NAIF_ID

logger = logging.getLogger(__name__)

COORDS = ("x", "y", "z")

# a [au], e, I [deg], L [deg], long. peri. [deg], long. node [deg]; rates per century
APPROXIMATE_ELEMENTS = {
    "Mercury": ((0.38709927, 0.20563593, 7.00497902, 252.25032350, 77.45779628, 48.33076593),
                (0.00000037, 0.00001906, -0.00594749, 149472.67411175, 0.16047689, -0.12534081)),
    "Venus":   ((0.72333566, 0.00677672, 3.39467605, 181.97909950, 131.60246718, 76.67984255),
                (0.00000390, -0.00004107, -0.00078890, 58517.81538729, 0.00268329, -0.27769418)),
    "Earth":   ((1.00000261, 0.01671123, -0.00001531, 100.46457166, 102.93768193, 0.0),
                (0.00000562, -0.00004392, -0.01294668, 35999.37244981, 0.32327364, 0.0)),
    "Mars":    ((1.52371034, 0.09339410, 1.84969142, -4.55343205, -23.94362959, 49.55953891),
                (0.00001847, 0.00007882, -0.00813131, 19140.30268499, 0.44441088, -0.29257343)),
    "Jupiter": ((5.20288700, 0.04838624, 1.30439695, 34.39644051, 14.72847983, 100.47390909),
                (-0.00011607, -0.00013253, -0.00183714, 3034.74612775, 0.21252668, 0.20469106)),
    "Saturn":  ((9.53667594, 0.05386179, 2.48599187, 49.95424423, 92.59887831, 113.66242448),
                (-0.00125060, -0.00050991, 0.00193609, 1222.49362201, -0.41897216, -0.28867794)),
    "Uranus":  ((19.18916464, 0.04725744, 0.77263783, 313.23810451, 170.95427630, 74.01692503),
                (-0.00196176, -0.00004397, -0.00242939, 428.48202785, 0.40805281, 0.04240589)),
    "Neptune": ((30.06992276, 0.00859048, 1.77004347, -55.12002969, 44.96476227, 131.78422574),
                (0.00026291, 0.00005105, 0.00035372, 218.45945325, -0.32241464, -0.00508664)),
}


class ApproximateEphemeris:
    """Analytic mean-element ephemeris, Sun fixed at the origin."""

    bodies = ("Sun",) + tuple(APPROXIMATE_ELEMENTS)

    def state(self, body: str, et: float) -> np.ndarray:
        if body == "Sun":
            return np.zeros(6)
        if body not in APPROXIMATE_ELEMENTS:
            raise ValueError(f"no approximate elements for body {body!r}")

        elements, rates = APPROXIMATE_ELEMENTS[body]
        T = et / DAY / JULIAN_CENTURY_DAYS
        a, e, inc, L, varpi, raan = (x0 + dx * T for x0, dx in zip(elements, rates))

        inc, L, varpi, raan = np.radians([inc, L, varpi, raan])
        argp = varpi - raan
        M = (L - varpi + np.pi) % (2*np.pi) - np.pi

        nu = E_to_nu(M_to_E(M, e), e)
        p = a * AU * (1.0 - e**2)
        r, v = coe2rv(MU["Sun"] + MU[body], p, e, inc, raan, argp, nu)
        return np.hstack((r, v))


def load_kernels(kernels, data_dir: str | Path = "data") -> list[Path]:
    """Furnish SPICE kernels, resolving relative names against data_dir."""
    loaded = []
    for kernel in kernels:
        path = Path(kernel)
        if not path.is_absolute():
            path = Path(data_dir) / path
        path = path.resolve()
        if not path.exists():
            raise FileNotFoundError(f"SPICE kernel not found: {path}")
        spice.furnsh(str(path))
        loaded.append(path)
    logger.info("[ephemeris] furnished %d kernels", len(loaded))
    return loaded


class SpiceEphemeris:
    """States straight from spkezr; kernels must already be furnished."""

    def __init__(self, frame: str = "ECLIPJ2000", observer: str = "Sun"):
        self.frame = frame
        self.observer = str(NAIF_ID[observer])

    def state(self, body: str, et: float) -> np.ndarray:
        state, _ = spice.spkezr(str(NAIF_ID[body]), et, self.frame, "NONE", self.observer)
        return np.asarray(state, dtype=float)


class TabulatedEphemeris:
    """
    Cubic Hermite interpolation of a table of sampled body states.

    The table has one row per (time, body) with columns
    ``t_num, body, x, y, z, vx, vy, vz``; ``t_num`` is ET in seconds.
    Velocities serve as the spline slopes, so positions and velocities
    stay consistent between the nodes.
    """

    def __init__(self, table: pd.DataFrame):
        self.table = table
        self.t0 = float(table.t_num.min())
        self.t1 = float(table.t_num.max())
        self.bodies = tuple(table.body.unique())

        self.splines = {}
        self.derivatives = {}
        for b in self.bodies:
            dfb = table[table.body == b].sort_values("t_num")
            t = dfb["t_num"].values
            for coord in COORDS:
                self.splines[(b, coord)] = CubicHermiteSpline(
                    t, dfb[coord].values, dfb["v" + coord].values)
                self.derivatives[(b, coord)] = self.splines[(b, coord)].derivative()

    def state(self, body: str, et):
        if (body, "x") not in self.splines:
            raise ValueError(f"body {body!r} not tabulated")
        if np.any(np.asarray(et) < self.t0) or np.any(np.asarray(et) > self.t1):
            raise ValueError(f"epoch outside tabulated span [{self.t0}, {self.t1}]")

        r = [self.splines[(body, c)](et) for c in COORDS]
        v = [self.derivatives[(body, c)](et) for c in COORDS]
        return np.array(r + v)

    @classmethod
    def from_ephemeris(cls, source, bodies, start_et: float, end_et: float,
                       step: float = DAY) -> "TabulatedEphemeris":
        rows = []
        for t_et in np.arange(start_et, end_et + step, step):
            for name in bodies:
                x, y, z, vx, vy, vz = source.state(name, t_et)
                rows.append({
                    "t_num": float(t_et), "body": name,
                    "x": x, "y": y, "z": z,
                    "vx": vx, "vy": vy, "vz": vz
                })
        return cls(pd.DataFrame(rows))

    @classmethod
    def from_spice(cls, bodies, start_utc: str, periods: int, freq: str = "1D",
                   frame: str = "ECLIPJ2000") -> "TabulatedEphemeris":
        """Sample SPICE on a calendar grid; kernels must be furnished."""
        source = SpiceEphemeris(frame=frame)
        times_utc = pd.date_range(start_utc, periods=periods, freq=freq)
        times_et = [spice.utc2et(t.strftime("%Y-%m-%dT%H:%M:%S")) for t in times_utc]

        rows = []
        for t_utc, t_et in zip(times_utc, times_et):
            for name in bodies:
                x, y, z, vx, vy, vz = source.state(name, t_et)
                rows.append({
                    "time": t_utc, "t_num": t_et, "body": name,
                    "x": x, "y": y, "z": z,
                    "vx": vx, "vy": vy, "vz": vz
                })
        return cls(pd.DataFrame(rows))

    def save(self, cache_file: str | Path) -> Path:
        cache_file = Path(cache_file)
        cache_file.parent.mkdir(parents=True, exist_ok=True)
        with cache_file.open("wb") as f:
            pickle.dump({"table": self.table, "bodies": self.bodies, "MU": MU}, f)
        return cache_file

    @classmethod
    def load(cls, cache_file: str | Path) -> "TabulatedEphemeris":
        with Path(cache_file).open("rb") as f:
            cached = pickle.load(f)
        return cls(cached["table"])


def precompute(cfg: dict) -> Path:
    """
    Called once from the CLI to load kernels, sample the ephemeris and
    pickle the table so later runs avoid SPICE I/O.
    """
    eph_cfg, spice_cfg = cfg["ephemeris"], cfg["spice"]
    load_kernels(spice_cfg["kernels"], spice_cfg["data_dir"])
    try:
        tab = TabulatedEphemeris.from_spice(
            eph_cfg["bodies"], eph_cfg["start_utc"], eph_cfg["periods"],
            eph_cfg["freq"], spice_cfg["frame"])
    finally:
        spice.kclear()

    cache_file = tab.save(eph_cfg["cache_file"])
    logger.info("[ephemeris] cached table -> %s", cache_file)
    return cache_file


def create_ephemeris(cfg: dict):
    """Build the provider named in the ``ephemeris`` config section."""
    provider = cfg["ephemeris"]["provider"]
    if provider == "approximate":
        return ApproximateEphemeris()
    if provider == "spice":
        spice_cfg = cfg["spice"]
        load_kernels(spice_cfg["kernels"], spice_cfg["data_dir"])
        return SpiceEphemeris(frame=spice_cfg["frame"])
    if provider == "tabulated":
        cache_file = Path(cfg["ephemeris"]["cache_file"])
        if not cache_file.exists():
            precompute(cfg)
        return TabulatedEphemeris.load(cache_file)
    raise ValueError(f"unknown ephemeris provider {provider!r}")
