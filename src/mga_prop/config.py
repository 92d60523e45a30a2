"""
Run configuration.

Configurations are YAML files holding nested plain dicts. Whatever a
file leaves out is taken from DEFAULTS, which reproduce the high-thrust
Earth-Venus-X-Y-Jupiter example.
"""
from __future__ import annotations

import copy
from pathlib import Path

import yaml

from .trajectory import TRANSFER_CASE_BODIES, TRANSFER_CASES


class ConfigError(ValueError):
    """Invalid run configuration."""


DEFAULTS = {
    "ephemeris": {
        "provider": "approximate",          # approximate | spice | tabulated
        "cache_file": "cache/ephem_tabulated.pkl",
        "bodies": ["Sun", "Mercury", "Venus", "Earth", "Mars", "Jupiter", "Saturn"],
        "start_utc": "1989-08-01",
        "periods": 16790,
        "freq": "1D",
    },
    "spice": {
        "data_dir": "data",
        "kernels": ["de440.bsp", "naif0012.tls"],
        "frame": "ECLIPJ2000",
    },
    "transfer": {
        "central_body": "Sun",
        "cases": TRANSFER_CASES,
        "case_bodies": [list(p) for p in TRANSFER_CASE_BODIES],
        # t0 [d since J2000], four times of flight [d], transfer case
        "parameters": [-1851.46422926478, 94.13188652993128, 381.9429079287791,
                       55.6729929900098, 700.990295462437, 1],
        "minimum_pericenter_radii": None,   # defaults per body when null
        "include_departure_delta_v": False,
        "departure_orbit": None,            # [sma km, ecc]
        "include_arrival_delta_v": True,
        "capture_orbit": [1.0895e5 / 0.02, 0.98],
    },
    "spacecraft": {
        "name": "Spacecraft",
        "mass": 400.0,
    },
    "propagation": {
        "integrator": "rk4",
        "step": 1000.0,
        "rtol": 1e-10,
        "atol": 1e-3,
        "max_step": None,
        "terminate_on_soi": True,
        "interpolation_order": 8,
    },
    "output": {
        "directory": "outputs/high_thrust",
        "plot": False,
    },
    "search": {
        "seed": None,
        "pop_size": 30,
        "generations": 20,
        "elite": 2,
        "tournament_k": 3,
        "cx_prob": 0.9,
        "int_mut_prob": 0.1,
        "real_mut_prob": 0.2,
        "local_refine": True,
        "maxiter": 50,
        "departure_bounds": [-2500.0, -1000.0],
        "tof_bounds": [[30.0, 500.0], [50.0, 800.0], [50.0, 800.0], [300.0, 1500.0]],
        "output_dir": "outputs",
    },
}


def _merge(base: dict, override: dict, path: str = "") -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if key not in base:
            raise ConfigError(f"unknown config key {path}{key}")
        if isinstance(base[key], dict):
            if not isinstance(value, dict):
                raise ConfigError(f"config key {path}{key} must be a mapping")
            merged[key] = _merge(base[key], value, f"{path}{key}.")
        else:
            merged[key] = value
    return merged


def validate(cfg: dict) -> dict:
    transfer = cfg["transfer"]
    if len(transfer["cases"]) != len(transfer["case_bodies"]):
        raise ConfigError("transfer.cases and transfer.case_bodies differ in length")
    params = transfer["parameters"]
    if len(params) < 3:
        raise ConfigError("transfer.parameters needs t0, at least one time of flight and a case")
    if any(p <= 0 for p in params[1:-1]):
        raise ConfigError("times of flight in transfer.parameters must be positive")
    if not 0 <= int(params[-1]) < len(transfer["cases"]):
        raise ConfigError(f"transfer case {params[-1]} outside 0..{len(transfer['cases']) - 1}")
    for key in ("departure_orbit", "capture_orbit"):
        orbit = transfer[key]
        if orbit is not None and (len(orbit) != 2 or not 0.0 <= orbit[1] < 1.0 or orbit[0] <= 0):
            raise ConfigError(f"transfer.{key} must be [sma > 0, 0 <= ecc < 1]")
    radii = transfer["minimum_pericenter_radii"]
    if radii is not None and len(radii) != len(params) - 1:
        raise ConfigError(f"transfer.minimum_pericenter_radii needs one radius per body, "
                          f"{len(params) - 1} in this transfer")

    prop = cfg["propagation"]
    if prop["step"] <= 0:
        raise ConfigError("propagation.step must be positive")
    if prop["interpolation_order"] < 2:
        raise ConfigError("propagation.interpolation_order must be at least 2")

    if cfg["ephemeris"]["provider"] not in ("approximate", "spice", "tabulated"):
        raise ConfigError(f"unknown ephemeris provider {cfg['ephemeris']['provider']!r}")

    search = cfg["search"]
    if len(search["tof_bounds"]) != len(params) - 2:
        raise ConfigError("search.tof_bounds needs one [lo, hi] pair per time of flight")
    if search["elite"] > search["pop_size"] or search["tournament_k"] > search["pop_size"]:
        raise ConfigError("search.elite and search.tournament_k must not exceed pop_size")
    return cfg


def load_config(cfg_path: str | Path | None = None, **overrides) -> dict:
    """Read a YAML config (or none), merge it over DEFAULTS and validate."""
    data = {}
    if cfg_path is not None:
        data = yaml.safe_load(Path(cfg_path).read_text()) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{cfg_path}: top level must be a mapping")
    cfg = _merge(DEFAULTS, data)
    if overrides:
        cfg = _merge(cfg, overrides)
    return validate(cfg)
