import matplotlib
matplotlib.use("Agg")

import pytest

from mga_prop.config import load_config
from mga_prop.ephemeris import ApproximateEphemeris
from mga_prop.pipeline import build_trajectory

NOMINAL_PARAMETERS = [-1851.46422926478, 94.13188652993128, 381.9429079287791,
                      55.6729929900098, 700.990295462437, 1]


@pytest.fixture
def nominal_parameters():
    """Departure date and times of flight [d], then the transfer case (EVVEJ)."""
    return list(NOMINAL_PARAMETERS)


@pytest.fixture
def ephemeris():
    """Analytic planet positions, so no SPICE kernels are needed."""
    return ApproximateEphemeris()


@pytest.fixture
def cfg():
    return load_config()


@pytest.fixture
def fast_cfg(tmp_path):
    """
    Default configuration with an adaptive integrator, so the whole
    transfer propagates in seconds instead of the fixed-step minutes.
    """
    return load_config(
        propagation={"integrator": "DOP853", "step": 3600.0, "rtol": 1e-9, "atol": 1e-3},
        output={"directory": str(tmp_path / "out")},
    )


@pytest.fixture
def trajectory(ephemeris, cfg):
    """Nominal EVVEJ patched conic, already solved."""
    traj = build_trajectory(ephemeris, cfg["transfer"], NOMINAL_PARAMETERS)
    traj.calculate_trajectory()
    return traj
