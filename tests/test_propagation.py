import numpy as np
import pandas as pd
import pytest

from mga_prop.accelerations import (central_gravity,
                                    get_acceleration_models_perturbed_patched_conics_trajectory,
                                    relative_distance_bodies)
from mga_prop.constants import DAY, MU, sphere_of_influence
from mga_prop.dynamics import kepler_propagate
from mga_prop.propagation import (STATE_COLUMNS, IntegratorSettings, PropagatorSettings,
                                  Termination, full_propagation_patched_conics_trajectory,
                                  get_patched_conic_propagator_settings, lagrange_interpolate,
                                  propagate, rk4)

MU_SUN = MU["Sun"]
Y0 = np.array([1.5e8, 0.0, 0.0, 0.0, 32.0, 1.0])

DOP853 = IntegratorSettings(method="DOP853", step=3600.0, rtol=1e-9, atol=1e-3)


def sun_only(ephemeris, t0, tf, **kwargs):
    return PropagatorSettings(accelerations=[central_gravity(MU_SUN)], initial_epoch=t0,
                              initial_state=Y0, termination=Termination(tf),
                              ephemeris=ephemeris, **kwargs)


def test_rk4_single_step():
    """y' = y over one step reproduces the Taylor series to fourth order."""
    y1 = rk4(F=lambda t, y: y, t0=0.0, y0=np.array([1.0]), dt=0.1)
    assert y1[0] == pytest.approx(1 + 0.1 + 0.1**2/2 + 0.1**3/6 + 0.1**4/24)


@pytest.mark.parametrize("integrator", [IntegratorSettings(step=3600.0), DOP853])
def test_two_body_propagation_matches_kepler(ephemeris, integrator):
    states, dependent = propagate(sun_only(ephemeris, 0.0, 30 * DAY, dependent_bodies=["Sun"]),
                                  integrator)
    assert list(states.columns) == STATE_COLUMNS
    assert states.index[0] == 0.0
    assert states.index[-1] == pytest.approx(30 * DAY)

    expected = kepler_propagate(Y0[:3], Y0[3:], states.index.values, MU_SUN)
    assert np.allclose(states[["x", "y", "z"]].values, expected[:, :3], rtol=0, atol=10.0)
    assert np.allclose(dependent["d_Sun"].values, np.linalg.norm(states.values[:, :3], axis=1))


def test_backward_propagation(ephemeris):
    states, _ = propagate(sun_only(ephemeris, 0.0, -10 * DAY), IntegratorSettings(step=3600.0))
    assert np.all(np.diff(states.index.values) < 0)
    assert states.index[-1] == pytest.approx(-10 * DAY)
    assert len(states) == 241


def test_zero_duration(ephemeris):
    with pytest.raises(ValueError):
        propagate(sun_only(ephemeris, 0.0, 0.0), DOP853)


def test_reset_copies_settings(ephemeris):
    settings = sun_only(ephemeris, 0.0, DAY)
    moved = settings.reset(initial_state=2 * Y0, termination=Termination(2 * DAY))
    assert np.array_equal(settings.initial_state, Y0)
    assert moved.termination.final_epoch == 2 * DAY
    assert moved.accelerations is settings.accelerations


@pytest.fixture
def propagator_settings(trajectory):
    accelerations = get_acceleration_models_perturbed_patched_conics_trajectory(
        len(trajectory.leg_types), "Sun", trajectory.body_order, trajectory.ephemeris)
    return get_patched_conic_propagator_settings(
        trajectory, accelerations, relative_distance_bodies(trajectory.body_order))


def test_patched_conic_propagator_settings(trajectory, propagator_settings):
    assert len(propagator_settings) == len(trajectory.legs)
    for leg, (backward, forward) in zip(trajectory.legs, propagator_settings):
        assert backward.initial_epoch == forward.initial_epoch == leg.middle_epoch
        assert np.array_equal(backward.initial_state, forward.initial_state)
        assert backward.termination.final_epoch == leg.departure_epoch
        assert backward.termination.soi_body == leg.departure_body
        assert forward.termination.final_epoch == leg.arrival_epoch
        assert forward.termination.soi_body == leg.arrival_body
        arrival_distance = np.linalg.norm(trajectory.ephemeris.state(leg.arrival_body, leg.arrival_epoch)[:3])
        assert forward.termination.soi_radius == pytest.approx(
            sphere_of_influence(leg.arrival_body, "Sun", arrival_distance), rel=1e-12)
        assert forward.dependent_bodies == ["Earth", "Venus", "Jupiter", "Sun"]


def test_forward_propagation_stops_at_sphere_of_influence(trajectory, propagator_settings):
    leg = trajectory.legs[0]
    _, forward = propagator_settings[0]
    states, dependent = propagate(forward, DOP853)

    assert states.index[-1] < leg.arrival_epoch
    soi = forward.termination.soi_radius
    assert dependent["d_Venus"].iloc[-1] == pytest.approx(soi, rel=1e-3)
    assert dependent["d_Venus"].iloc[:-1].min() > soi * (1 - 1e-3)


def test_rk4_forward_propagation_stops_at_sphere_of_influence(trajectory, propagator_settings):
    leg = trajectory.legs[0]
    _, forward = propagator_settings[0]
    states, dependent = propagate(forward, IntegratorSettings(step=3600.0))

    soi = forward.termination.soi_radius
    assert states.index[-1] < leg.arrival_epoch
    assert dependent["d_Venus"].iloc[-1] <= soi
    assert dependent["d_Venus"].iloc[:-1].min() > soi


def test_backward_propagation_stops_at_departure_sphere_of_influence(trajectory, propagator_settings):
    leg = trajectory.legs[0]
    backward, _ = propagator_settings[0]
    states, dependent = propagate(backward, DOP853)

    soi = backward.termination.soi_radius
    assert backward.termination.soi_body == "Earth"
    assert np.all(np.diff(states.index.values) < 0)
    assert leg.departure_epoch < states.index[-1] < leg.middle_epoch
    assert dependent["d_Earth"].iloc[-1] == pytest.approx(soi, rel=1e-3)
    assert dependent["d_Earth"].iloc[:-1].min() > soi * (1 - 1e-3)


def test_settings_without_soi_termination(trajectory):
    accelerations = get_acceleration_models_perturbed_patched_conics_trajectory(
        len(trajectory.leg_types), "Sun", trajectory.body_order, trajectory.ephemeris)
    settings = get_patched_conic_propagator_settings(
        trajectory, accelerations, relative_distance_bodies(trajectory.body_order),
        terminate_on_soi=False)

    for leg, (backward, forward) in zip(trajectory.legs, settings):
        assert backward.termination.soi_body is None
        assert forward.termination.soi_body is None
        assert backward.termination.final_epoch == leg.departure_epoch
        assert forward.termination.final_epoch == leg.arrival_epoch

    leg = trajectory.legs[0]
    backward, forward = settings[0]
    rk4_hourly = IntegratorSettings(step=3600.0)
    back_states, _ = propagate(backward, rk4_hourly)
    fwd_states, fwd_dep = propagate(forward, rk4_hourly)
    assert back_states.index[-1] == leg.departure_epoch
    assert fwd_states.index[-1] == leg.arrival_epoch
    # runs on into the arrival body's sphere of influence
    soi = sphere_of_influence("Venus", "Sun", np.linalg.norm(leg.arrival_state[:3]))
    assert fwd_dep["d_Venus"].iloc[-1] < soi


def test_full_propagation(trajectory, propagator_settings):
    results = full_propagation_patched_conics_trajectory(trajectory, propagator_settings, DOP853)
    assert sorted(results) == [0, 1, 2, 3]

    for leg in trajectory.legs:
        res = results[leg.index]
        t = res.numerical.index.values
        assert np.all(np.diff(t) > 0)
        assert leg.departure_epoch <= t[0] < leg.middle_epoch < t[-1] <= leg.arrival_epoch
        assert np.array_equal(res.lambert.index.values, t)
        assert np.array_equal(res.dependent.index.values, t)
        assert list(res.dependent.columns) == ["d_Earth", "d_Venus", "d_Jupiter", "d_Sun"]

        # both histories share the Lambert state at the leg midpoint
        mid = res.numerical.loc[leg.middle_epoch].values
        assert np.allclose(mid, res.lambert.loc[leg.middle_epoch].values, rtol=1e-9)


def test_lagrange_interpolation_exact_for_polynomials():
    t = np.linspace(0.0, 20.0 * DAY, 21)
    s = t / DAY
    history = pd.DataFrame(np.column_stack([s**k for k in range(6)]),
                           index=pd.Index(t, name="t"), columns=STATE_COLUMNS)
    epoch = 7.3 * DAY
    expected = [7.3**k for k in range(6)]
    assert np.allclose(lagrange_interpolate(history, epoch), expected, rtol=1e-9)
    assert np.allclose(lagrange_interpolate(history, t[0], order=4), history.values[0])
    assert np.allclose(lagrange_interpolate(history, t[-1]), history.values[-1])


def test_lagrange_interpolation_errors():
    history = pd.DataFrame(np.zeros((5, 6)), index=np.arange(5.0), columns=STATE_COLUMNS)
    with pytest.raises(ValueError):
        lagrange_interpolate(history, 2.0)
    with pytest.raises(ValueError):
        lagrange_interpolate(history, 5.0, order=4)
