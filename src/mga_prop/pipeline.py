"""
High-thrust Earth-Venus-X-Y-Jupiter transfer: patched conic plus
perturbed numerical propagation of every leg.

The patched conic gives the Delta-V at arrival and at each flyby (no
DSMs; the departure Delta-V is left out by default). Each leg is then
propagated numerically from its time midpoint, forwards and backwards,
under the Sun's point-mass gravity (Sun fixed at the origin) perturbed
by the point masses of the departure and arrival planets. The dynamical
model is thus deliberately not fully consistent with the patched conic.

Output tables per leg ``i``:

* lambertResult{i}.dat -- patched-conic state history
* numericalResult{i}.dat -- numerically propagated state history
* dependentResult{i}.dat -- distances to the transfer bodies and the Sun
* numericalResultForward{i}.dat / numericalResultBackward{i}.dat --
  re-propagation from the interpolated numerical midpoint state
"""
from __future__ import annotations

import logging
import time
from pathlib import Path

import numpy as np

from .accelerations import (get_acceleration_models_perturbed_patched_conics_trajectory,
                            relative_distance_bodies)
from .constants import DAY
from .ephemeris import create_ephemeris
from .output import write_data_map, write_json, write_leg_results, write_maneuvers
from .propagation import (IntegratorSettings, Termination, full_propagation_patched_conics_trajectory,
                          get_patched_conic_propagator_settings, lagrange_interpolate, propagate)
from .trajectory import trajectory_from_parameters

logger = logging.getLogger(__name__)


def integrator_from_config(prop_cfg: dict) -> IntegratorSettings:
    max_step = prop_cfg["max_step"]
    return IntegratorSettings(
        method=prop_cfg["integrator"],
        step=float(prop_cfg["step"]),
        rtol=float(prop_cfg["rtol"]),
        atol=float(prop_cfg["atol"]),
        max_step=np.inf if max_step is None else float(max_step),
    )


def build_trajectory(ephemeris, transfer_cfg: dict, parameters=None):
    """Patched-conic trajectory for a parameter vector (defaults to the configured one)."""
    parameters = transfer_cfg["parameters"] if parameters is None else parameters
    orbit = lambda o: None if o is None else tuple(o)
    return trajectory_from_parameters(
        ephemeris, parameters,
        cases=[tuple(p) for p in transfer_cfg["case_bodies"]],
        minimum_pericenter_radii=transfer_cfg["minimum_pericenter_radii"],
        include_departure_delta_v=transfer_cfg["include_departure_delta_v"],
        departure_orbit=orbit(transfer_cfg["departure_orbit"]),
        include_arrival_delta_v=transfer_cfg["include_arrival_delta_v"],
        capture_orbit=orbit(transfer_cfg["capture_orbit"]),
        central_body=transfer_cfg["central_body"],
    )


def repropagate_from_midpoints(results, propagator_settings, integrator, order, output_dir):
    """
    Interpolate each leg's numerical solution at the leg midpoint and
    propagate it again forwards to the last and backwards to the first
    epoch of that solution, with time termination only.
    """
    written = {}
    for (i, res), (_, forward_settings) in zip(results.items(), propagator_settings):
        solution = res.numerical
        middle_epoch = forward_settings.initial_epoch
        middle_state = lagrange_interpolate(solution, middle_epoch, order)

        forward = forward_settings.reset(initial_state=middle_state,
                                         termination=Termination(solution.index[-1]))
        fwd_states, _ = propagate(forward, integrator)
        fwd_path = write_data_map(fwd_states, f"numericalResultForward{i}.dat", output_dir)

        backward = forward_settings.reset(initial_state=middle_state,
                                          termination=Termination(solution.index[0]))
        back_states, _ = propagate(backward, integrator)
        back_path = write_data_map(back_states, f"numericalResultBackward{i}.dat", output_dir)

        written[i] = (fwd_path, back_path)
    return written


def run(cfg: dict, output_dir: str | Path | None = None) -> dict:
    """Run the full example and return a summary of what was computed."""
    output_dir = Path(output_dir or cfg["output"]["directory"])
    transfer_cfg, prop_cfg = cfg["transfer"], cfg["propagation"]
    central_body = transfer_cfg["central_body"]

    ephemeris = create_ephemeris(cfg)

    # patched conic
    trajectory = build_trajectory(ephemeris, transfer_cfg)
    total_dv = trajectory.calculate_trajectory()
    logger.info("Total/capture Delta V: %.6f %.6f km/s", total_dv, trajectory.capture_delta_v)
    positions, epochs, delta_vs = trajectory.maneuvers()
    write_maneuvers(positions, epochs, delta_vs, trajectory.body_order, output_dir)

    # perturbed dynamics
    accelerations = get_acceleration_models_perturbed_patched_conics_trajectory(
        len(trajectory.leg_types), central_body, trajectory.body_order, ephemeris)
    integrator = integrator_from_config(prop_cfg)
    dependent_bodies = relative_distance_bodies(trajectory.body_order, central_body)
    propagator_settings = get_patched_conic_propagator_settings(
        trajectory, accelerations, dependent_bodies,
        terminate_on_soi=prop_cfg["terminate_on_soi"])

    logger.info("Propagating %s (%.1f kg) along %s with %s",
                cfg["spacecraft"]["name"], cfg["spacecraft"]["mass"],
                "-".join(trajectory.body_order), integrator.method)
    start = time.perf_counter()
    results = full_propagation_patched_conics_trajectory(trajectory, propagator_settings, integrator)
    run_time = time.perf_counter() - start
    logger.info("Operation took: %.3f seconds", run_time)

    repropagate_from_midpoints(results, propagator_settings, integrator,
                               prop_cfg["interpolation_order"], output_dir)
    write_leg_results(results, output_dir)

    summary = {
        "case": int(round(transfer_cfg["parameters"][-1])),
        "body_order": trajectory.body_order,
        "parameters": transfer_cfg["parameters"],
        "spacecraft": cfg["spacecraft"],
        "total_delta_v": total_dv,
        "capture_delta_v": trajectory.capture_delta_v,
        "departure_delta_v": trajectory.departure_delta_v,
        "encounter_delta_v": delta_vs,
        "encounter_epochs_days": [e / DAY for e in epochs],
        "pericenters": trajectory.pericenters,
        "propagation_run_time": run_time,
        "final_position_error": {
            i: float(np.linalg.norm(res.numerical.values[-1, :3] - res.lambert.values[-1, :3]))
            for i, res in results.items()
        },
    }
    write_json(summary, output_dir / "summary.json")

    if cfg["output"]["plot"]:
        from .plotting import plot_results
        plot_results(output_dir)

    return summary
