import json
import logging

import numpy as np
import pytest

from mga_prop import pipeline
from mga_prop.config import load_config
from mga_prop.output import read_data_map
from mga_prop.plotting import plot_results
from mga_prop.propagation import STATE_COLUMNS

PREFIXES = ["lambertResult", "numericalResult", "dependentResult",
            "numericalResultForward", "numericalResultBackward"]


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.INFO)
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture(scope="module")
def run_output(tmp_path_factory):
    """One adaptive-step run of the nominal transfer, shared by the tests below."""
    out = tmp_path_factory.mktemp("high_thrust")
    cfg = load_config(propagation={"integrator": "DOP853", "step": 3600.0, "rtol": 1e-9, "atol": 1e-3},
                      spacecraft={"name": "Cassini-like"})

    log = logging.getLogger("mga_prop.pipeline")
    handler, level = ListHandler(), log.level
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    try:
        summary = pipeline.run(cfg, out)
    finally:
        log.removeHandler(handler)
        log.setLevel(level)
    return out, summary, handler.messages


def test_all_tables_written(run_output):
    out, _, _ = run_output
    for i in range(4):
        for prefix in PREFIXES:
            assert (out / f"{prefix}{i}.dat").is_file()
    assert (out / "maneuvers.dat").is_file()
    assert (out / "summary.json").is_file()


def test_dependent_variables_per_body(run_output):
    out, _, _ = run_output
    # Earth, Venus, Jupiter and the Sun
    dependent = read_data_map(out / "dependentResult0.dat")
    numerical = read_data_map(out / "numericalResult0.dat", STATE_COLUMNS)
    assert dependent.shape[1] == 4
    assert np.array_equal(dependent.index.values, numerical.index.values)
    sun_distance = np.linalg.norm(numerical[["x", "y", "z"]].values, axis=1)
    assert np.allclose(dependent.iloc[:, 3].values, sun_distance, rtol=1e-12, atol=0)


def test_lambert_and_numerical_share_epochs(run_output):
    out, _, _ = run_output
    for i in range(4):
        lam = read_data_map(out / f"lambertResult{i}.dat", STATE_COLUMNS)
        num = read_data_map(out / f"numericalResult{i}.dat", STATE_COLUMNS)
        assert np.array_equal(lam.index.values, num.index.values)
        assert np.all(np.diff(num.index.values) > 0)


def test_repropagation_spans_numerical_solution(run_output):
    out, _, _ = run_output
    for i in range(4):
        num = read_data_map(out / f"numericalResult{i}.dat", STATE_COLUMNS)
        fwd = read_data_map(out / f"numericalResultForward{i}.dat", STATE_COLUMNS)
        back = read_data_map(out / f"numericalResultBackward{i}.dat", STATE_COLUMNS)
        assert fwd.index[0] == back.index[0]
        assert fwd.index[-1] == pytest.approx(num.index[-1], abs=1e-6)
        assert back.index[-1] == pytest.approx(num.index[0], abs=1e-6)


def test_summary_matches_patched_conic(run_output, trajectory):
    out, summary, _ = run_output
    assert summary["total_delta_v"] == pytest.approx(trajectory.total_delta_v, rel=1e-12)
    assert summary["body_order"] == ["Earth", "Venus", "Venus", "Earth", "Jupiter"]
    on_disk = json.loads((out / "summary.json").read_text())
    assert on_disk["total_delta_v"] == pytest.approx(summary["total_delta_v"], rel=1e-12)
    assert on_disk["spacecraft"]["mass"] == 400.0


def test_maneuvers_table(run_output, trajectory):
    out, _, _ = run_output
    lines = (out / "maneuvers.dat").read_text().splitlines()
    assert [line.split("\t")[-1] for line in lines] == trajectory.body_order


def test_plot_results(run_output):
    out, _, _ = run_output
    written = plot_results(out)
    assert [p.name for p in written] == ["trajectory.png", "position_difference.png"]
    assert all(p.stat().st_size > 0 for p in written)


def test_plot_results_needs_tables(tmp_path):
    with pytest.raises(FileNotFoundError):
        plot_results(tmp_path)


def reject_constant(name):
    raise ValueError(f"non-standard JSON constant {name}")


def test_summary_is_strict_json(run_output):
    out, summary, _ = run_output
    on_disk = json.loads((out / "summary.json").read_text(), parse_constant=reject_constant)
    # no departure orbit, and no swingby at the first and last body
    assert np.isnan(summary["departure_delta_v"])
    assert on_disk["departure_delta_v"] is None
    assert on_disk["pericenters"][0] is None and on_disk["pericenters"][-1] is None
    assert all(rp > 0 for rp in on_disk["pericenters"][1:-1])


def test_repropagation_reproduces_numerical_states(run_output):
    out, _, _ = run_output
    for i in range(4):
        num = read_data_map(out / f"numericalResult{i}.dat", STATE_COLUMNS)
        fwd = read_data_map(out / f"numericalResultForward{i}.dat", STATE_COLUMNS)
        back = read_data_map(out / f"numericalResultBackward{i}.dat", STATE_COLUMNS)

        # the midpoint is a node of the numerical solution
        mid = num.loc[fwd.index[0]].values
        assert np.allclose(fwd.values[0], mid, rtol=1e-12, atol=0)
        assert np.allclose(back.values[0], mid, rtol=1e-12, atol=0)

        for end, ref in ((fwd.values[-1], num.values[-1]), (back.values[-1], num.values[0])):
            assert np.linalg.norm(end[:3] - ref[:3]) < 10.0
            assert np.linalg.norm(end[3:] - ref[3:]) < 1e-4


def test_spacecraft_named_in_log(run_output):
    _, summary, messages = run_output
    assert summary["spacecraft"]["name"] == "Cassini-like"
    assert any(m.startswith("Propagating Cassini-like (400.0 kg)") for m in messages)
