import pytest

from mga_prop import cli


def test_parser_defaults():
    args = cli.build_parser().parse_args(["run"])
    assert args.cmd == "run"
    assert args.config is None
    assert args.output is None
    assert not args.verbose


def test_parser_search_seed():
    args = cli.build_parser().parse_args(["-v", "search", "cfg.yaml", "--seed", "7"])
    assert args.verbose
    assert args.config == "cfg.yaml"
    assert args.seed == 7


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_run_dispatch(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.pipeline, "run", lambda cfg, output: calls.append((cfg, output)))
    cli.main(["run", "--output", "x"])
    assert len(calls) == 1
    cfg, output = calls[0]
    assert output == "x"
    assert cfg["propagation"]["integrator"] == "rk4"


def test_search_seed_override(monkeypatch):
    seen = []
    monkeypatch.setattr(cli, "run_search", lambda cfg: seen.append(cfg["search"]["seed"]))
    cli.main(["search", "--seed", "11"])
    assert seen == [11]


def test_plot_without_results(tmp_path):
    with pytest.raises(FileNotFoundError):
        cli.main(["plot", str(tmp_path)])
