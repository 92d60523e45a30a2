import argparse
import logging
from functools import partial

from . import ephemeris, pipeline, plotting
from .config import load_config
from .cost import chromosome_cost
from .search.ga import GA
from .search.local import local_NLP

logger = logging.getLogger(__name__)


def run_search(cfg: dict):
    eph = ephemeris.create_ephemeris(cfg)
    cost_fn = partial(chromosome_cost, ephemeris=eph, transfer_cfg=cfg["transfer"])

    ga = GA.from_config(cfg, cost_fn)
    if cfg["search"]["local_refine"]:
        ga.local_refiner = partial(
            local_NLP,
            cost_fn = cost_fn,
            int_bounds = ga.int_bounds,
            real_bounds = ga.real_bounds,
            maxiter = cfg["search"]["maxiter"],
        )

    best = ga.run()
    ga.save(best, cfg["search"]["output_dir"])
    logger.info("Best ΔV = %.3f km/s", best["score"])
    return best


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mga-prop")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    pre = sub.add_parser("precompute-ephemeris")
    pre.add_argument("config", type=str)

    run = sub.add_parser("run")
    run.add_argument("config", type=str, nargs="?", default=None)
    run.add_argument("--output", type=str, default=None)

    search = sub.add_parser("search")
    search.add_argument("config", type=str, nargs="?", default=None)
    search.add_argument("--seed", type=int, default=None)

    plot = sub.add_parser("plot")
    plot.add_argument("directory", type=str)
    plot.add_argument("--show", action="store_true")
    return p


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    if args.cmd == "precompute-ephemeris":
        ephemeris.precompute(load_config(args.config))
    elif args.cmd == "run":
        pipeline.run(load_config(args.config), args.output)
    elif args.cmd == "search":
        overrides = {} if args.seed is None else {"search": {"seed": args.seed}}
        run_search(load_config(args.config, **overrides))
    elif args.cmd == "plot":
        plotting.plot_results(args.directory, show=args.show)


if __name__ == "__main__":
    main()
