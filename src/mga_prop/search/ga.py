# src/mga_prop/search/ga.py
from __future__ import annotations
import datetime
import logging
import random
from pathlib import Path
from typing import Callable, List, Dict, Any

import numpy as np

from ..cost import chromosome_to_parameters
from ..output import write_json

logger = logging.getLogger(__name__)


#  Genetic-Algorithm implementation

class GA:
    """
    Hybrid GA over chromosomes ``[case, t0, T1, …, Tn]``: one integer
    gene (transfer case) followed by real genes (departure date and
    times of flight, in days).
    """

    def __init__(
        self,
        cfg: Dict[str, Any],
        cost_fn: Callable[[List[float]], float],
        int_bounds: List[tuple[int, int]],
        real_bounds: List[tuple[float, float]],
        local_refiner: Callable[[List[float]], tuple] | None = None,
        *,
        transfer_cfg: Dict[str, Any] | None = None,
    ):
        self.cfg           = cfg
        self.cost_fn       = cost_fn
        self.transfer_cfg  = transfer_cfg
        self.int_bounds    = int_bounds
        self.real_bounds   = real_bounds
        self.local_refiner = local_refiner

        random.seed(cfg.get("seed"))
        np.random.seed(cfg.get("seed"))

        self.pop:      List[List[float]] = []
        self.history:  List[float]       = []
        self._scores:  Dict[tuple, float] = {}

    @classmethod
    def from_config(
        cls,
        cfg: Dict[str, Any],
        cost_fn: Callable[[List[float]], float],
        local_refiner: Callable | None = None
    ) -> "GA":
        search   = cfg["search"]
        transfer = cfg["transfer"]

        int_bounds  = [(0, len(transfer["cases"]) - 1)]               # case
        real_bounds = [tuple(search["departure_bounds"])]              # t0
        real_bounds += [tuple(b) for b in search["tof_bounds"]]       # T1...Tn
        return cls(search, cost_fn, int_bounds, real_bounds, local_refiner,
                   transfer_cfg=transfer)

    def score(self, chrom: List[float]) -> float:
        key = tuple(float(g) for g in chrom)
        if key not in self._scores:
            self._scores[key] = float(self.cost_fn(list(chrom)))
        return self._scores[key]

    def _refine(self, chrom: List[float]) -> List[float]:
        x_opt, f_opt, _ = self.local_refiner(chrom)
        x_opt = [float(g) for g in x_opt]
        self._scores[tuple(x_opt)] = float(f_opt)
        return x_opt

    def run(self, init_pop: List[List[float]] | None = None) -> Dict[str, Any]:
        """Execute the GA and return the best chromosome + score."""
        self.pop = init_pop or [self._random_chromosome()
                                for _ in range(self.cfg["pop_size"])]

        for g in range(self.cfg["generations"]):
            self.pop.sort(key=self.score)

            # local improvement of the elite
            if self.local_refiner:
                self.pop[: self.cfg["elite"]] = [self._refine(ch)
                                                 for ch in self.pop[: self.cfg["elite"]]]
                self.pop.sort(key=self.score)

            self.history.append(self.score(self.pop[0]))

            # elitism
            new_pop = [ch.copy() for ch in self.pop[: self.cfg["elite"]]]

            # refill the population
            while len(new_pop) < self.cfg["pop_size"]:
                p1 = self._tournament_select()
                p2 = self._tournament_select()
                c1, c2 = self._uniform_crossover(p1, p2)
                new_pop.append(self._mutate(c1))
                if len(new_pop) < self.cfg["pop_size"]:
                    new_pop.append(self._mutate(c2))

            self.pop = new_pop
            logger.info("Gen %03d  best ΔV = %.3f km/s", g, self.history[-1])

        best = min(self.pop, key=self.score)
        if self.local_refiner:
            best = self._refine(best)
        best_score = self.score(best)

        return {"vars": best, "score": best_score, "history": self.history}

    def save(self, result: Dict[str, Any], output_dir: str | Path = "outputs") -> Path:
        payload = {
            "vars": result["vars"],
            "parameters": chromosome_to_parameters(result["vars"]),
            "score": result["score"],
            "history": result["history"],
            "transfer": self.transfer_cfg,
        }
        fname = Path(output_dir) / f"best_{datetime.datetime.now():%Y%m%d_%H%M%S}.json"
        write_json(payload, fname)
        logger.info("[GA] best solution saved -> %s", fname)
        return fname

    #  GA operators

    def _tournament_select(self) -> List[float]:
        k   = self.cfg["tournament_k"]
        asp = random.sample(self.pop, k)
        return min(asp, key=self.score)

    def _uniform_crossover(
        self, p1: List[float], p2: List[float]
    ) -> tuple[List[float], List[float]]:
        if random.random() > self.cfg["cx_prob"]:
            return p1.copy(), p2.copy()

        c1, c2 = p1.copy(), p2.copy()
        for i in range(len(p1)):
            if random.random() < 0.5:
                c1[i], c2[i] = c2[i], c1[i]
        return c1, c2

    def _mutate(self, chrom: List[float]) -> List[float]:
        # integer section
        for i, (lo, hi) in enumerate(self.int_bounds):
            if random.random() < self.cfg["int_mut_prob"]:
                chrom[i] = random.randint(lo, hi)

        # real section
        offset = len(self.int_bounds)
        for j, (lo, hi) in enumerate(self.real_bounds, start=offset):
            if random.random() < self.cfg["real_mut_prob"]:
                chrom[j] = random.uniform(lo, hi)
        return chrom

    def _random_chromosome(self) -> List[float]:
        int_genes  = [random.randint(lo, hi) for lo, hi in self.int_bounds]
        real_genes = [random.uniform(lo, hi) for lo, hi in self.real_bounds]
        return int_genes + real_genes
