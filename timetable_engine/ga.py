import logging
import random
from typing import Dict, List, Optional, Sequence

from .config import SchedulerConfig
from .constraints import ConstraintEngine
from .domains import Domains
from .errors import InvalidDomainError
from .evaluation import evaluate
from .initial_population import build_initial_population
from .model import Individual, Placement, Session, Slot, Solution
from .operators import mutate_reroll, single_point_crossover, tournament_select

logger = logging.getLogger(__name__)


class GeneticSolver:
    def __init__(
        self,
        sessions: Sequence[Session],
        engine: ConstraintEngine,
        cfg: SchedulerConfig,
        rng: Optional[random.Random] = None,
    ):
        self.sessions = list(sessions)
        self.engine = engine
        self.cfg = cfg
        self.rng = rng if rng is not None else random.Random(cfg.seed)
        self.room_ids = list(engine.rooms)
        self.history: List[Dict] = []
        if self.sessions and not self.room_ids:
            raise InvalidDomainError(
                "No rooms available for the genetic solver",
                [s.session_id for s in self.sessions],
            )

    def _evaluate_all(self, population: List[Individual]) -> None:
        for ind in population:
            evaluate(ind, self.sessions, self.engine)

    def _record(self, gen: int, population: List[Individual], best: Individual) -> None:
        avg = sum(ind.fitness for ind in population) / len(population)
        self.history.append({
            "gen": gen,
            "best_fitness": best.fitness,
            "gen_best_fitness": population[0].fitness,
            "avg_fitness": avg,
        })

    def _next_generation(self, population: List[Individual]) -> List[Individual]:
        cfg = self.cfg
        size = cfg.population_size
        n_elite = min(cfg.elitism_count, size, len(population))

        new_pop = [ind.clone() for ind in population[:n_elite]]
        while len(new_pop) < size:
            new_pop.append(tournament_select(population, cfg.tournament_size, self.rng))

        # Crossover on non-elite pairs
        for i in range(n_elite, size - 1, 2):
            if self.rng.random() < cfg.crossover_rate:
                new_pop[i], new_pop[i + 1] = single_point_crossover(
                    new_pop[i], new_pop[i + 1], self.rng
                )

        for i in range(n_elite, size):
            if self.rng.random() < cfg.mutation_rate:
                new_pop[i] = mutate_reroll(new_pop[i], self.sessions, cfg, self.room_ids, self.rng)
        return new_pop

    def evolve(self, generations: Optional[int] = None) -> Individual:
        """Run the generational loop and return the best individual ever seen."""
        cfg = self.cfg
        generations = cfg.generations if generations is None else generations
        self.history = []

        population = build_initial_population(
            self.sessions, cfg, self.room_ids, cfg.population_size, self.rng
        )
        best: Optional[Individual] = None

        for gen in range(generations + 1):
            self._evaluate_all(population)
            population.sort(key=lambda x: x.fitness, reverse=True)
            if best is None or population[0].fitness > best.fitness:
                best = population[0].clone()
            self._record(gen, population, best)

            if cfg.log_every and (gen % cfg.log_every == 0 or gen == generations):
                logger.info(
                    "Gen %d: best fitness=%.2f avg=%.2f",
                    gen, best.fitness, self.history[-1]["avg_fitness"],
                )
            if gen == generations:
                break
            population = self._next_generation(population)

        return best

    def to_solution(self, best: Individual, domains: Optional[Domains] = None) -> Solution:
        assignments = best.to_assignments(self.sessions)
        stats = {
            "fitness": best.fitness,
            "penalty": best.penalty,
            "bonus": best.bonus,
            "generations": len(self.history) - 1,
        }
        if domains is not None:
            stats["out_of_domain"] = sum(
                1 for a in assignments
                if Placement(Slot(a.day, a.start, a.end), a.room_id)
                not in domains.get(a.session_id, ())
            )
        return Solution(assignments=assignments, solver="genetic", stats=stats)


def solve_metaheuristic(
    sessions: Sequence[Session],
    domains: Domains,
    engine: ConstraintEngine,
    cfg: SchedulerConfig,
    rng: Optional[random.Random] = None,
    generations: Optional[int] = None,
) -> Solution:
    solver = GeneticSolver(sessions, engine, cfg, rng)
    if not solver.sessions:
        return Solution(solver="genetic", stats={"fitness": 0.0, "generations": 0, "out_of_domain": 0})
    best = solver.evolve(generations)
    solution = solver.to_solution(best, domains)
    solution.stats["history"] = solver.history
    logger.info(
        "Genetic search finished: fitness=%.2f, %d/%d genes outside their domain",
        best.fitness, solution.stats["out_of_domain"], len(solution),
    )
    return solution
