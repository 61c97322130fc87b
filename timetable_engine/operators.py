import random
from typing import List, Sequence, Tuple

from .config import SchedulerConfig
from .initial_population import valid_starts
from .model import Gene, Individual, Session

MUTATION_KINDS = ("day", "start", "room")


def tournament_select(
    population: Sequence[Individual], size: int, rng: random.Random
) -> Individual:
    """Best of `size` individuals drawn with replacement; first drawn wins ties."""
    best = None
    for _ in range(size):
        ind = population[rng.randrange(len(population))]
        if best is None or ind.fitness > best.fitness:
            best = ind
    return best.clone()


def single_point_crossover(
    p1: Individual, p2: Individual, rng: random.Random
) -> Tuple[Individual, Individual]:
    """Cut both session-ordered chromosomes at one point and swap the tails."""
    n = len(p1.genes)
    if n < 2:
        return p1.clone(), p2.clone()
    point = rng.randrange(1, n)
    c1 = Individual(genes=p1.genes[:point] + p2.genes[point:])
    c2 = Individual(genes=p2.genes[:point] + p1.genes[point:])
    return c1, c2


def mutate_reroll(
    ind: Individual,
    sessions: Sequence[Session],
    cfg: SchedulerConfig,
    room_ids: Sequence[str],
    rng: random.Random,
) -> Individual:
    """Re-roll the day, the start time or the room of one random gene."""
    if not ind.genes:
        return ind
    idx = rng.randrange(len(ind.genes))
    gene = ind.genes[idx]
    kind = rng.choice(MUTATION_KINDS)
    if kind == "day":
        gene = Gene(rng.choice(cfg.days), gene.start, gene.room_id)
    elif kind == "start":
        gene = Gene(gene.day, rng.choice(valid_starts(sessions[idx], cfg)), gene.room_id)
    else:
        gene = Gene(gene.day, gene.start, rng.choice(room_ids))
    genes: List[Gene] = list(ind.genes)
    genes[idx] = gene
    return Individual(genes=genes)
