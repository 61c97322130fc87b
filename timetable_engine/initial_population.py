# timetable_engine/initial_population.py
import random
from typing import List, Sequence

from .config import SchedulerConfig
from .model import Gene, Individual, Session
from .timeutils import grid_starts


def valid_starts(session: Session, cfg: SchedulerConfig) -> List[int]:
    # a block longer than the window still gets the opening time
    starts = grid_starts(cfg.day_start, cfg.day_end, cfg.granularity_minutes, session.duration_minutes)
    return starts or [cfg.day_start]


def random_gene(
    session: Session,
    cfg: SchedulerConfig,
    room_ids: Sequence[str],
    rng: random.Random,
) -> Gene:
    # Uniform over the whole window and every room: no domain filtering here.
    return Gene(
        day=rng.choice(cfg.days),
        start=rng.choice(valid_starts(session, cfg)),
        room_id=rng.choice(room_ids),
    )


def build_random_individual(
    sessions: Sequence[Session],
    cfg: SchedulerConfig,
    room_ids: Sequence[str],
    rng: random.Random,
) -> Individual:
    return Individual(genes=[random_gene(s, cfg, room_ids, rng) for s in sessions])


def build_initial_population(
    sessions: Sequence[Session],
    cfg: SchedulerConfig,
    room_ids: Sequence[str],
    pop_size: int,
    rng: random.Random,
) -> List[Individual]:
    return [build_random_individual(sessions, cfg, room_ids, rng) for _ in range(pop_size)]
