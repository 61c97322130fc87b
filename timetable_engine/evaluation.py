# timetable_engine/evaluation.py
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .constraints import ConstraintEngine, consecutive_excess, preference_met
from .model import Assignment, Individual, Session
from .reporting import find_conflicts

BASE_FITNESS = 1000.0
W_OVERLAP = 50
W_PREFERENCE = 10
W_CONSECUTIVE = 20
MAX_LOAD_BONUS = 50.0
MAX_DAY_BONUS = 30.0


@dataclass
class EvaluationResult:
    fitness: float
    penalty: float
    bonus: float
    room_overlaps: int
    teacher_overlaps: int
    class_overlaps: int
    preference_misses: int
    consecutive_excess: int
    load_bonus: float
    day_bonus: float
    room_bonus: float


def load_balance_bonus(assignments: Sequence[Assignment]) -> float:
    hours: Dict[str, float] = defaultdict(float)
    for a in assignments:
        hours[a.session.teacher_id] += (a.end - a.start) / 60.0
    if not hours:
        return 0.0
    variance = float(np.var(np.fromiter(hours.values(), dtype=float)))
    return max(0.0, MAX_LOAD_BONUS - variance * 10.0)


def day_distribution_bonus(assignments: Sequence[Assignment]) -> float:
    per_day: Dict[str, int] = defaultdict(int)
    for a in assignments:
        per_day[a.day] += 1
    if not per_day:
        return 0.0
    std = float(np.std(np.fromiter(per_day.values(), dtype=float)))
    return max(0.0, MAX_DAY_BONUS - std * 5.0)


def room_utilisation_bonus(assignments: Sequence[Assignment], n_rooms: int) -> float:
    if n_rooms == 0:
        return 0.0
    rate = len({a.room_id for a in assignments}) / n_rooms * 100.0
    if 60.0 <= rate <= 90.0:
        return 20.0
    if rate > 90.0:
        return 10.0
    return 0.0


def count_preference_misses(assignments: Sequence[Assignment], engine: ConstraintEngine) -> int:
    return sum(
        1 for a in assignments
        if not preference_met(engine.preference_for(a.session.teacher_id), a.start)
    )


def count_consecutive_excess(assignments: Sequence[Assignment], engine: ConstraintEngine) -> int:
    blocks: Dict[Tuple[str, str], List[Tuple[int, int]]] = defaultdict(list)
    for a in assignments:
        blocks[(a.session.teacher_id, a.day)].append((a.start, a.end))
    gap = engine.cfg.consecutive_gap_minutes
    return sum(
        len(consecutive_excess(day_blocks, engine.consecutive_limit(teacher_id), gap))
        for (teacher_id, _), day_blocks in blocks.items()
    )


def evaluate(
    ind: Individual,
    sessions: Sequence[Session],
    engine: ConstraintEngine,
) -> EvaluationResult:
    """Fitness = 1000 - penalties + bonuses, floored at zero."""
    assignments = ind.to_assignments(list(sessions))

    overlaps = {"room": 0, "teacher": 0, "class": 0}
    for c in find_conflicts(assignments):
        overlaps[c.kind] += 1
    prefs = count_preference_misses(assignments, engine)
    consecutive = count_consecutive_excess(assignments, engine)

    penalty = (
        W_OVERLAP * sum(overlaps.values())
        + W_PREFERENCE * prefs
        + W_CONSECUTIVE * consecutive
    )
    load = load_balance_bonus(assignments)
    days = day_distribution_bonus(assignments)
    rooms = room_utilisation_bonus(assignments, len(engine.rooms))
    bonus = load + days + rooms

    ind.penalty = float(penalty)
    ind.bonus = bonus
    ind.fitness = max(0.0, BASE_FITNESS - penalty + bonus)

    return EvaluationResult(
        fitness=ind.fitness,
        penalty=ind.penalty,
        bonus=bonus,
        room_overlaps=overlaps["room"],
        teacher_overlaps=overlaps["teacher"],
        class_overlaps=overlaps["class"],
        preference_misses=prefs,
        consecutive_excess=consecutive,
        load_bonus=load,
        day_bonus=days,
        room_bonus=rooms,
    )
