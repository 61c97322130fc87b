"""
In-process entry points of the timetable engine.

    sessions, domains = build_domains(courses, teachers, rooms, cfg)
    engine = ConstraintEngine.from_records(records, teachers, rooms, cfg)
    solution = solve_exact(sessions, domains, engine, cfg)
    report = score(solution, engine)

`generate` chains the same steps behind a single generation mode.
"""
import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .config import SchedulerConfig
from .constraints import ConstraintEngine
from .csp import solve_exact
from .domains import build_domains
from .errors import ConfigError
from .ga import solve_metaheuristic
from .model import Assignment, Course, Room, Solution, Teacher
from .precheck import ensure_ok
from .reporting import ScoreReport, score

logger = logging.getLogger(__name__)

MODES = ("fast", "balanced", "optimal")

__all__ = [
    "build_domains",
    "solve_exact",
    "solve_metaheuristic",
    "score",
    "generate",
    "load_balance",
    "GenerationResult",
    "MODES",
]


def load_balance(assignments: Sequence[Assignment]) -> float:
    """100 - 10 * variance of weekly hours per teacher, clamped to [0, 100]."""
    hours: Dict[str, float] = defaultdict(float)
    for a in assignments:
        hours[a.session.teacher_id] += (a.end - a.start) / 60.0
    if not hours:
        return 100.0
    variance = float(np.var(np.fromiter(hours.values(), dtype=float)))
    return min(100.0, max(0.0, 100.0 - variance * 10.0))


@dataclass
class GenerationResult:
    solution: Solution
    report: ScoreReport
    mode: str
    load_balance: float
    warnings: List[str] = field(default_factory=list)
    generated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "generated_at": self.generated_at,
            "load_balance": self.load_balance,
            "warnings": list(self.warnings),
            "assignments": self.solution.to_records(),
            "report": self.report.to_dict(),
        }


def generate(
    courses: Sequence[Course],
    teachers: Sequence[Teacher],
    rooms: Sequence[Room],
    constraints: Iterable[Mapping[str, Any]] = (),
    cfg: Optional[SchedulerConfig] = None,
    mode: str = "balanced",
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """Precheck, build domains, solve in `mode` and score the result."""
    cfg = cfg or SchedulerConfig()
    if mode not in MODES:
        raise ConfigError(f"Unknown generation mode {mode!r}, expected one of {MODES}")

    warnings = ensure_ok(courses, teachers, rooms, cfg)
    engine = ConstraintEngine.from_records(constraints, teachers, rooms, cfg)
    sessions, domains = build_domains(courses, teachers, rooms, cfg)

    logger.info("Generating timetable: mode=%s, %d sessions", mode, len(sessions))
    if mode == "fast":
        solution = solve_exact(sessions, domains, engine, cfg)
    else:
        generations = cfg.mode_generations.get(mode, cfg.generations)
        solution = solve_metaheuristic(sessions, domains, engine, cfg, rng, generations=generations)

    report = score(solution, engine)
    return GenerationResult(
        solution=solution,
        report=report,
        mode=mode,
        load_balance=load_balance(solution.assignments),
        warnings=warnings,
    )
