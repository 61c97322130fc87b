"""
Score & conflict reporting shared by both solvers.

Whatever produced the Solution, the report recomputes residual conflicts
from scratch; exact-solver output is verified, never assumed clean.
"""
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np

from .config import SchedulerConfig
from .constraints import ConstraintEngine, RuleResult, Suggestion
from .model import Assignment, Solution
from .timeutils import grid_cells, to_hhmm

CONFLICT_PENALTY = 50.0


@dataclass(frozen=True)
class Conflict:
    kind: str           # "room", "teacher" or "class"
    resource: str
    session_a: str
    session_b: str
    day: str
    start: int
    end: int

    @property
    def message(self) -> str:
        return (
            f"{self.kind.capitalize()} conflict: {self.resource} on {self.day} "
            f"{to_hhmm(self.start)}-{to_hhmm(self.end)} "
            f"({self.session_a} / {self.session_b})"
        )


def find_conflicts(assignments: Sequence[Assignment]) -> List[Conflict]:
    """Every overlapping pair sharing a room, a teacher or a class."""
    by_day: Dict[str, List[Assignment]] = defaultdict(list)
    for a in assignments:
        by_day[a.day].append(a)

    out: List[Conflict] = []
    for day, items in by_day.items():
        for i, a in enumerate(items):
            for b in items[i + 1:]:
                if not (a.start < b.end and b.start < a.end):
                    continue
                start, end = max(a.start, b.start), min(a.end, b.end)
                shared = (
                    ("room", a.room_id, b.room_id),
                    ("teacher", a.session.teacher_id, b.session.teacher_id),
                    ("class", a.session.class_id, b.session.class_id),
                )
                for kind, ra, rb in shared:
                    if ra == rb:
                        out.append(Conflict(kind, ra, a.session_id, b.session_id, day, start, end))
    return out


def occupancy_grid(assignments: Sequence[Assignment], cfg: SchedulerConfig) -> np.ndarray:
    """Boolean matrix [day][grid cell] of cells covered by at least one session."""
    cells = grid_cells(cfg.day_start, cfg.day_end, cfg.granularity_minutes)
    grid = np.zeros((len(cfg.days), len(cells)), dtype=bool)
    day_idx = {d: i for i, d in enumerate(cfg.days)}
    for a in assignments:
        d = day_idx.get(a.day)
        if d is None:
            continue
        for c, (start, end) in enumerate(cells):
            if a.start < end and start < a.end:
                grid[d, c] = True
    return grid


def fill_rate(assignments: Sequence[Assignment], cfg: SchedulerConfig) -> float:
    grid = occupancy_grid(assignments, cfg)
    if grid.size == 0:
        return 0.0
    return float(min(100.0, max(0.0, grid.sum() / grid.size * 100.0)))


@dataclass
class ScoreReport:
    score: float
    constraint_score: float
    fill_rate: float
    compliance_ratio: float
    conflicts: List[Conflict] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)
    rule_results: List[RuleResult] = field(default_factory=list)
    total_assignments: int = 0

    @property
    def feasible(self) -> bool:
        return not self.conflicts

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["conflicts"] = [dict(asdict(c), message=c.message) for c in self.conflicts]
        return data

    def summary(self) -> Dict[str, Any]:
        """Short form handed to notification dispatch."""
        return {
            "score": round(self.score, 2),
            "fill_rate": round(self.fill_rate, 2),
            "compliance_ratio": round(self.compliance_ratio, 4),
            "conflicts": len(self.conflicts),
            "assignments": self.total_assignments,
            "top_suggestion": self.suggestions[0].suggestion if self.suggestions else None,
        }


def score(solution: Solution, engine: ConstraintEngine) -> ScoreReport:
    assignments = list(solution.assignments)
    results = engine.evaluate(assignments)
    conflicts = find_conflicts(assignments)

    constraint_score = max(
        0.0, engine.constraint_score(results) - CONFLICT_PENALTY * len(conflicts)
    )
    return ScoreReport(
        score=constraint_score / 10.0,
        constraint_score=constraint_score,
        fill_rate=fill_rate(assignments, engine.cfg),
        compliance_ratio=engine.compliance_ratio(results),
        conflicts=conflicts,
        suggestions=engine.suggestions(results),
        rule_results=results,
        total_assignments=len(assignments),
    )
