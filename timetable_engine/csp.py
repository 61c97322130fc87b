"""
Exact solver: depth-first backtracking with forward checking.

Variable order is Minimum-Remaining-Values; ties go to the session that
comes first in the expansion order (course order, then sequence index), so
repeated runs on the same input return the same timetable. Values are
ordered by Least-Constraining-Value with a stable sort, so equal impacts keep
the domain's (day, start, room) enumeration order.

A complete assignment is accepted only once every active hard rule
reports zero violations on it.

The expansion counter is shared by the whole recursion tree and is a
best-effort timeout: hitting it raises InfeasibleScheduleError even when a
solution may exist further down an unexplored branch.
"""
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from .config import SchedulerConfig
from .constraints import ConstraintEngine
from .domains import DomainStore, Domains
from .errors import InfeasibleScheduleError, InvalidDomainError
from .model import Assignment, Placement, Session, Solution

logger = logging.getLogger(__name__)


class BacktrackingSolver:
    def __init__(
        self,
        sessions: Sequence[Session],
        domains: Domains,
        engine: ConstraintEngine,
        cfg: SchedulerConfig,
    ):
        self.sessions = list(sessions)
        self.engine = engine
        self.cfg = cfg
        self.max_expansions = cfg.max_expansions
        self.expansions = 0
        self.budget_exhausted = False

        self.store = DomainStore(self.sessions, self._admitted(domains))
        self.assigned: Dict[int, Assignment] = {}
        self.order: List[int] = []

        n = len(self.sessions)
        # Sessions that can clash for reasons other than sharing a room.
        self._linked: List[set] = [
            {k for k in range(n) if k != i and engine.linked(self.sessions[i], self.sessions[k])}
            for i in range(n)
        ]
        # Subset bound by a hard pair rule; those may clash across days.
        self._rule_linked: List[set] = [
            {k for k in self._linked[i] if engine.rule_linked(self.sessions[i], self.sessions[k])}
            for i in range(n)
        ]
        # value indices per day (teacher/class clashes) and per (day, room)
        self._by_day: List[Dict[str, List[int]]] = []
        self._by_day_room: List[Dict[Tuple[str, str], List[int]]] = []
        for i in range(n):
            by_day: Dict[str, List[int]] = defaultdict(list)
            by_room: Dict[Tuple[str, str], List[int]] = defaultdict(list)
            for j, v in enumerate(self.store.values[i]):
                by_day[v.slot.day].append(j)
                by_room[(v.slot.day, v.room_id)].append(j)
            self._by_day.append(by_day)
            self._by_day_room.append(by_room)

    def _admitted(self, domains: Domains) -> Domains:
        filtered = {}
        for s in self.sessions:
            filtered[s.session_id] = tuple(
                p for p in domains.get(s.session_id, ()) if self.engine.admits(s, p)
            )
        empty = [sid for sid, dom in filtered.items() if not dom]
        if empty:
            raise InvalidDomainError(
                f"No placement satisfies the hard rules for: {', '.join(empty)}",
                session_ids=empty,
            )
        return filtered

    # heuristics

    def select_variable(self) -> int:
        best: Optional[int] = None
        for i in range(len(self.sessions)):
            if i in self.assigned:
                continue
            if best is None or self.store.size(i) < self.store.size(best):
                best = i
        return best

    def _conflicting(self, i: int, placement: Placement, k: int) -> List[int]:
        """Alive value indices of session k ruled out by giving i `placement`."""
        a, b = self.sessions[i], self.sessions[k]
        alive = self.store.alive[k]
        values = self.store.values[k]
        if k in self._rule_linked[i]:
            return [
                j for j in range(len(values))
                if alive[j] and not self.engine.pair_ok(a, placement, b, values[j])
            ]
        slot = placement.slot
        if k in self._linked[i]:
            candidates = self._by_day[k].get(slot.day, ())
        else:
            candidates = self._by_day_room[k].get((slot.day, placement.room_id), ())
        # without a pair rule only an overlap can rule a value out
        return [
            j for j in candidates
            if alive[j]
            and values[j].slot.overlaps(slot)
            and not self.engine.pair_ok(a, placement, b, values[j])
        ]

    def _unassigned_others(self, i: int) -> List[int]:
        return [k for k in range(len(self.sessions)) if k != i and k not in self.assigned]

    def impact(self, i: int, placement: Placement) -> int:
        return sum(len(self._conflicting(i, placement, k)) for k in self._unassigned_others(i))

    def order_values(self, i: int) -> List[Placement]:
        values = self.store.current(i)
        impacts = [self.impact(i, v) for v in values]
        ranked = sorted(range(len(values)), key=lambda j: impacts[j])
        return [values[j] for j in ranked]

    def forward_check(self, i: int, placement: Placement) -> bool:
        for k in self._unassigned_others(i):
            for j in self._conflicting(i, placement, k):
                self.store.remove(k, j)
            if self.store.size(k) == 0:
                return False
        return True

    # search

    def _search(self) -> bool:
        self.expansions += 1
        if self.expansions > self.max_expansions:
            self.budget_exhausted = True
            return False
        if len(self.assigned) == len(self.sessions):
            broken = self.engine.hard_violations(list(self.assigned.values()))
            for r in broken:
                logger.debug("complete assignment rejected by %s: %s", r.constraint_id, r.details)
            return not broken

        i = self.select_variable()
        session = self.sessions[i]
        pending = [self.sessions[k] for k in self._unassigned_others(i)]
        for placement in self.order_values(i):
            if not self.engine.consistent_with(
                session, placement, list(self.assigned.values()), pending
            ):
                continue
            self.assigned[i] = Assignment.place(session, placement)
            self.order.append(i)
            mark = self.store.mark()

            if self.forward_check(i, placement) and self._search():
                return True

            del self.assigned[i]
            self.order.pop()
            self.store.restore(mark)
            logger.debug("backtrack on %s (expansions=%d)", session.session_id, self.expansions)
            if self.budget_exhausted:
                return False
        return False

    def solve(self) -> Solution:
        logger.info("Exact search over %d sessions (budget %d)", len(self.sessions), self.max_expansions)
        if not self._search():
            if self.budget_exhausted:
                msg = f"Search budget of {self.max_expansions} expansions exhausted without a solution"
            else:
                msg = f"No timetable satisfies the hard constraints ({self.expansions} expansions)"
            logger.info(msg)
            raise InfeasibleScheduleError(
                msg, expansions=self.expansions, exhausted_budget=self.budget_exhausted
            )

        logger.info("Exact solution found after %d expansions", self.expansions)
        return Solution(
            assignments=[self.assigned[i] for i in self.order],
            solver="exact",
            stats={"expansions": self.expansions},
        )


def solve_exact(
    sessions: Sequence[Session],
    domains: Domains,
    engine: ConstraintEngine,
    cfg: SchedulerConfig,
) -> Solution:
    return BacktrackingSolver(sessions, domains, engine, cfg).solve()
