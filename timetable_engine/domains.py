# timetable_engine/domains.py
import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import SchedulerConfig
from .constraints import intervals_admit
from .errors import InvalidDomainError
from .model import (
    Course,
    Placement,
    Room,
    Session,
    Slot,
    Teacher,
)
from .timeutils import grid_starts

logger = logging.getLogger(__name__)

Domains = Dict[str, Tuple[Placement, ...]]


def session_count(course: Course) -> int:
    """Sessions per week: ceil(weekly volume / standard session length)."""
    if course.standard_session_minutes <= 0:
        raise InvalidDomainError(
            f"Course {course.id} has a non-positive session length "
            f"({course.standard_session_minutes} min)"
        )
    return math.ceil(course.weekly_volume_minutes / course.standard_session_minutes)


def expand_sessions(courses: Iterable[Course]) -> List[Session]:
    sessions: List[Session] = []
    for course in courses:
        for i in range(session_count(course)):
            sessions.append(
                Session(
                    session_id=f"{course.id}-{i}",
                    course_id=course.id,
                    teacher_id=course.teacher_id,
                    class_id=course.class_id,
                    duration_minutes=course.standard_session_minutes,
                    course_type=course.course_type,
                    sequence_index=i,
                    headcount=course.max_headcount,
                )
            )
    return sessions


def operating_slots(cfg: SchedulerConfig, duration: int) -> List[Slot]:
    """Every (day, start, end) of the window for a block of `duration` minutes."""
    starts = grid_starts(cfg.day_start, cfg.day_end, cfg.granularity_minutes, duration)
    return [Slot(day, s, s + duration) for day in cfg.days for s in starts]


def room_compatible(room: Room, session: Session, cfg: SchedulerConfig) -> bool:
    if room.capacity < session.headcount:
        return False
    return room.room_type in cfg.allowed_room_types(session.course_type)


def teacher_admits(teacher: Optional[Teacher], slot: Slot) -> bool:
    """
    Availability filter. Teachers without records are always available;
    with records, the slot must sit inside an available (or preferred)
    interval of the same day and must not touch an unavailable one.
    """
    if teacher is None:
        return True
    return intervals_admit(teacher.availability, slot.day, slot.start, slot.end)


def candidate_placements(
    session: Session,
    teacher: Optional[Teacher],
    rooms: Sequence[Room],
    cfg: SchedulerConfig,
) -> Tuple[Placement, ...]:
    # Enumeration order (day, start, room) is the LCV tie-break order.
    usable_rooms = [r for r in rooms if room_compatible(r, session, cfg)]
    out = []
    for slot in operating_slots(cfg, session.duration_minutes):
        if not teacher_admits(teacher, slot):
            continue
        for room in usable_rooms:
            out.append(Placement(slot=slot, room_id=room.id))
    return tuple(out)


def build_domains(
    courses: Sequence[Course],
    teachers: Sequence[Teacher],
    rooms: Sequence[Room],
    cfg: SchedulerConfig,
) -> Tuple[List[Session], Domains]:
    sessions = expand_sessions(courses)
    teacher_by_id = {t.id: t for t in teachers}

    domains: Domains = {}
    empty: List[str] = []
    for s in sessions:
        dom = candidate_placements(s, teacher_by_id.get(s.teacher_id), rooms, cfg)
        domains[s.session_id] = dom
        if not dom:
            empty.append(s.session_id)

    if empty:
        raise InvalidDomainError(
            f"{len(empty)} session(s) have no possible placement: {', '.join(empty)}",
            session_ids=empty,
        )

    logger.info(
        "%d sessions from %d courses, %d candidate placements",
        len(sessions), len(courses), sum(len(d) for d in domains.values()),
    )
    return sessions, domains


class DomainStore:
    """
    Arena of candidate values with a trail of removals.

    Each session's values are kept in a fixed tuple; pruning only clears an
    `alive` flag and records (session index, value index) on the trail.
    `mark()` / `restore(mark)` undo exactly the removals made after the
    mark, so a restore costs O(changes) and no domain list is ever shared
    between the "current" and the "saved" state.
    """

    def __init__(self, sessions: Sequence[Session], domains: Domains):
        self.sessions = list(sessions)
        self.index = {s.session_id: i for i, s in enumerate(self.sessions)}
        self.values: List[Tuple[Placement, ...]] = [
            tuple(domains.get(s.session_id, ())) for s in self.sessions
        ]
        self.alive: List[List[bool]] = [[True] * len(v) for v in self.values]
        self.sizes: List[int] = [len(v) for v in self.values]
        self.trail: List[Tuple[int, int]] = []

    def size(self, i: int) -> int:
        return self.sizes[i]

    def current(self, i: int) -> List[Placement]:
        flags = self.alive[i]
        return [v for j, v in enumerate(self.values[i]) if flags[j]]

    def current_indexed(self, i: int) -> List[Tuple[int, Placement]]:
        flags = self.alive[i]
        return [(j, v) for j, v in enumerate(self.values[i]) if flags[j]]

    def remove(self, i: int, j: int) -> None:
        if self.alive[i][j]:
            self.alive[i][j] = False
            self.sizes[i] -= 1
            self.trail.append((i, j))

    def mark(self) -> int:
        return len(self.trail)

    def restore(self, mark: int) -> None:
        while len(self.trail) > mark:
            i, j = self.trail.pop()
            self.alive[i][j] = True
            self.sizes[i] += 1

    def snapshot(self) -> Domains:
        return {s.session_id: tuple(self.current(i)) for i, s in enumerate(self.sessions)}
