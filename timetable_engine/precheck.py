"""
Feasibility checks run before any domain is built.

Errors make a run pointless; warnings only flag data the solvers will
probably struggle with.
"""
import logging
import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from .config import SchedulerConfig
from .errors import InvalidDomainError
from .model import Course, CourseType, Room, Teacher

logger = logging.getLogger(__name__)

SPECIALISED_TYPES = (CourseType.LAB.value, CourseType.WORKSHOP.value)


def _requested_minutes(course: Course) -> int:
    # What the teacher actually sits through once sessions are rounded up.
    if course.standard_session_minutes <= 0:
        return 0
    n = math.ceil(course.weekly_volume_minutes / course.standard_session_minutes)
    return n * course.standard_session_minutes


def precheck(
    courses: Sequence[Course],
    teachers: Sequence[Teacher],
    rooms: Sequence[Room],
    cfg: Optional[SchedulerConfig] = None,
) -> Tuple[List[str], List[str]]:
    """Return (errors, warnings)."""
    cfg = cfg or SchedulerConfig()
    errors: List[str] = []
    warnings: List[str] = []

    by_id = {t.id: t for t in teachers}
    if not rooms and courses:
        errors.append("No rooms defined but courses need scheduling.")

    requested: Dict[str, int] = defaultdict(int)
    for c in courses:
        if c.teacher_id not in by_id:
            errors.append(f"Course '{c.id}' references unknown teacher '{c.teacher_id}'.")
        if c.weekly_volume_minutes <= 0:
            errors.append(f"Course '{c.id}' has a non-positive weekly volume ({c.weekly_volume_minutes}).")
        if c.standard_session_minutes <= 0:
            errors.append(
                f"Course '{c.id}' has a non-positive session length ({c.standard_session_minutes})."
            )
        requested[c.teacher_id] += _requested_minutes(c)

    for teacher_id, minutes in requested.items():
        t = by_id.get(teacher_id)
        if t and t.weekly_contract_minutes and minutes > t.weekly_contract_minutes:
            warnings.append(
                f"Teacher '{t.id}' is asked for {minutes} min/week "
                f"but the contract allows {t.weekly_contract_minutes}."
            )
        if t and t.max_daily_minutes and minutes > t.max_daily_minutes * len(cfg.days):
            warnings.append(
                f"Teacher '{t.id}' needs {minutes} min/week but the daily cap of "
                f"{t.max_daily_minutes} min allows {t.max_daily_minutes * len(cfg.days)} "
                f"over {len(cfg.days)} day(s)."
            )

    for c in courses:
        t = by_id.get(c.teacher_id)
        if t and t.max_daily_minutes and c.standard_session_minutes > t.max_daily_minutes:
            warnings.append(
                f"Course '{c.id}' sessions last {c.standard_session_minutes} min, "
                f"above the daily cap of teacher '{t.id}' ({t.max_daily_minutes} min)."
            )

    for kind in SPECIALISED_TYPES:
        n_courses = sum(1 for c in courses if c.course_type == kind)
        allowed = cfg.allowed_room_types(kind)
        n_rooms = sum(1 for r in rooms if r.room_type in allowed)
        if n_courses > n_rooms:
            warnings.append(
                f"{n_courses} {kind} course(s) compete for {n_rooms} suitable room(s) "
                f"({', '.join(allowed)})."
            )

    capacity = sum(t.weekly_contract_minutes for t in teachers)
    total = sum(requested.values())
    if capacity and total > capacity:
        warnings.append(
            f"Requested teaching time ({total} min) exceeds total contract capacity ({capacity} min)."
        )

    for w in warnings:
        logger.warning(w)
    return errors, warnings


def ensure_ok(
    courses: Sequence[Course],
    teachers: Sequence[Teacher],
    rooms: Sequence[Room],
    cfg: Optional[SchedulerConfig] = None,
) -> List[str]:
    """Raise on errors; hand back the warnings otherwise."""
    errors, warnings = precheck(courses, teachers, rooms, cfg)
    if errors:
        raise InvalidDomainError("\n".join(errors))
    return warnings
