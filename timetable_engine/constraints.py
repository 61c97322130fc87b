"""
Constraint engine: the single place that decides whether a (partial)
timetable is acceptable and how much a complete one is worth.

Rules are a closed set (`RuleKind`). Each record is parsed into a typed
parameter object when it is loaded, so an unknown rule name or a missing
parameter fails with ConstraintDefinitionError before any search begins.

Two evaluation modes share the same rule definitions:
  * incremental checks (`admits`, `consistent`, `consistent_with`) used by
    the exact solver while it assigns sessions one by one;
  * whole-solution evaluation (`evaluate`) that counts violations per rule
    and turns them into a score out of 1000.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from .config import SchedulerConfig
from .errors import ConstraintDefinitionError
from .model import (
    Assignment,
    AvailabilityInterval,
    AvailabilityKind,
    Placement,
    Room,
    Session,
    Teacher,
    TimePreference,
)
from .timeutils import is_afternoon, is_morning, to_hhmm, to_minutes

BASE_SCORE = 1000.0
PENALTY_FACTOR = 10.0
MIN_WEIGHT, MAX_WEIGHT = 0.1, 10.0
MIN_LEVEL, MAX_LEVEL = 1, 10


class Severity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


class Category(str, Enum):
    TEMPORAL = "temporal"
    RESOURCE = "resource"
    PEDAGOGICAL = "pedagogical"
    REGULATORY = "regulatory"


class RuleKind(str, Enum):
    MIN_GAP = "min_gap"
    SAME_DAY = "same_day"
    DAY_SPREAD = "day_spread"
    FIXED_ROOM = "fixed_room"
    TEACHER_AVAILABILITY = "teacher_availability"
    REQUIRED_EQUIPMENT = "required_equipment"
    MAX_CONSECUTIVE = "max_consecutive"
    TEACHER_LOAD = "teacher_load"
    TIME_PREFERENCE = "time_preference"


DEFAULT_CATEGORY: Dict[RuleKind, Category] = {
    RuleKind.MIN_GAP: Category.TEMPORAL,
    RuleKind.SAME_DAY: Category.TEMPORAL,
    RuleKind.DAY_SPREAD: Category.TEMPORAL,
    RuleKind.FIXED_ROOM: Category.RESOURCE,
    RuleKind.TEACHER_AVAILABILITY: Category.RESOURCE,
    RuleKind.REQUIRED_EQUIPMENT: Category.RESOURCE,
    RuleKind.MAX_CONSECUTIVE: Category.PEDAGOGICAL,
    RuleKind.TEACHER_LOAD: Category.REGULATORY,
    RuleKind.TIME_PREFERENCE: Category.PEDAGOGICAL,
}

SUGGESTIONS: Dict[RuleKind, str] = {
    RuleKind.MIN_GAP: "Increase the gap between the sessions of the listed courses",
    RuleKind.SAME_DAY: "Group the listed courses on the same day",
    RuleKind.DAY_SPREAD: "Spread the course over the required number of days",
    RuleKind.FIXED_ROOM: "Use the room required for this course",
    RuleKind.TEACHER_AVAILABILITY: "Check the teacher's availability",
    RuleKind.REQUIRED_EQUIPMENT: "Move the course to a room with the required equipment",
    RuleKind.MAX_CONSECUTIVE: "Reduce the number of consecutive sessions",
    RuleKind.TEACHER_LOAD: "Reduce the teacher's weekly load",
    RuleKind.TIME_PREFERENCE: "Respect the teachers' time preferences",
}


# --- typed parameters (one per rule kind) ---------------------------------

@dataclass(frozen=True)
class MinGapParams:
    course_ids: FrozenSet[str]
    min_gap_minutes: int


@dataclass(frozen=True)
class SameDayParams:
    course_ids: FrozenSet[str]


@dataclass(frozen=True)
class DaySpreadParams:
    course_id: str
    min_days: int
    max_days: int


@dataclass(frozen=True)
class FixedRoomParams:
    course_id: str
    room_id: str


@dataclass(frozen=True)
class TeacherAvailabilityParams:
    teacher_id: str
    intervals: Optional[Tuple[AvailabilityInterval, ...]] = None


@dataclass(frozen=True)
class RequiredEquipmentParams:
    course_id: str
    equipment: Tuple[str, ...]


@dataclass(frozen=True)
class MaxConsecutiveParams:
    teacher_id: str
    max_consecutive: Optional[int] = None


@dataclass(frozen=True)
class TeacherLoadParams:
    teacher_id: str
    max_minutes: int


@dataclass(frozen=True)
class TimePreferenceParams:
    teacher_id: str
    preference: Optional[str] = None


@dataclass(frozen=True)
class Constraint:
    id: str
    kind: RuleKind
    params: Any
    severity: Severity = Severity.SOFT
    category: Category = Category.PEDAGOGICAL
    weight: float = 1.0
    severity_level: int = 5
    active: bool = True

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def hard(self) -> bool:
        return self.severity is Severity.HARD


@dataclass
class RuleResult:
    constraint_id: str
    name: str
    weight: float
    violations: int
    penalty: float
    details: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Suggestion:
    constraint_id: str
    rule: str
    problem: str
    suggestion: str
    priority: float


# --- parameter parsing ------------------------------------------------------

def _fail(cid: str, msg: str) -> ConstraintDefinitionError:
    return ConstraintDefinitionError(f"Constraint {cid}: {msg}", constraint_id=cid)


def _require(params: Mapping[str, Any], key: str, cid: str) -> Any:
    if key not in params or params[key] is None:
        raise _fail(cid, f"missing parameter '{key}'")
    return params[key]


def _as_int(value: Any, key: str, cid: str, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise _fail(cid, f"parameter '{key}' must be an integer")
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise _fail(cid, f"parameter '{key}' must be an integer, got {value!r}") from None
    if out < minimum:
        raise _fail(cid, f"parameter '{key}' must be >= {minimum}, got {out}")
    return out


def _as_str_list(value: Any, key: str, cid: str) -> Tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise _fail(cid, f"parameter '{key}' must be a list")
    if not value:
        raise _fail(cid, f"parameter '{key}' must not be empty")
    return tuple(str(v) for v in value)


def _preference(value: Any, cid: str) -> str:
    pref = str(value).strip().lower()
    valid = {p.value for p in TimePreference}
    if pref not in valid:
        raise _fail(cid, f"unknown time preference {value!r} (expected one of {sorted(valid)})")
    return pref


def _parse_intervals(raw: Any, cid: str) -> Tuple[AvailabilityInterval, ...]:
    if not isinstance(raw, (list, tuple)):
        raise _fail(cid, "parameter 'intervals' must be a list")
    out = []
    for i, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise _fail(cid, f"intervals[{i}] must be a mapping")
        try:
            start = to_minutes(_require(item, "start", cid))
            end = to_minutes(_require(item, "end", cid))
        except ValueError as exc:
            raise _fail(cid, f"intervals[{i}]: {exc}") from None
        if end <= start:
            raise _fail(cid, f"intervals[{i}] ends before it starts")
        kind = str(item.get("kind", AvailabilityKind.AVAILABLE.value))
        if kind not in {k.value for k in AvailabilityKind}:
            raise _fail(cid, f"intervals[{i}] has unknown kind {kind!r}")
        out.append(AvailabilityInterval(str(_require(item, "day", cid)), start, end, kind))
    return tuple(out)


def _parse_min_gap(p, cid):
    return MinGapParams(
        course_ids=frozenset(_as_str_list(_require(p, "course_ids", cid), "course_ids", cid)),
        min_gap_minutes=_as_int(_require(p, "min_gap_minutes", cid), "min_gap_minutes", cid),
    )


def _parse_same_day(p, cid):
    return SameDayParams(
        course_ids=frozenset(_as_str_list(_require(p, "course_ids", cid), "course_ids", cid))
    )


def _parse_day_spread(p, cid):
    lo = _as_int(_require(p, "min_days", cid), "min_days", cid)
    hi = _as_int(_require(p, "max_days", cid), "max_days", cid)
    if hi < lo:
        raise _fail(cid, f"max_days ({hi}) is lower than min_days ({lo})")
    return DaySpreadParams(course_id=str(_require(p, "course_id", cid)), min_days=lo, max_days=hi)


def _parse_fixed_room(p, cid):
    return FixedRoomParams(
        course_id=str(_require(p, "course_id", cid)),
        room_id=str(_require(p, "room_id", cid)),
    )


def _parse_teacher_availability(p, cid):
    intervals = p.get("intervals")
    return TeacherAvailabilityParams(
        teacher_id=str(_require(p, "teacher_id", cid)),
        intervals=_parse_intervals(intervals, cid) if intervals is not None else None,
    )


def _parse_required_equipment(p, cid):
    return RequiredEquipmentParams(
        course_id=str(_require(p, "course_id", cid)),
        equipment=_as_str_list(_require(p, "equipment", cid), "equipment", cid),
    )


def _parse_max_consecutive(p, cid):
    limit = p.get("max_consecutive")
    return MaxConsecutiveParams(
        teacher_id=str(_require(p, "teacher_id", cid)),
        max_consecutive=_as_int(limit, "max_consecutive", cid, minimum=1) if limit is not None else None,
    )


def _parse_teacher_load(p, cid):
    if p.get("max_minutes") is not None:
        limit = _as_int(p["max_minutes"], "max_minutes", cid)
    elif p.get("max_hours") is not None:
        try:
            limit = int(round(float(p["max_hours"]) * 60))
        except (TypeError, ValueError):
            raise _fail(cid, f"parameter 'max_hours' must be a number, got {p['max_hours']!r}") from None
    else:
        raise _fail(cid, "missing parameter 'max_minutes' (or 'max_hours')")
    return TeacherLoadParams(teacher_id=str(_require(p, "teacher_id", cid)), max_minutes=limit)


def _parse_time_preference(p, cid):
    pref = p.get("preference")
    return TimePreferenceParams(
        teacher_id=str(_require(p, "teacher_id", cid)),
        preference=_preference(pref, cid) if pref is not None else None,
    )


_PARSERS: Dict[RuleKind, Callable[[Mapping[str, Any], str], Any]] = {
    RuleKind.MIN_GAP: _parse_min_gap,
    RuleKind.SAME_DAY: _parse_same_day,
    RuleKind.DAY_SPREAD: _parse_day_spread,
    RuleKind.FIXED_ROOM: _parse_fixed_room,
    RuleKind.TEACHER_AVAILABILITY: _parse_teacher_availability,
    RuleKind.REQUIRED_EQUIPMENT: _parse_required_equipment,
    RuleKind.MAX_CONSECUTIVE: _parse_max_consecutive,
    RuleKind.TEACHER_LOAD: _parse_teacher_load,
    RuleKind.TIME_PREFERENCE: _parse_time_preference,
}


def _enum_value(enum_cls, raw: Any, field_name: str, cid: str):
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        valid = [e.value for e in enum_cls]
        raise _fail(cid, f"unknown {field_name} {raw!r} (expected one of {valid})") from None


def parse_constraint(record: Mapping[str, Any]) -> Constraint:
    cid = str(record.get("id", "")).strip()
    if not cid:
        raise ConstraintDefinitionError("Constraint record without an 'id'")
    if "name" not in record:
        raise _fail(cid, "missing 'name'")
    kind = _enum_value(RuleKind, record["name"], "rule name", cid)

    params = record.get("parameters") or {}
    if not isinstance(params, Mapping):
        raise _fail(cid, "'parameters' must be a mapping")

    try:
        weight = float(record.get("weight", 1.0))
    except (TypeError, ValueError):
        raise _fail(cid, f"weight must be a number, got {record.get('weight')!r}") from None
    if not MIN_WEIGHT <= weight <= MAX_WEIGHT:
        raise _fail(cid, f"weight {weight} outside [{MIN_WEIGHT}, {MAX_WEIGHT}]")

    level = _as_int(record.get("severity_level", 5), "severity_level", cid)
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise _fail(cid, f"severity_level {level} outside [{MIN_LEVEL}, {MAX_LEVEL}]")

    category = (
        _enum_value(Category, record["category"], "category", cid)
        if record.get("category") else DEFAULT_CATEGORY[kind]
    )

    return Constraint(
        id=cid,
        kind=kind,
        params=_PARSERS[kind](params, cid),
        severity=_enum_value(Severity, record.get("severity", "soft"), "severity", cid),
        category=category,
        weight=weight,
        severity_level=level,
        active=bool(record.get("active", True)),
    )


def load_constraints(records: Iterable[Mapping[str, Any]]) -> List[Constraint]:
    rules = [parse_constraint(r) for r in records]
    seen = set()
    for r in rules:
        if r.id in seen:
            raise _fail(r.id, "duplicate constraint id")
        seen.add(r.id)
    return rules


# --- shared rule helpers ----------------------------------------------------

def intervals_admit(intervals: Sequence[AvailabilityInterval], day: str, start: int, end: int) -> bool:
    if not intervals:
        return True
    for iv in intervals:
        if iv.day == day and iv.kind == AvailabilityKind.UNAVAILABLE.value and iv.overlaps(start, end):
            return False
    positive = [iv for iv in intervals if iv.kind != AvailabilityKind.UNAVAILABLE.value]
    if not positive:
        return True
    return any(iv.day == day and iv.contains(start, end) for iv in positive)


def preference_met(preference: str, start: int) -> bool:
    if preference == TimePreference.MORNING.value:
        return is_morning(start)
    if preference == TimePreference.AFTERNOON.value:
        return is_afternoon(start)
    return True


def consecutive_excess(blocks: Sequence[Tuple[int, int]], limit: int, threshold: int) -> List[int]:
    """
    Run lengths at every position where a chain of sessions exceeds `limit`.

    Two sessions chain when the next one starts at most `threshold` minutes
    after the previous one ends. `blocks` are (start, end) of one day.
    """
    out: List[int] = []
    ordered = sorted(blocks)
    run = 1
    for prev, cur in zip(ordered, ordered[1:]):
        if cur[0] - prev[1] <= threshold:
            run += 1
        else:
            run = 1
        if run > limit:
            out.append(run)
    return out


def _gap(a_start: int, a_end: int, b_start: int, b_end: int) -> int:
    # Negative when the two blocks overlap.
    return max(b_start - a_end, a_start - b_end)


def _days(assignments: Iterable[Assignment]) -> set:
    return {a.day for a in assignments}


# --- evaluators -------------------------------------------------------------

Evaluator = Callable[["ConstraintEngine", Constraint, List[Assignment]], Tuple[int, List[str]]]


def _eval_min_gap(engine, rule, assignments):
    p: MinGapParams = rule.params
    concerned = [a for a in assignments if a.session.course_id in p.course_ids]
    violations, details = 0, []
    for i, a in enumerate(concerned):
        for b in concerned[i + 1:]:
            if a.day != b.day:
                continue
            gap = _gap(a.start, a.end, b.start, b.end)
            if gap < p.min_gap_minutes:
                violations += 1
                details.append(
                    f"Gap of {max(gap, 0)} min between {a.session_id} and {b.session_id} "
                    f"on {a.day} (min {p.min_gap_minutes})"
                )
    return violations, details


def _eval_same_day(engine, rule, assignments):
    p: SameDayParams = rule.params
    days = _days(a for a in assignments if a.session.course_id in p.course_ids)
    if len(days) > 1:
        return 1, [f"Courses {', '.join(sorted(p.course_ids))} spread over {len(days)} days"]
    return 0, []


def _eval_day_spread(engine, rule, assignments):
    p: DaySpreadParams = rule.params
    n = len(_days(a for a in assignments if a.session.course_id == p.course_id))
    violations, details = 0, []
    if n < p.min_days:
        violations += 1
        details.append(f"Course {p.course_id} on only {n} day(s) (min {p.min_days})")
    if n > p.max_days:
        violations += 1
        details.append(f"Course {p.course_id} on {n} day(s) (max {p.max_days})")
    return violations, details


def _eval_fixed_room(engine, rule, assignments):
    p: FixedRoomParams = rule.params
    wrong = [a for a in assignments if a.session.course_id == p.course_id and a.room_id != p.room_id]
    details = [f"{a.session_id} in room {a.room_id} instead of {p.room_id}" for a in wrong]
    return len(wrong), details


def _eval_teacher_availability(engine, rule, assignments):
    p: TeacherAvailabilityParams = rule.params
    intervals = engine.availability_for(p)
    violations, details = 0, []
    for a in assignments:
        if a.session.teacher_id != p.teacher_id:
            continue
        if not intervals_admit(intervals, a.day, a.start, a.end):
            violations += 1
            details.append(f"Teacher {p.teacher_id} unavailable on {a.day} at {to_hhmm(a.start)}")
    return violations, details


def _eval_required_equipment(engine, rule, assignments):
    p: RequiredEquipmentParams = rule.params
    violations, details = 0, []
    for a in assignments:
        if a.session.course_id != p.course_id:
            continue
        missing = engine.missing_equipment(a.room_id, p.equipment)
        if missing:
            violations += 1
            details.append(f"Room {a.room_id} lacks: {', '.join(missing)}")
    return violations, details


def _eval_max_consecutive(engine, rule, assignments):
    p: MaxConsecutiveParams = rule.params
    limit = engine.consecutive_limit(p.teacher_id, p.max_consecutive)
    by_day: Dict[str, List[Tuple[int, int]]] = defaultdict(list)
    for a in assignments:
        if a.session.teacher_id == p.teacher_id:
            by_day[a.day].append((a.start, a.end))
    violations, details = 0, []
    for day, blocks in by_day.items():
        for run in consecutive_excess(blocks, limit, engine.cfg.consecutive_gap_minutes):
            violations += 1
            details.append(f"Teacher {p.teacher_id}: {run} consecutive sessions on {day}")
    return violations, details


def _eval_teacher_load(engine, rule, assignments):
    p: TeacherLoadParams = rule.params
    total = sum(a.end - a.start for a in assignments if a.session.teacher_id == p.teacher_id)
    if total > p.max_minutes:
        return 1, [f"Teacher {p.teacher_id}: {total / 60:.1f}h (max {p.max_minutes / 60:.1f}h)"]
    return 0, []


def _eval_time_preference(engine, rule, assignments):
    p: TimePreferenceParams = rule.params
    pref = engine.preference_for(p.teacher_id, p.preference)
    violations, details = 0, []
    for a in assignments:
        if a.session.teacher_id == p.teacher_id and not preference_met(pref, a.start):
            violations += 1
            details.append(
                f"Teacher {p.teacher_id}: {a.session_id} at {to_hhmm(a.start)} "
                f"despite a {pref} preference"
            )
    return violations, details


EVALUATORS: Dict[RuleKind, Evaluator] = {
    RuleKind.MIN_GAP: _eval_min_gap,
    RuleKind.SAME_DAY: _eval_same_day,
    RuleKind.DAY_SPREAD: _eval_day_spread,
    RuleKind.FIXED_ROOM: _eval_fixed_room,
    RuleKind.TEACHER_AVAILABILITY: _eval_teacher_availability,
    RuleKind.REQUIRED_EQUIPMENT: _eval_required_equipment,
    RuleKind.MAX_CONSECUTIVE: _eval_max_consecutive,
    RuleKind.TEACHER_LOAD: _eval_teacher_load,
    RuleKind.TIME_PREFERENCE: _eval_time_preference,
}


# --- engine -----------------------------------------------------------------

class ConstraintEngine:
    def __init__(
        self,
        rules: Sequence[Constraint],
        teachers: Sequence[Teacher],
        rooms: Sequence[Room],
        cfg: SchedulerConfig,
    ):
        self.rules = list(rules)
        self.cfg = cfg
        self.teachers = {t.id: t for t in teachers}
        self.rooms = {r.id: r for r in rooms}
        self._check_references()

        active = [r for r in self.rules if r.active]
        self.active_rules = active
        self._hard_unary = [
            r for r in active
            if r.hard and r.kind in (
                RuleKind.FIXED_ROOM,
                RuleKind.REQUIRED_EQUIPMENT,
                RuleKind.TEACHER_AVAILABILITY,
                RuleKind.TIME_PREFERENCE,
            )
        ]
        self._hard_pair = [
            r for r in active if r.hard and r.kind in (RuleKind.MIN_GAP, RuleKind.SAME_DAY)
        ]
        self._hard_nary = [
            r for r in active
            if r.hard and r.kind in (RuleKind.TEACHER_LOAD, RuleKind.DAY_SPREAD, RuleKind.MAX_CONSECUTIVE)
        ]

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        teachers: Sequence[Teacher],
        rooms: Sequence[Room],
        cfg: SchedulerConfig,
    ) -> "ConstraintEngine":
        return cls(load_constraints(records), teachers, rooms, cfg)

    def _check_references(self) -> None:
        for r in self.rules:
            teacher_id = getattr(r.params, "teacher_id", None)
            if teacher_id is not None and teacher_id not in self.teachers:
                raise _fail(r.id, f"references unknown teacher {teacher_id!r}")
            room_id = getattr(r.params, "room_id", None)
            if room_id is not None and room_id not in self.rooms:
                raise _fail(r.id, f"references unknown room {room_id!r}")

    # directory lookups

    def availability_for(self, p: TeacherAvailabilityParams) -> Tuple[AvailabilityInterval, ...]:
        if p.intervals is not None:
            return p.intervals
        teacher = self.teachers.get(p.teacher_id)
        return teacher.availability if teacher else ()

    def preference_for(self, teacher_id: str, override: Optional[str] = None) -> str:
        if override is not None:
            return override
        teacher = self.teachers.get(teacher_id)
        return teacher.time_preference if teacher else TimePreference.INDIFFERENT.value

    def consecutive_limit(self, teacher_id: str, override: Optional[int] = None) -> int:
        if override is not None:
            return override
        teacher = self.teachers.get(teacher_id)
        return teacher.max_consecutive_sessions if teacher else 4

    def missing_equipment(self, room_id: str, equipment: Sequence[str]) -> List[str]:
        room = self.rooms.get(room_id)
        have = set(room.equipment) if room else set()
        return [e for e in equipment if e not in have]

    # incremental checks

    @staticmethod
    def excludes(a: Session, pa: Placement, b: Session, pb: Placement) -> bool:
        """Mutual exclusion: same room, teacher or class at overlapping times."""
        if a.session_id == b.session_id or not pa.slot.overlaps(pb.slot):
            return False
        return (
            pa.room_id == pb.room_id
            or a.teacher_id == b.teacher_id
            or a.class_id == b.class_id
        )

    def admits(self, session: Session, placement: Placement) -> bool:
        """Static per-session rules, independent of any other assignment."""
        slot = placement.slot
        if self.cfg.enforce_time_preference:
            if not preference_met(self.preference_for(session.teacher_id), slot.start):
                return False
        for r in self._hard_unary:
            p = r.params
            if r.kind is RuleKind.FIXED_ROOM:
                if session.course_id == p.course_id and placement.room_id != p.room_id:
                    return False
            elif r.kind is RuleKind.REQUIRED_EQUIPMENT:
                if session.course_id == p.course_id and self.missing_equipment(placement.room_id, p.equipment):
                    return False
            elif r.kind is RuleKind.TEACHER_AVAILABILITY:
                if session.teacher_id == p.teacher_id and not intervals_admit(
                    self.availability_for(p), slot.day, slot.start, slot.end
                ):
                    return False
            elif r.kind is RuleKind.TIME_PREFERENCE:
                if session.teacher_id == p.teacher_id and not preference_met(
                    self.preference_for(p.teacher_id, p.preference), slot.start
                ):
                    return False
        return True

    def pair_ok(self, a: Session, pa: Placement, b: Session, pb: Placement) -> bool:
        if self.excludes(a, pa, b, pb):
            return False
        for r in self._hard_pair:
            ids = r.params.course_ids
            if a.course_id not in ids or b.course_id not in ids:
                continue
            if r.kind is RuleKind.SAME_DAY and pa.slot.day != pb.slot.day:
                return False
            if r.kind is RuleKind.MIN_GAP and pa.slot.day == pb.slot.day:
                s1, s2 = pa.slot, pb.slot
                if _gap(s1.start, s1.end, s2.start, s2.end) < r.params.min_gap_minutes:
                    return False
        return True

    def rule_linked(self, a: Session, b: Session) -> bool:
        """True when a hard pair rule covers both sessions, whatever their days."""
        return any(
            a.course_id in r.params.course_ids and b.course_id in r.params.course_ids
            for r in self._hard_pair
        )

    def linked(self, a: Session, b: Session) -> bool:
        """True when a pair can clash beyond a simple room collision."""
        if a.teacher_id == b.teacher_id or a.class_id == b.class_id:
            return True
        return self.rule_linked(a, b)

    def consistent(self, a: Session, pa: Placement, b: Session, pb: Placement) -> bool:
        return self.admits(a, pa) and self.admits(b, pb) and self.pair_ok(a, pa, b, pb)

    def consistent_with(
        self,
        session: Session,
        placement: Placement,
        assignments: Sequence[Assignment],
        pending: Sequence[Session] = (),
    ) -> bool:
        """
        Can `session` take `placement` next to a partial solution?

        `pending` lists the sessions still to be placed after this one; it
        lets lower bounds such as a day_spread minimum fail early.
        """
        if not self.admits(session, placement):
            return False
        for a in assignments:
            if not self.pair_ok(session, placement, a.session, Placement(a.slot, a.room_id)):
                return False

        slot = placement.slot
        same_teacher = [a for a in assignments if a.session.teacher_id == session.teacher_id]
        day_blocks = [(a.start, a.end) for a in same_teacher if a.day == slot.day]
        day_blocks.append((slot.start, slot.end))
        if consecutive_excess(
            day_blocks, self.consecutive_limit(session.teacher_id), self.cfg.consecutive_gap_minutes
        ):
            return False

        for r in self._hard_nary:
            p = r.params
            if r.kind is RuleKind.TEACHER_LOAD and session.teacher_id == p.teacher_id:
                load = sum(a.end - a.start for a in same_teacher) + (slot.end - slot.start)
                if load > p.max_minutes:
                    return False
            elif r.kind is RuleKind.DAY_SPREAD and session.course_id == p.course_id:
                days = _days(a for a in assignments if a.session.course_id == p.course_id)
                days.add(slot.day)
                if len(days) > p.max_days:
                    return False
                left = sum(1 for s in pending if s.course_id == p.course_id)
                if len(days) + left < p.min_days:
                    return False
            elif r.kind is RuleKind.MAX_CONSECUTIVE and session.teacher_id == p.teacher_id:
                limit = self.consecutive_limit(p.teacher_id, p.max_consecutive)
                if consecutive_excess(day_blocks, limit, self.cfg.consecutive_gap_minutes):
                    return False
        return True

    # whole-solution evaluation

    def evaluate(self, assignments: Sequence[Assignment]) -> List[RuleResult]:
        results = []
        items = list(assignments)
        for r in self.active_rules:
            violations, details = EVALUATORS[r.kind](self, r, items)
            results.append(
                RuleResult(
                    constraint_id=r.id,
                    name=r.name,
                    weight=r.weight,
                    violations=violations,
                    penalty=violations * r.weight * PENALTY_FACTOR,
                    details=details,
                )
            )
        return results

    def hard_violations(self, assignments: Sequence[Assignment]) -> List[RuleResult]:
        """Results of the active hard rules that a complete solution breaks."""
        items = list(assignments)
        out = []
        for r in self.active_rules:
            if not r.hard:
                continue
            violations, details = EVALUATORS[r.kind](self, r, items)
            if violations:
                out.append(
                    RuleResult(r.id, r.name, r.weight, violations,
                               violations * r.weight * PENALTY_FACTOR, details)
                )
        return out

    @staticmethod
    def constraint_score(results: Sequence[RuleResult]) -> float:
        return max(0.0, BASE_SCORE - sum(r.penalty for r in results))

    def compliance_ratio(self, results: Sequence[RuleResult]) -> float:
        if not self.active_rules:
            return 1.0
        clean = sum(1 for r in results if r.violations == 0)
        return clean / len(self.active_rules)

    def suggestions(self, results: Sequence[RuleResult]) -> List[Suggestion]:
        out = [
            Suggestion(
                constraint_id=r.constraint_id,
                rule=r.name,
                problem=f"{r.violations} violation(s) detected",
                suggestion=SUGGESTIONS[RuleKind(r.name)],
                priority=r.weight,
            )
            for r in results
            if r.violations > 0
        ]
        # stable: equal weights keep rule order
        return sorted(out, key=lambda s: s.priority, reverse=True)

    def report(self, results: Sequence[RuleResult]) -> Dict[str, Any]:
        return {
            "total_constraints": len(self.rules),
            "active_constraints": len(self.active_rules),
            "total_penalty": sum(r.penalty for r in results),
            "details": [
                {
                    "constraint": r.name,
                    "constraint_id": r.constraint_id,
                    "violations": r.violations,
                    "penalty": r.penalty,
                    "details": list(r.details),
                }
                for r in results
            ],
        }
