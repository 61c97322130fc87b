# timetable_engine/model.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .timeutils import to_hhmm

RoomId = str
Minutes = int


class CourseType(str, Enum):
    LECTURE = "lecture"
    TUTORIAL = "tutorial"
    LAB = "lab"
    WORKSHOP = "workshop"


class RoomType(str, Enum):
    STANDARD = "standard"
    LABORATORY = "laboratory"
    GYMNASIUM = "gymnasium"
    AMPHITHEATRE = "amphitheatre"
    WORKSHOP = "workshop"
    COMPUTER = "computer"
    MUSIC = "music"
    ARTS = "arts"


class TimePreference(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    INDIFFERENT = "indifferent"


class AvailabilityKind(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    PREFERENCE = "preference"


@dataclass(frozen=True)
class Course:
    id: str
    class_id: str
    subject_id: str
    teacher_id: str
    weekly_volume_minutes: int
    standard_session_minutes: int
    course_type: str = CourseType.LECTURE.value
    max_headcount: int = 0


@dataclass(frozen=True)
class AvailabilityInterval:
    day: str
    start: Minutes
    end: Minutes
    kind: str = AvailabilityKind.AVAILABLE.value

    def contains(self, start: Minutes, end: Minutes) -> bool:
        return self.start <= start and end <= self.end

    def overlaps(self, start: Minutes, end: Minutes) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True)
class Teacher:
    id: str
    name: str = ""
    weekly_contract_minutes: int = 0
    max_daily_minutes: int = 0
    max_consecutive_sessions: int = 4
    time_preference: str = TimePreference.INDIFFERENT.value
    availability: Tuple[AvailabilityInterval, ...] = ()


@dataclass(frozen=True)
class Room:
    id: RoomId
    capacity: int
    room_type: str = RoomType.STANDARD.value
    name: str = ""
    building: str = ""
    equipment: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Session:
    # One weekly meeting of a course; the unit placed by the solvers.
    session_id: str
    course_id: str
    teacher_id: str
    class_id: str
    duration_minutes: int
    course_type: str
    sequence_index: int
    headcount: int = 0


@dataclass(frozen=True)
class Slot:
    day: str
    start: Minutes
    end: Minutes

    def overlaps(self, other: "Slot") -> bool:
        return self.day == other.day and self.start < other.end and other.start < self.end

    def label(self) -> str:
        return f"{self.day} {to_hhmm(self.start)}-{to_hhmm(self.end)}"


@dataclass(frozen=True)
class Placement:
    slot: Slot
    room_id: RoomId


@dataclass(frozen=True)
class Assignment:
    session: Session
    day: str
    start: Minutes
    end: Minutes
    room_id: RoomId

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def slot(self) -> Slot:
        return Slot(self.day, self.start, self.end)

    @classmethod
    def place(cls, session: Session, placement: Placement) -> "Assignment":
        return cls(
            session=session,
            day=placement.slot.day,
            start=placement.slot.start,
            end=placement.slot.end,
            room_id=placement.room_id,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "session_id": self.session.session_id,
            "course_id": self.session.course_id,
            "teacher_id": self.session.teacher_id,
            "class_id": self.session.class_id,
            "day": self.day,
            "start": to_hhmm(self.start),
            "end": to_hhmm(self.end),
            "room_id": self.room_id,
            "duration_minutes": self.session.duration_minutes,
        }


@dataclass
class Solution:
    assignments: List[Assignment] = field(default_factory=list)
    solver: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.assignments)

    def by_session(self) -> Dict[str, Assignment]:
        return {a.session_id: a for a in self.assignments}

    def get(self, session_id: str) -> Optional[Assignment]:
        return self.by_session().get(session_id)

    def to_records(self) -> List[Dict[str, Any]]:
        return [a.to_record() for a in self.assignments]


@dataclass(frozen=True)
class Gene:
    # Placement of one session inside a chromosome; may be infeasible.
    day: str
    start: Minutes
    room_id: RoomId


@dataclass
class Individual:
    genes: List[Gene]
    fitness: float = 0.0
    penalty: float = 0.0
    bonus: float = 0.0

    def clone(self) -> "Individual":
        return Individual(list(self.genes), self.fitness, self.penalty, self.bonus)

    def to_assignments(self, sessions: List[Session]) -> List[Assignment]:
        return [
            Assignment(s, g.day, g.start, g.start + s.duration_minutes, g.room_id)
            for s, g in zip(sessions, self.genes)
        ]
