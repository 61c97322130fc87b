# timetable_engine/data_loader.py
import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pandas as pd

from .errors import ConfigError
from .model import AvailabilityInterval, Course, Room, Teacher
from .timeutils import to_minutes

COURSE_COLUMNS = ("id", "class_id", "subject_id", "teacher_id", "weekly_volume_minutes", "standard_session_minutes")
TEACHER_COLUMNS = ("id",)
AVAILABILITY_COLUMNS = ("teacher_id", "day", "start", "end")
ROOM_COLUMNS = ("id", "capacity")
CONSTRAINT_COLUMNS = ("id", "name")


@dataclass(frozen=True)
class DataBundle:
    courses: List[Course]
    teachers: List[Teacher]
    rooms: List[Room]
    constraints: List[Dict[str, Any]] = field(default_factory=list)


def _read_csv(path: Path, required: Sequence[str]) -> pd.DataFrame:
    if not path.exists():
        raise ConfigError(f"Missing input file {path}")
    # everything as text first; numeric columns are converted per field
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [c.strip() for c in df.columns]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ConfigError(f"{path.name}: missing column(s) {', '.join(missing)}")
    return df


def _text(row: pd.Series, col: str, default: str = "") -> str:
    value = str(row.get(col, "")).strip()
    return value or default


def _int(row: pd.Series, col: str, default: int, source: str) -> int:
    value = _text(row, col)
    if not value:
        return default
    try:
        return int(float(value))
    except ValueError:
        raise ConfigError(f"{source}: column {col!r} expects a number, got {value!r}") from None


def _minutes(value: str, source: str) -> int:
    try:
        return to_minutes(value.strip())
    except ValueError as exc:
        raise ConfigError(f"{source}: {exc}") from exc


def _truthy(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "n")


def load_courses(path: Path) -> List[Course]:
    df = _read_csv(path, COURSE_COLUMNS)
    return [
        Course(
            id=_text(r, "id"),
            class_id=_text(r, "class_id"),
            subject_id=_text(r, "subject_id"),
            teacher_id=_text(r, "teacher_id"),
            weekly_volume_minutes=_int(r, "weekly_volume_minutes", 0, path.name),
            standard_session_minutes=_int(r, "standard_session_minutes", 0, path.name),
            course_type=_text(r, "course_type", "lecture").lower(),
            max_headcount=_int(r, "max_headcount", 0, path.name),
        )
        for _, r in df.iterrows()
    ]


def load_availability(path: Path) -> Dict[str, List[AvailabilityInterval]]:
    by_teacher: Dict[str, List[AvailabilityInterval]] = defaultdict(list)
    if not path.exists():
        return by_teacher
    df = _read_csv(path, AVAILABILITY_COLUMNS)
    for _, r in df.iterrows():
        by_teacher[_text(r, "teacher_id")].append(
            AvailabilityInterval(
                day=_text(r, "day").lower(),
                start=_minutes(_text(r, "start"), path.name),
                end=_minutes(_text(r, "end"), path.name),
                kind=_text(r, "kind", "available").lower(),
            )
        )
    return by_teacher


def load_teachers(path: Path, availability: Dict[str, List[AvailabilityInterval]]) -> List[Teacher]:
    df = _read_csv(path, TEACHER_COLUMNS)
    teachers = []
    for _, r in df.iterrows():
        tid = _text(r, "id")
        teachers.append(
            Teacher(
                id=tid,
                name=_text(r, "name"),
                weekly_contract_minutes=_int(r, "weekly_contract_minutes", 0, path.name),
                max_daily_minutes=_int(r, "max_daily_minutes", 0, path.name),
                max_consecutive_sessions=_int(r, "max_consecutive_sessions", 4, path.name),
                time_preference=_text(r, "time_preference", "indifferent").lower(),
                availability=tuple(availability.get(tid, ())),
            )
        )
    return teachers


def load_rooms(path: Path) -> List[Room]:
    df = _read_csv(path, ROOM_COLUMNS)
    return [
        Room(
            id=_text(r, "id"),
            capacity=_int(r, "capacity", 0, path.name),
            room_type=_text(r, "room_type", "standard").lower(),
            name=_text(r, "name"),
            building=_text(r, "building"),
            equipment=tuple(e.strip() for e in _text(r, "equipment").split(";") if e.strip()),
        )
        for _, r in df.iterrows()
    ]


def load_constraint_records(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    df = _read_csv(path, CONSTRAINT_COLUMNS)
    records = []
    for _, r in df.iterrows():
        raw = _text(r, "parameters", "{}")
        try:
            params = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{path.name}: constraint {_text(r, 'id')!r} has invalid parameters: {exc}") from exc
        record: Dict[str, Any] = {"id": _text(r, "id"), "name": _text(r, "name"), "parameters": params}
        for col in ("weight", "severity_level", "category", "severity"):
            if _text(r, col):
                record[col] = _text(r, col)
        if _text(r, "active"):
            record["active"] = _truthy(_text(r, "active"))
        records.append(record)
    return records


def load_data(data_dir: str) -> DataBundle:
    base = Path(data_dir)
    availability = load_availability(base / "availability.csv")
    return DataBundle(
        courses=load_courses(base / "courses.csv"),
        teachers=load_teachers(base / "teachers.csv", availability),
        rooms=load_rooms(base / "rooms.csv"),
        constraints=load_constraint_records(base / "constraints.csv"),
    )
