import shutil
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from timetable_engine.constraints import ConstraintEngine
from timetable_engine.config import SchedulerConfig
from timetable_engine.data_loader import load_data
from timetable_engine.errors import ConfigError


class DataLoaderTests(unittest.TestCase):
    def setUp(self):
        self.dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.dir)
        pd.DataFrame([
            {"id": "M1", "class_id": "6A", "subject_id": "math", "teacher_id": "T1",
             "weekly_volume_minutes": 180, "standard_session_minutes": 60, "course_type": "Lecture"},
            {"id": "L1", "class_id": "6A", "subject_id": "chem", "teacher_id": "T1",
             "weekly_volume_minutes": 120, "standard_session_minutes": 120, "course_type": "lab"},
        ]).to_csv(self.dir / "courses.csv", index=False)
        pd.DataFrame([
            {"id": "T1", "name": "A. Martin", "weekly_contract_minutes": 1080, "time_preference": "morning"},
            {"id": "T2", "name": "B. Leroy"},
        ]).to_csv(self.dir / "teachers.csv", index=False)
        pd.DataFrame([
            {"teacher_id": "T1", "day": "Monday", "start": "08:00", "end": "12:00", "kind": "available"},
            {"teacher_id": "T1", "day": "tuesday", "start": "13:00", "end": "14:00", "kind": "unavailable"},
        ]).to_csv(self.dir / "availability.csv", index=False)
        pd.DataFrame([
            {"id": "R1", "name": "Room 1", "capacity": 30, "room_type": "standard", "equipment": "projector; board"},
            {"id": "LAB", "name": "Lab", "capacity": 16, "room_type": "laboratory", "equipment": ""},
        ]).to_csv(self.dir / "rooms.csv", index=False)

    def test_records_are_typed(self):
        bundle = load_data(str(self.dir))
        self.assertEqual(len(bundle.courses), 2)
        self.assertEqual(bundle.courses[0].weekly_volume_minutes, 180)
        self.assertEqual(bundle.courses[0].course_type, "lecture")
        self.assertEqual(bundle.rooms[0].equipment, ("projector", "board"))
        self.assertEqual(bundle.rooms[1].equipment, ())
        self.assertEqual(bundle.constraints, [])

    def test_teacher_defaults_and_availability(self):
        t1, t2 = load_data(str(self.dir)).teachers
        self.assertEqual(t1.time_preference, "morning")
        self.assertEqual(len(t1.availability), 2)
        self.assertEqual(t1.availability[0].day, "monday")
        self.assertEqual((t1.availability[1].start, t1.availability[1].kind), (780, "unavailable"))
        self.assertEqual(t2.max_consecutive_sessions, 4)
        self.assertEqual(t2.time_preference, "indifferent")
        self.assertEqual(t2.availability, ())

    def test_constraint_parameters_are_json(self):
        pd.DataFrame([
            {"id": "c1", "name": "fixed_room", "parameters": '{"course_id": "L1", "room_id": "LAB"}',
             "weight": 4, "severity": "hard", "active": "true"},
            {"id": "c2", "name": "teacher_load", "parameters": '{"teacher_id": "T1", "max_hours": 18}',
             "weight": "", "severity": "", "active": "false"},
        ]).to_csv(self.dir / "constraints.csv", index=False)
        bundle = load_data(str(self.dir))
        self.assertEqual(bundle.constraints[0]["parameters"]["room_id"], "LAB")
        self.assertFalse(bundle.constraints[1]["active"])
        engine = ConstraintEngine.from_records(bundle.constraints, bundle.teachers, bundle.rooms, SchedulerConfig())
        self.assertEqual(len(engine.active_rules), 1)
        self.assertEqual(engine.rules[0].weight, 4.0)

    def test_bad_json_parameters(self):
        pd.DataFrame([{"id": "c1", "name": "fixed_room", "parameters": "{course_id: L1"}]).to_csv(
            self.dir / "constraints.csv", index=False
        )
        with self.assertRaises(ConfigError):
            load_data(str(self.dir))

    def test_missing_file_and_column(self):
        (self.dir / "rooms.csv").unlink()
        with self.assertRaises(ConfigError):
            load_data(str(self.dir))
        pd.DataFrame([{"id": "R1"}]).to_csv(self.dir / "rooms.csv", index=False)
        with self.assertRaises(ConfigError):
            load_data(str(self.dir))


if __name__ == "__main__":
    unittest.main()
