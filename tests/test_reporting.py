import unittest

from timetable_engine.config import SchedulerConfig
from timetable_engine.constraints import ConstraintEngine
from timetable_engine.model import Assignment, Room, Session, Solution, Teacher
from timetable_engine.reporting import fill_rate, find_conflicts, occupancy_grid, score


def session(sid, teacher="T1", klass="6A", duration=60):
    return Session(sid, "C1", teacher, klass, duration, "lecture", 0)


def at(s, day, start, room="R1"):
    return Assignment(s, day, start, start + s.duration_minutes, room)


class ConflictTests(unittest.TestCase):
    def test_each_shared_resource_is_a_conflict(self):
        a = at(session("a", teacher="T1", klass="6A"), "monday", 480, "R1")
        b = at(session("b", teacher="T1", klass="6B", duration=120), "monday", 510, "R2")
        conflicts = find_conflicts([a, b])
        self.assertEqual(len(conflicts), 1)
        c = conflicts[0]
        self.assertEqual((c.kind, c.resource, c.start, c.end), ("teacher", "T1", 510, 540))
        self.assertIn("08:30-09:00", c.message)

    def test_back_to_back_is_not_an_overlap(self):
        a = at(session("a"), "monday", 480)
        b = at(session("b"), "monday", 540)
        c = at(session("c"), "tuesday", 480)
        self.assertEqual(find_conflicts([a, b, c]), [])


class FillRateTests(unittest.TestCase):
    def setUp(self):
        self.cfg = SchedulerConfig()

    def test_empty_timetable(self):
        self.assertEqual(fill_rate([], self.cfg), 0.0)

    def test_cells_are_counted_once(self):
        # two rooms busy in the same hour still cover a single cell
        a = at(session("a"), "monday", 480, "R1")
        b = at(session("b", teacher="T2", klass="6B"), "monday", 480, "R2")
        self.assertEqual(fill_rate([a, b], self.cfg), 2.0)

    def test_long_sessions_cover_several_cells(self):
        a = at(session("a", duration=120), "friday", 960)
        grid = occupancy_grid([a], self.cfg)
        self.assertEqual(grid.shape, (5, 10))
        self.assertEqual(int(grid.sum()), 2)
        self.assertTrue(grid[4, 8] and grid[4, 9])

    def test_days_outside_the_window_are_ignored(self):
        a = at(session("a"), "saturday", 480)
        self.assertEqual(fill_rate([a], self.cfg), 0.0)


class ScoreTests(unittest.TestCase):
    def setUp(self):
        cfg = SchedulerConfig()
        records = [
            {"id": "pref", "name": "time_preference", "weight": 3, "parameters": {"teacher_id": "T1"}},
        ]
        self.engine = ConstraintEngine.from_records(
            records, [Teacher("T1", time_preference="morning")], [Room("R1", 30), Room("R2", 30)], cfg
        )

    def test_empty_solution_scores_full_marks(self):
        report = score(Solution(), self.engine)
        self.assertEqual(report.constraint_score, 1000.0)
        self.assertEqual(report.score, 100.0)
        self.assertEqual(report.fill_rate, 0.0)
        self.assertEqual(report.compliance_ratio, 1.0)
        self.assertTrue(report.feasible)

    def test_conflicts_and_rule_penalties_both_count(self):
        a = at(session("a"), "monday", 900, "R1")
        b = at(session("b", klass="6B"), "monday", 900, "R2")
        report = score(Solution([a, b]), self.engine)
        # one teacher clash and two afternoon sessions for a morning teacher
        self.assertEqual(len(report.conflicts), 1)
        self.assertEqual(report.constraint_score, 1000 - 60 - 50)
        self.assertAlmostEqual(report.score, 89.0)
        self.assertEqual(report.compliance_ratio, 0.0)
        self.assertEqual(report.suggestions[0].constraint_id, "pref")
        self.assertFalse(report.feasible)

    def test_scoring_is_idempotent(self):
        solution = Solution([at(session("a"), "monday", 480), at(session("b"), "tuesday", 900)])
        first = score(solution, self.engine)
        second = score(solution, self.engine)
        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_fill_rate_stays_in_range(self):
        assignments = [
            at(session(f"{d}{h}", klass=f"K{d}{h}"), day, 480 + 60 * h, f"R{h % 2 + 1}")
            for d, day in enumerate(SchedulerConfig().days)
            for h in range(10)
        ]
        report = score(Solution(assignments), self.engine)
        self.assertEqual(report.fill_rate, 100.0)
        self.assertGreaterEqual(report.score, 0.0)

    def test_to_dict_is_plain(self):
        a = at(session("a"), "monday", 480, "R1")
        b = at(session("b", klass="6B"), "monday", 480, "R1")
        data = score(Solution([a, b]), self.engine).to_dict()
        self.assertEqual(data["conflicts"][0]["kind"], "room")
        self.assertIn("message", data["conflicts"][0])
        self.assertIsInstance(data["rule_results"][0], dict)


if __name__ == "__main__":
    unittest.main()
