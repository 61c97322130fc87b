import unittest

from timetable_engine.config import SchedulerConfig
from timetable_engine.constraints import (
    EVALUATORS,
    _PARSERS,
    ConstraintEngine,
    RuleKind,
    Severity,
    consecutive_excess,
    intervals_admit,
    load_constraints,
    parse_constraint,
)
from timetable_engine.errors import ConstraintDefinitionError
from timetable_engine.model import (
    Assignment,
    AvailabilityInterval,
    Placement,
    Room,
    Session,
    Slot,
    Teacher,
)


def session(sid, course="C1", teacher="T1", klass="6A", duration=60):
    return Session(sid, course, teacher, klass, duration, "lecture", 0)


def at(s, day, start, room="R1"):
    return Assignment(s, day, start, start + s.duration_minutes, room)


TEACHERS = [
    Teacher("T1", time_preference="morning", max_consecutive_sessions=3),
    Teacher("T2"),
]
ROOMS = [Room("R1", 30, equipment=("projector",)), Room("R2", 30)]


def engine(records=(), cfg=None):
    return ConstraintEngine.from_records(records, TEACHERS, ROOMS, cfg or SchedulerConfig())


class ParsingTests(unittest.TestCase):
    def test_unknown_rule_name_fails_at_load_time(self):
        with self.assertRaises(ConstraintDefinitionError) as ctx:
            parse_constraint({"id": "x1", "name": "no_homework_on_fridays", "parameters": {}})
        self.assertEqual(ctx.exception.constraint_id, "x1")

    def test_missing_parameter(self):
        with self.assertRaises(ConstraintDefinitionError):
            parse_constraint({"id": "x", "name": "fixed_room", "parameters": {"course_id": "C1"}})

    def test_weight_range(self):
        with self.assertRaises(ConstraintDefinitionError):
            parse_constraint({
                "id": "x", "name": "same_day", "weight": 12,
                "parameters": {"course_ids": ["A", "B"]},
            })

    def test_duplicate_ids(self):
        rec = {"id": "x", "name": "same_day", "parameters": {"course_ids": ["A", "B"]}}
        with self.assertRaises(ConstraintDefinitionError):
            load_constraints([rec, dict(rec)])

    def test_unknown_teacher_reference(self):
        with self.assertRaises(ConstraintDefinitionError):
            engine([{"id": "x", "name": "time_preference", "parameters": {"teacher_id": "T9"}}])

    def test_defaults_and_hours(self):
        rule = parse_constraint({
            "id": "load", "name": "teacher_load",
            "parameters": {"teacher_id": "T1", "max_hours": 1.5},
        })
        self.assertIs(rule.kind, RuleKind.TEACHER_LOAD)
        self.assertIs(rule.severity, Severity.SOFT)
        self.assertEqual(rule.params.max_minutes, 90)
        self.assertEqual(rule.weight, 1.0)

    def test_every_rule_kind_has_a_parser_and_an_evaluator(self):
        self.assertEqual(set(EVALUATORS), set(RuleKind))
        self.assertEqual(set(_PARSERS), set(RuleKind))


class EvaluatorTests(unittest.TestCase):
    def count(self, record, assignments):
        results = engine([dict(record, id="r")]).evaluate(assignments)
        return results[0].violations

    def test_time_preference_at_three_pm_counts_once(self):
        eng = engine([{"id": "p", "name": "time_preference", "weight": 2, "parameters": {"teacher_id": "T1"}}])
        results = eng.evaluate([at(session("s1"), "monday", 900), at(session("s2"), "monday", 540)])
        self.assertEqual(results[0].violations, 1)
        self.assertEqual(results[0].penalty, 20.0)
        self.assertEqual(eng.constraint_score(results), 980.0)

    def test_min_gap(self):
        rec = {"name": "min_gap", "parameters": {"course_ids": ["A", "B"], "min_gap_minutes": 60}}
        a, b = session("a", course="A"), session("b", course="B", teacher="T2", klass="6B")
        self.assertEqual(self.count(rec, [at(a, "monday", 480), at(b, "monday", 570)]), 1)
        self.assertEqual(self.count(rec, [at(a, "monday", 480), at(b, "monday", 600)]), 0)
        self.assertEqual(self.count(rec, [at(a, "monday", 480), at(b, "tuesday", 540)]), 0)

    def test_same_day(self):
        rec = {"name": "same_day", "parameters": {"course_ids": ["A", "B"]}}
        a, b = session("a", course="A"), session("b", course="B")
        self.assertEqual(self.count(rec, [at(a, "monday", 480), at(b, "friday", 480)]), 1)
        self.assertEqual(self.count(rec, [at(a, "monday", 480), at(b, "monday", 600)]), 0)

    def test_day_spread(self):
        rec = {"name": "day_spread", "parameters": {"course_id": "C1", "min_days": 2, "max_days": 2}}
        s1, s2, s3 = session("s1"), session("s2"), session("s3")
        self.assertEqual(self.count(rec, [at(s1, "monday", 480), at(s2, "monday", 600)]), 1)
        self.assertEqual(
            self.count(rec, [at(s1, "monday", 480), at(s2, "tuesday", 480), at(s3, "friday", 480)]), 1
        )
        self.assertEqual(self.count(rec, [at(s1, "monday", 480), at(s2, "tuesday", 480)]), 0)

    def test_fixed_room(self):
        rec = {"name": "fixed_room", "parameters": {"course_id": "C1", "room_id": "R1"}}
        self.assertEqual(self.count(rec, [at(session("s1"), "monday", 480, "R2")]), 1)
        self.assertEqual(self.count(rec, [at(session("s1"), "monday", 480, "R1")]), 0)

    def test_required_equipment(self):
        rec = {"name": "required_equipment", "parameters": {"course_id": "C1", "equipment": ["projector"]}}
        self.assertEqual(self.count(rec, [at(session("s1"), "monday", 480, "R2")]), 1)
        self.assertEqual(self.count(rec, [at(session("s1"), "monday", 480, "R1")]), 0)

    def test_teacher_availability_from_parameters(self):
        rec = {"name": "teacher_availability", "parameters": {
            "teacher_id": "T2",
            "intervals": [{"day": "monday", "start": "08:00", "end": "12:00"}],
        }}
        s = session("s1", teacher="T2")
        self.assertEqual(self.count(rec, [at(s, "monday", 720)]), 1)
        self.assertEqual(self.count(rec, [at(s, "monday", 600)]), 0)

    def test_max_consecutive_counts_each_excess_position(self):
        rec = {"name": "max_consecutive", "parameters": {"teacher_id": "T2", "max_consecutive": 2}}
        ss = [session(f"s{i}", teacher="T2") for i in range(4)]
        # 08:00, 09:00, 10:10, 11:10: every gap is within 15 minutes
        placed = [at(ss[0], "monday", 480), at(ss[1], "monday", 540),
                  at(ss[2], "monday", 610), at(ss[3], "monday", 670)]
        self.assertEqual(self.count(rec, placed), 2)
        # a 30 minute break resets the run
        placed = [at(ss[0], "monday", 480), at(ss[1], "monday", 540), at(ss[2], "monday", 630)]
        self.assertEqual(self.count(rec, placed), 0)

    def test_teacher_load(self):
        rec = {"name": "teacher_load", "parameters": {"teacher_id": "T2", "max_minutes": 60}}
        s1, s2 = session("s1", teacher="T2"), session("s2", teacher="T2")
        self.assertEqual(self.count(rec, [at(s1, "monday", 480), at(s2, "tuesday", 480)]), 1)
        self.assertEqual(self.count(rec, [at(s1, "monday", 480)]), 0)


class ScoringTests(unittest.TestCase):
    RECORDS = [
        {"id": "a", "name": "fixed_room", "weight": 2, "parameters": {"course_id": "C1", "room_id": "R1"}},
        {"id": "b", "name": "time_preference", "weight": 5, "parameters": {"teacher_id": "T1"}},
        {"id": "c", "name": "same_day", "weight": 1, "parameters": {"course_ids": ["C1", "C2"]}},
        {"id": "d", "name": "fixed_room", "active": False, "parameters": {"course_id": "C1", "room_id": "R1"}},
    ]

    def setUp(self):
        self.engine = engine(self.RECORDS)
        self.results = self.engine.evaluate([at(session("s1"), "monday", 900, "R2")])

    def test_inactive_rules_are_skipped(self):
        self.assertEqual([r.constraint_id for r in self.results], ["a", "b", "c"])

    def test_score_and_compliance(self):
        self.assertEqual(self.engine.constraint_score(self.results), 1000 - 20 - 50)
        self.assertAlmostEqual(self.engine.compliance_ratio(self.results), 1 / 3)

    def test_suggestions_ranked_by_weight(self):
        ranked = [s.constraint_id for s in self.engine.suggestions(self.results)]
        self.assertEqual(ranked, ["b", "a"])

    def test_no_rules_means_full_compliance(self):
        eng = engine()
        self.assertEqual(eng.compliance_ratio(eng.evaluate([])), 1.0)
        self.assertEqual(eng.constraint_score([]), 1000.0)

    def test_report_totals(self):
        rep = self.engine.report(self.results)
        self.assertEqual(rep["total_constraints"], 4)
        self.assertEqual(rep["active_constraints"], 3)
        self.assertEqual(rep["total_penalty"], 70.0)


class IncrementalCheckTests(unittest.TestCase):
    def p(self, day, start, room="R1"):
        return Placement(Slot(day, start, start + 60), room)

    def test_excludes_shared_room_teacher_or_class(self):
        a = session("a", teacher="T1", klass="6A")
        b = session("b", teacher="T2", klass="6B")
        self.assertTrue(ConstraintEngine.excludes(a, self.p("monday", 480), b, self.p("monday", 480)))
        self.assertFalse(ConstraintEngine.excludes(a, self.p("monday", 480), b, self.p("monday", 480, "R2")))
        self.assertFalse(ConstraintEngine.excludes(a, self.p("monday", 480), b, self.p("monday", 540)))
        c = session("c", teacher="T2", klass="6A")
        self.assertTrue(ConstraintEngine.excludes(a, self.p("monday", 480), c, self.p("monday", 480, "R2")))

    def test_directory_preference_filters_placements(self):
        eng = engine()
        s = session("s", teacher="T1")
        self.assertTrue(eng.admits(s, self.p("monday", 540)))
        self.assertFalse(eng.admits(s, self.p("monday", 900)))
        relaxed = engine(cfg=SchedulerConfig(enforce_time_preference=False))
        self.assertTrue(relaxed.admits(s, self.p("monday", 900)))

    def test_hard_fixed_room_is_unary(self):
        eng = engine([{"id": "f", "name": "fixed_room", "severity": "hard",
                       "parameters": {"course_id": "C1", "room_id": "R1"}}])
        s = session("s", teacher="T2")
        self.assertTrue(eng.admits(s, self.p("monday", 480, "R1")))
        self.assertFalse(eng.admits(s, self.p("monday", 480, "R2")))

    def test_consistent_with_hard_load(self):
        eng = engine([{"id": "l", "name": "teacher_load", "severity": "hard",
                       "parameters": {"teacher_id": "T2", "max_minutes": 60}}])
        s1, s2 = session("s1", teacher="T2"), session("s2", teacher="T2")
        placed = [at(s1, "monday", 480)]
        self.assertFalse(eng.consistent_with(s2, self.p("tuesday", 480), placed))
        self.assertTrue(eng.consistent_with(s2, self.p("tuesday", 480), []))

    def test_consistent_with_directory_consecutive_limit(self):
        eng = engine(cfg=SchedulerConfig(enforce_time_preference=False))
        ss = [session(f"s{i}", teacher="T1", klass=f"K{i}") for i in range(4)]
        placed = [at(ss[i], "monday", 480 + 60 * i) for i in range(3)]
        self.assertFalse(eng.consistent_with(ss[3], self.p("monday", 660, "R2"), placed))
        self.assertTrue(eng.consistent_with(ss[3], self.p("monday", 720, "R2"), placed))

    def test_consistent_checks_both_sides(self):
        eng = engine()
        a, b = session("a", teacher="T2", klass="A"), session("b", teacher="T2", klass="B")
        self.assertFalse(eng.consistent(a, self.p("monday", 480), b, self.p("monday", 480, "R2")))
        self.assertTrue(eng.consistent(a, self.p("monday", 480), b, self.p("monday", 540, "R2")))

    def test_day_spread_minimum_looks_ahead(self):
        eng = engine([{"id": "d", "name": "day_spread", "severity": "hard",
                       "parameters": {"course_id": "C1", "min_days": 3, "max_days": 3}}],
                     cfg=SchedulerConfig(enforce_time_preference=False))
        s1, s2, s3 = session("s1", teacher="T2"), session("s2", teacher="T2"), session("s3", teacher="T2")
        placed = [at(s1, "monday", 480)]
        self.assertFalse(eng.consistent_with(s2, self.p("monday", 600), placed, [s3]))
        self.assertTrue(eng.consistent_with(s2, self.p("tuesday", 480), placed, [s3]))

    def test_hard_violations_skip_soft_rules(self):
        eng = engine([
            {"id": "hard", "name": "day_spread", "severity": "hard",
             "parameters": {"course_id": "C1", "min_days": 2, "max_days": 5}},
            {"id": "soft", "name": "fixed_room", "parameters": {"course_id": "C1", "room_id": "R2"}},
        ])
        broken = eng.hard_violations([at(session("s1"), "monday", 480, "R1")])
        self.assertEqual([r.constraint_id for r in broken], ["hard"])


class HelperTests(unittest.TestCase):
    def test_consecutive_excess_positions(self):
        blocks = [(480, 540), (540, 600), (600, 660)]
        self.assertEqual(consecutive_excess(blocks, 1, 15), [2, 3])
        self.assertEqual(consecutive_excess(blocks, 3, 15), [])

    def test_preference_interval_counts_as_positive(self):
        ivs = (AvailabilityInterval("monday", 780, 1080, "preference"),)
        self.assertTrue(intervals_admit(ivs, "monday", 840, 900))
        self.assertFalse(intervals_admit(ivs, "monday", 480, 540))


if __name__ == "__main__":
    unittest.main()
