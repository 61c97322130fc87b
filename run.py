import argparse
import logging
import random
import sys
import time
from pathlib import Path

import pandas as pd

from timetable_engine.api import MODES, GenerationResult, generate
from timetable_engine.config import SchedulerConfig, load_config
from timetable_engine.data_loader import load_data
from timetable_engine.errors import ConfigError, InfeasibleScheduleError, SchedulingError


def export_outputs(result: GenerationResult, elapsed: float, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    report = result.report

    pd.DataFrame(result.solution.to_records()).to_csv(out_dir / "schedule.csv", index=False)
    pd.DataFrame(
        [
            {
                "kind": c.kind,
                "resource": c.resource,
                "session_a": c.session_a,
                "session_b": c.session_b,
                "day": c.day,
                "message": c.message,
            }
            for c in report.conflicts
        ],
        columns=["kind", "resource", "session_a", "session_b", "day", "message"],
    ).to_csv(out_dir / "conflicts.csv", index=False)
    pd.DataFrame(
        [vars(s) for s in report.suggestions],
        columns=["constraint_id", "rule", "problem", "suggestion", "priority"],
    ).to_csv(out_dir / "suggestions.csv", index=False)

    metrics = {
        "mode": result.mode,
        "solver": result.solution.solver,
        "score": report.score,
        "constraint_score": report.constraint_score,
        "fill_rate": report.fill_rate,
        "compliance_ratio": report.compliance_ratio,
        "conflicts": len(report.conflicts),
        "load_balance": result.load_balance,
        "assignments": len(result.solution),
        "time_sec": elapsed,
        "generated_at": result.generated_at,
    }
    pd.DataFrame([metrics]).to_csv(out_dir / "metrics.csv", index=False)

    history = result.solution.stats.get("history")
    if history:
        pd.DataFrame(history).to_csv(out_dir / "history.csv", index=False)


def print_summary(result: GenerationResult, elapsed: float) -> None:
    report = result.report
    print("\n--- TIMETABLE ---")
    print(
        f"Mode: {result.mode} ({result.solution.solver}) | Sessions: {len(result.solution)} "
        f"| Time: {elapsed:.2f}s"
    )
    print(
        f"Score: {report.score:.1f}/100 | Fill rate: {report.fill_rate:.1f}% "
        f"| Compliance: {report.compliance_ratio:.0%} | Load balance: {result.load_balance:.1f}"
    )
    for c in report.conflicts[:10]:
        print(f"  ! {c.message}")
    for s in report.suggestions[:5]:
        print(f"  > [{s.rule}] {s.suggestion}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Weekly timetable generation end to end")
    parser.add_argument("--config", default="config.yaml", help="Path to the configuration file")
    parser.add_argument("--data_dir", default="data", help="Directory holding the input CSV files")
    parser.add_argument("--mode", default="balanced", choices=MODES, help="Generation mode")
    parser.add_argument("--out_dir", default="outputs", help="Directory for the CSV exports")
    parser.add_argument("--seed", type=int, default=None, help="Override the configured seed")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg: SchedulerConfig = load_config(args.config)
        if args.seed is not None:
            cfg = cfg.with_overrides(seed=args.seed)

        print("Loading data...")
        bundle = load_data(args.data_dir)
        print(
            f"Courses: {len(bundle.courses)} | Teachers: {len(bundle.teachers)} "
            f"| Rooms: {len(bundle.rooms)} | Constraints: {len(bundle.constraints)}"
        )

        start = time.perf_counter()
        result = generate(
            bundle.courses,
            bundle.teachers,
            bundle.rooms,
            bundle.constraints,
            cfg,
            mode=args.mode,
            rng=random.Random(cfg.seed),
        )
        elapsed = time.perf_counter() - start
    except InfeasibleScheduleError as exc:
        print(f"[ERROR] {exc} (expansions={exc.expansions})", file=sys.stderr)
        return 2
    except (SchedulingError, ConfigError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    print_summary(result, elapsed)
    out_dir = Path(args.out_dir)
    export_outputs(result, elapsed, out_dir)
    print(f"Results saved to {out_dir}/schedule.csv and {out_dir}/metrics.csv")
    return 0


if __name__ == "__main__":
    sys.exit(main())
