"""
Configuration of the scheduling engine.

Loads the parameters from a YAML file (JSON is valid YAML too) so runs are
reproducible and every default can be overridden per deployment.
"""
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import ConfigError
from .timeutils import to_minutes, grid_cells

DEFAULT_DAYS: List[str] = ["monday", "tuesday", "wednesday", "thursday", "friday"]

DEFAULT_ROOM_COMPATIBILITY: Dict[str, List[str]] = {
    "lab": ["laboratory", "computer", "workshop"],
    "workshop": ["workshop", "arts", "music"],
    "lecture": ["standard", "amphitheatre"],
    "tutorial": ["standard"],
}

FALLBACK_ROOM_TYPES: List[str] = ["standard"]

DEFAULT_MODE_GENERATIONS: Dict[str, int] = {
    "balanced": 1000,
    "optimal": 5000,
}


@dataclass
class SchedulerConfig:
    # Operating window
    days: List[str] = field(default_factory=lambda: list(DEFAULT_DAYS))
    day_start: int = 8 * 60
    day_end: int = 18 * 60
    granularity_minutes: int = 60

    # Constraint engine
    consecutive_gap_minutes: int = 15
    enforce_time_preference: bool = True
    room_compatibility: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ROOM_COMPATIBILITY.items()}
    )

    # Exact solver
    max_expansions: int = 10_000

    # Genetic algorithm
    population_size: int = 100
    generations: int = 1000
    mutation_rate: float = 0.1
    crossover_rate: float = 0.8
    elitism_count: int = 10
    tournament_size: int = 5
    seed: int = 42
    log_every: int = 100

    mode_generations: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_MODE_GENERATIONS)
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchedulerConfig":
        merged = asdict(cls())
        for k, v in data.items():
            if k in merged:
                merged[k] = v
        for key in ("day_start", "day_end"):
            try:
                merged[key] = to_minutes(merged[key])
            except ValueError as exc:
                raise ConfigError(f"{key}: {exc}") from exc
        cfg = cls(**merged)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not self.days:
            raise ConfigError("days must list at least one day")
        if self.day_end <= self.day_start:
            raise ConfigError("day_end must be later than day_start")
        if self.granularity_minutes <= 0:
            raise ConfigError("granularity_minutes must be > 0")
        if self.consecutive_gap_minutes < 0:
            raise ConfigError("consecutive_gap_minutes must be >= 0")
        if self.max_expansions < 1:
            raise ConfigError("max_expansions must be >= 1")
        if self.population_size < 1:
            raise ConfigError("population_size must be >= 1")
        if self.generations < 0:
            raise ConfigError("generations must be >= 0")
        if self.tournament_size < 1:
            raise ConfigError("tournament_size must be >= 1")
        if self.elitism_count < 0:
            raise ConfigError("elitism_count must be >= 0")
        for name in ("mutation_rate", "crossover_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")

    def allowed_room_types(self, course_type: str) -> List[str]:
        return self.room_compatibility.get(course_type, FALLBACK_ROOM_TYPES)

    def total_cells(self) -> int:
        """Number of (day, grid step) cells in the operating window."""
        cells = grid_cells(self.day_start, self.day_end, self.granularity_minutes)
        return len(self.days) * len(cells)

    def with_overrides(self, **overrides: Any) -> "SchedulerConfig":
        data = asdict(self)
        data.update(overrides)
        return SchedulerConfig.from_dict(data)


def _load_yaml(path: Path) -> Any:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc


def load_config(path: str = "config.yaml") -> SchedulerConfig:
    data = _load_yaml(Path(path))
    if not isinstance(data, dict):
        raise ConfigError("config.yaml must contain a mapping")
    return SchedulerConfig.from_dict(data)
