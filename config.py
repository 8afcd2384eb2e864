from dataclasses import dataclass, fields

# Scheduler defaults: 20-tick timeout, 200 task slots, levels 0-3
TIMEOUT_TICKS = 20
MAX_TASKS = 200
PRIORITY_REALTIME = 0
PRIORITY_HIGH = 1
PRIORITY_MEDIUM = 2
PRIORITY_LOW = 3

ORDERINGS = ("activity", "fifo")
DEMOTIONS = ("clamped", "unbounded")
TIMEOUT_BASES = ("last_active", "arrival", "grace")


@dataclass
class SimulationConfig:
    timeout_ticks: int = TIMEOUT_TICKS
    max_tasks: int = MAX_TASKS
    queue_capacity: int = MAX_TASKS
    tick_seconds: float = 0.0
    stall_factor: int = 1
    stall_slack: int = 10
    ordering: str = "activity"
    demotion: str = "clamped"
    timeout_basis: str = "last_active"
    lowest_user_priority: int = PRIORITY_LOW

    def __post_init__(self):
        if self.ordering not in ORDERINGS:
            raise ValueError(f"Unknown ordering {self.ordering!r}, expected one of {ORDERINGS}")
        if self.demotion not in DEMOTIONS:
            raise ValueError(f"Unknown demotion {self.demotion!r}, expected one of {DEMOTIONS}")
        if self.timeout_basis not in TIMEOUT_BASES:
            raise ValueError(f"Unknown timeout basis {self.timeout_basis!r}, expected one of {TIMEOUT_BASES}")
        if self.timeout_ticks <= 0:
            raise ValueError("timeout_ticks must be positive")
        if self.max_tasks <= 0 or self.queue_capacity <= 0:
            raise ValueError("max_tasks and queue_capacity must be positive")
        if self.tick_seconds < 0:
            raise ValueError("tick_seconds cannot be negative")
        if self.stall_factor < 0 or self.stall_slack < 0:
            raise ValueError("stall bounds cannot be negative")
        if self.lowest_user_priority < PRIORITY_HIGH:
            raise ValueError("lowest_user_priority must be a user level (>= 1)")

    @property
    def stall_window(self) -> int:
        """Ticks past the last arrival the idle phase keeps waiting."""
        return self.timeout_ticks * self.stall_factor + self.stall_slack

    @classmethod
    def from_options(cls, **options):
        """Build a config from a loose options dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in options.items() if k in known and v is not None})
