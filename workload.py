import logging
import os
import random
import re
from typing import List, Optional, Tuple

from config import MAX_TASKS
from simulator import Task

logger = logging.getLogger(__name__)

TaskRecord = Tuple[int, int, int]

_LINE = re.compile(r"^\s*(-?\d+)\s*,\s*(-?\d+)\s*,\s*(-?\d+)")


def parse_task_line(line: str) -> Optional[TaskRecord]:
    """Parse ``arrival, priority, burst``; None if the line is not a valid task."""
    match = _LINE.match(line)
    if match is None:
        return None
    arrival, priority, burst = (int(g) for g in match.groups())
    if priority < 0 or burst <= 0 or arrival < 0:
        return None
    return arrival, priority, burst


def read_task_records(lines, max_tasks=MAX_TASKS) -> List[TaskRecord]:
    records = []
    for number, line in enumerate(lines, start=1):
        if len(records) >= max_tasks:
            logger.warning("Reached max task limit (%d), extra lines ignored", max_tasks)
            break
        if not line.strip():
            continue
        record = parse_task_line(line)
        if record is None:
            logger.debug("Skipping line %d: %r", number, line.rstrip("\n"))
            continue
        records.append(record)
    return records


def load_tasks_from_file(path, max_tasks=MAX_TASKS) -> List[TaskRecord]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Could not open {path}")
    with open(path, "r", encoding="utf-8") as f:
        records = read_task_records(f, max_tasks)
    logger.info("Loaded %d tasks from %s", len(records), path)
    return records


def build_tasks(records) -> List[Task]:
    return [Task(task_id, arrival, priority, burst)
            for task_id, (arrival, priority, burst) in enumerate(records)]


def save_tasks(records, path):
    with open(path, "w", encoding="utf-8") as f:
        for arrival, priority, burst in records:
            f.write(f"{arrival}, {priority}, {burst}\n")


def generate_workload(scenario="balanced", num_tasks=20, seed=None, **options) -> List[TaskRecord]:
    rng = random.Random(seed)

    rt_fraction = options.get("rt_fraction", 0.2)
    max_burst = options.get("max_burst", 5)
    arrival_spread = options.get("arrival_spread", 1)

    records = []
    if scenario == "balanced":
        for i in range(num_tasks):
            arrival = i * arrival_spread
            priority = 0 if rng.random() < rt_fraction else rng.randint(1, 3)
            records.append((arrival, priority, rng.randint(1, max_burst)))

    elif scenario == "bursty":
        for i in range(num_tasks):
            burst_start = (i // 5) * 10
            arrival = burst_start + rng.randint(0, 2)
            priority = 0 if rng.random() < rt_fraction else rng.randint(1, 3)
            records.append((arrival, priority, rng.randint(1, max_burst)))

    elif scenario == "real_time":
        # RT-heavy mix, short bursts
        for i in range(num_tasks):
            arrival = i * arrival_spread + rng.randint(0, 1)
            priority = 0 if rng.random() < max(rt_fraction, 0.6) else rng.randint(1, 3)
            records.append((arrival, priority, rng.randint(1, max(1, max_burst // 2))))

    elif scenario == "starvation":
        # One long RT task starves everything that arrives behind it
        records.append((0, 0, options.get("rt_burst", 30)))
        for i in range(1, num_tasks):
            arrival = rng.randint(0, 5)
            records.append((arrival, rng.randint(1, 3), rng.randint(1, max_burst)))

    else:
        raise ValueError(f"Unknown workload scenario: {scenario!r}")

    return sorted(records, key=lambda r: r[0])
